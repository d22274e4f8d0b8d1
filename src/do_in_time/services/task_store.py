"""Durable task records and execution log."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from do_in_time.db.repositories import TaskExecutionRepository, TaskRepository
from do_in_time.errors import InvalidTaskError, TaskNotFoundError
from do_in_time.models.task import (
    ExecutionAction,
    ExecutionStatus,
    Task,
    TaskExecution,
    TaskStatus,
)
from do_in_time.services.events import TaskEventBroadcaster
from do_in_time.services.recurrence import (
    first_index_after,
    occurrence,
    resolve_timezone,
)
from do_in_time.validation import validate_browser_profile, validate_url

logger = logging.getLogger(__name__)

EXECUTION_HISTORY_LIMIT = 50

RUNTIME_FIELDS = (
    "status",
    "execution_count",
    "next_open_execution",
    "next_close_execution",
    "last_open_execution",
    "last_close_execution",
)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def validate_task(task: Task) -> None:
    """Check a task's configuration before it is stored.

    Raises:
        InvalidTaskError: bad name, URL, profile, times or repeat policy
        TimeParseError: unknown timezone
    """
    if not task.name or not task.name.strip():
        raise InvalidTaskError("Task name cannot be empty")

    if task.url is not None:
        validate_url(task.url)
    if task.browser_profile is not None:
        validate_browser_profile(task.browser_profile)

    resolve_timezone(task.timezone)

    if not _is_aware(task.start_time):
        raise InvalidTaskError("start_time must include a UTC offset")
    if task.close_time is not None:
        if not _is_aware(task.close_time):
            raise InvalidTaskError("close_time must include a UTC offset")
        if task.close_time <= task.start_time:
            raise InvalidTaskError("Close time must be after start time")

    repeat = task.repeat_config
    if repeat is not None:
        if repeat.end_after is not None and repeat.end_after < 1:
            raise InvalidTaskError("end_after must be at least 1")
        if repeat.end_date is not None and not _is_aware(repeat.end_date):
            raise InvalidTaskError("end_date must include a UTC offset")


def rearm(task: Task, now: datetime) -> None:
    """Recompute a task's cursors after its schedule changed.

    Cursors point at the first open and close instants later than now. A
    repeating task keeps a close that is still pending for the occurrence
    already in progress.
    """
    if task.status != TaskStatus.ACTIVE:
        task.status = TaskStatus.ACTIVE
        task.execution_count = 0
        task.last_open_execution = None
        task.last_close_execution = None

    offset = task.close_time - task.start_time if task.close_time else None
    repeat = task.repeat_config

    if repeat is None:
        task.next_open_execution = task.start_time if task.start_time > now else None
        task.next_close_execution = (
            task.close_time if task.close_time and task.close_time > now else None
        )
    else:
        n = first_index_after(task.start_time, task.timezone, repeat.interval, now)
        next_open = occurrence(task.start_time, task.timezone, repeat.interval, n)
        if repeat.end_date is not None and next_open >= repeat.end_date:
            next_open = None

        next_close = None
        if offset is not None:
            if n > 0:
                previous = occurrence(task.start_time, task.timezone, repeat.interval, n - 1)
                if previous + offset > now:
                    next_close = previous + offset
            if next_close is None and next_open is not None:
                next_close = next_open + offset

        task.next_open_execution = next_open
        task.next_close_execution = next_close

    if task.next_open_execution is None and task.next_close_execution is None:
        task.status = TaskStatus.COMPLETED


class TaskStore:
    """Task CRUD, next-action selection and the execution log.

    Every method opens its own session, so nothing is cached between calls.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: TaskEventBroadcaster | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._broadcaster = broadcaster

    def _notify(self, task_id: int) -> None:
        if self._broadcaster is not None:
            self._broadcaster.publish(task_id)

    async def create(self, task: Task) -> Task:
        """Validate and insert a new task, arming its first open and close."""
        validate_task(task)

        task.status = TaskStatus.ACTIVE
        task.execution_count = 0
        if task.next_open_execution is None:
            task.next_open_execution = task.start_time
        if task.next_close_execution is None:
            task.next_close_execution = task.close_time

        async with self._session_factory() as session:
            repo = TaskRepository(session)
            model = await repo.create(task)
            await session.commit()
            created = Task.from_model(model)

        logger.info(f"Created task {created.id} ({created.name})")
        self._notify(created.id)
        return created

    async def get(self, task_id: int) -> Task:
        async with self._session_factory() as session:
            repo = TaskRepository(session)
            model = await repo.get(task_id)
            if model is None:
                raise TaskNotFoundError(task_id)
            return Task.from_model(model)

    async def list(self) -> list[Task]:
        async with self._session_factory() as session:
            repo = TaskRepository(session)
            return [Task.from_model(m) for m in await repo.list_all()]

    async def update(self, task_id: int, task: Task) -> Task:
        """Validate and store new task values.

        If the schedule (start, close, timezone or repeat policy) changed,
        the task is re-armed relative to the current time.
        """
        validate_task(task)

        async with self._session_factory() as session:
            repo = TaskRepository(session)
            existing = await repo.get(task_id)
            if existing is None:
                raise TaskNotFoundError(task_id)

            # Runtime state is owned by the executor, never by the caller
            current = Task.from_model(existing)
            task = dataclasses.replace(
                task,
                **{field: getattr(current, field) for field in RUNTIME_FIELDS},
            )

            if current.schedule_key() != task.schedule_key():
                rearm(task, datetime.now(timezone.utc))
                logger.info(f"Schedule of task {task_id} changed, re-armed")

            model = await repo.save(task_id, task)
            await session.commit()
            updated = Task.from_model(model)

        self._notify(task_id)
        return updated

    async def save(self, task: Task) -> Task:
        """Persist runtime state as-is, without validation (last write wins)."""
        async with self._session_factory() as session:
            repo = TaskRepository(session)
            model = await repo.save(task.id, task)
            if model is None:
                raise TaskNotFoundError(task.id)
            await session.commit()
            return Task.from_model(model)

    async def delete(self, task_id: int) -> None:
        async with self._session_factory() as session:
            repo = TaskRepository(session)
            deleted = await repo.delete(task_id)
            if not deleted:
                raise TaskNotFoundError(task_id)
            await session.commit()

        logger.info(f"Deleted task {task_id}")
        self._notify(task_id)

    async def get_next_due_action(self) -> tuple[Task, ExecutionAction] | None:
        """The active (task, action) pair due earliest, open first on ties."""
        async with self._session_factory() as session:
            repo = TaskRepository(session)
            row = await repo.get_next_due_action()
            if row is None:
                return None
            model, action = row
            return Task.from_model(model), action

    async def log_execution(
        self,
        task_id: int,
        action: ExecutionAction,
        status: ExecutionStatus,
        error: str | None = None,
    ) -> TaskExecution:
        async with self._session_factory() as session:
            repo = TaskExecutionRepository(session)
            model = await repo.create(task_id, action, status, error_message=error)
            await session.commit()
            return TaskExecution.from_model(model)

    async def get_execution_history(
        self, task_id: int, limit: int = EXECUTION_HISTORY_LIMIT
    ) -> list[TaskExecution]:
        """Most recent executions of a task, newest first."""
        async with self._session_factory() as session:
            if await TaskRepository(session).get(task_id) is None:
                raise TaskNotFoundError(task_id)
            repo = TaskExecutionRepository(session)
            return [TaskExecution.from_model(m) for m in await repo.list_for_task(task_id, limit)]
