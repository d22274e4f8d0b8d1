"""Runs one browser action and advances the task's state machine."""

import dataclasses
import logging
from datetime import datetime, timezone

from do_in_time.errors import InvalidTaskError
from do_in_time.models.task import (
    ExecutionAction,
    ExecutionStatus,
    Task,
    TaskStatus,
)
from do_in_time.services.browser import BrowserLauncher
from do_in_time.services.events import TaskEventBroadcaster
from do_in_time.services.recurrence import first_occurrence_after
from do_in_time.services.task_store import TaskStore
from do_in_time.validation import validate_browser_profile, validate_url

logger = logging.getLogger(__name__)


def should_continue_repeating(task: Task, next_open: datetime) -> bool:
    """Whether a repeating task gets another occurrence at next_open.

    end_after (counted in successful opens) wins over end_date.
    """
    repeat = task.repeat_config
    if repeat is None:
        return False
    if repeat.end_after is not None:
        return task.execution_count < repeat.end_after
    if repeat.end_date is not None:
        return next_open < repeat.end_date
    return True


class TaskExecutor:
    """Executes a (task, action) pair and writes the outcome back.

    Every attempt, successful or not, leaves an execution log row and a
    task-updated event behind.
    """

    def __init__(
        self,
        store: TaskStore,
        launcher: BrowserLauncher,
        broadcaster: TaskEventBroadcaster | None = None,
    ) -> None:
        self._store = store
        self._launcher = launcher
        self._broadcaster = broadcaster

    def _publish(self, task_id: int) -> None:
        if self._broadcaster is not None:
            self._broadcaster.publish(task_id)

    async def execute(self, task: Task, action: ExecutionAction) -> Task:
        """Run the action for the task.

        Returns:
            The task as persisted after the action

        Raises:
            Whatever made the attempt fail, after the task has been marked
            failed and the failure logged.
        """
        logger.info(f"Executing {action.value} for task {task.id} ({task.name})")

        # A failed attempt records the task unadvanced
        advanced = dataclasses.replace(task)
        try:
            await self._dispatch(task, action)
            self._advance(advanced, action, datetime.now(timezone.utc))
        except Exception as e:
            await self._record_failure(task, action, e)
            raise

        saved = await self._store.save(advanced)
        await self._store.log_execution(task.id, action, ExecutionStatus.SUCCESS)
        self._publish(task.id)

        logger.info(f"Task {task.id} {action.value} succeeded, status={saved.status.value}")
        return saved

    async def _dispatch(self, task: Task, action: ExecutionAction) -> None:
        if task.url:
            validate_url(task.url)
        if task.browser_profile:
            validate_browser_profile(task.browser_profile)

        if action == ExecutionAction.OPEN:
            await self._launcher.open(task.browser, task.url, task.browser_profile)
        elif task.url:
            await self._launcher.close_by_url(task.browser, task.url)
        elif task.allow_close_all:
            await self._launcher.close_all(task.browser)
        else:
            raise InvalidTaskError(
                "Cannot close browser without URL unless allow_close_all is enabled"
            )

    def _advance(self, task: Task, action: ExecutionAction, now: datetime) -> None:
        """Move cursors and status forward after a successful action."""
        if action == ExecutionAction.OPEN:
            fired = task.next_open_execution or task.start_time
            task.last_open_execution = now
            task.execution_count += 1
            # Close of the occurrence that just opened
            task.next_close_execution = (
                fired + (task.close_time - task.start_time) if task.close_time else None
            )

            if task.repeat_config is None:
                task.next_open_execution = None
            else:
                # Missed occurrences are skipped, never replayed
                next_open = first_occurrence_after(
                    task.start_time,
                    task.timezone,
                    task.repeat_config.interval,
                    max(fired, now),
                )
                if should_continue_repeating(task, next_open):
                    task.next_open_execution = next_open
                else:
                    task.next_open_execution = None
                    logger.info(f"Task {task.id} reached the end of its repeat policy")
        else:
            task.last_close_execution = now
            task.next_close_execution = None

        if task.next_open_execution is None and task.next_close_execution is None:
            task.status = TaskStatus.COMPLETED

    async def _record_failure(
        self, task: Task, action: ExecutionAction, error: Exception
    ) -> None:
        logger.error(f"Task {task.id} {action.value} failed: {error}")
        task.status = TaskStatus.FAILED
        try:
            await self._store.save(task)
            await self._store.log_execution(
                task.id, action, ExecutionStatus.FAILED, str(error)
            )
        except Exception:
            logger.exception(f"Failed to record failure of task {task.id}")
        self._publish(task.id)
