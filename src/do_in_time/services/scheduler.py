"""Scheduler service that runs due browser actions one at a time."""

import asyncio
import logging
from datetime import datetime, timezone

from do_in_time.errors import AlreadyRunningError, NotRunningError
from do_in_time.services.executor import TaskExecutor
from do_in_time.services.task_store import TaskStore

logger = logging.getLogger(__name__)


class SchedulerService:
    """Background loop: query the next due action, wait for it, run it.

    State is stopped -> running -> stopped. Nothing is cached between
    ticks, so tasks created or edited while the loop sleeps are picked up
    on the next query.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: TaskExecutor,
        idle_interval: float = 10.0,
        max_sleep: float = 60.0,
        error_backoff: float = 5.0,
    ) -> None:
        self._store = store
        self._executor = executor
        self._idle_interval = idle_interval
        self._max_sleep = max_sleep
        self._error_backoff = error_backoff

        self._lock = asyncio.Lock()
        self._tick_lock = asyncio.Lock()
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._loop_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the scheduler background task.

        Raises:
            AlreadyRunningError: the scheduler is already running
        """
        async with self._lock:
            if self._running:
                raise AlreadyRunningError()
            self._running = True
            # Fresh signal per start so a previous loop can never resume
            self._stop_event = asyncio.Event()
            self._loop_task = asyncio.create_task(self._loop(self._stop_event))
        logger.info("Scheduler service started")

    async def stop(self, wait: bool = False) -> None:
        """Signal the loop to exit.

        An action already executing runs to completion. With wait=True the
        call returns only once the loop has exited.

        Raises:
            NotRunningError: the scheduler is not running
        """
        async with self._lock:
            if not self._running:
                raise NotRunningError()
            self._running = False
            if self._stop_event is not None:
                self._stop_event.set()
            loop_task = self._loop_task
        logger.info("Scheduler service stopped")

        if wait and loop_task is not None:
            await loop_task

    async def is_running(self) -> bool:
        async with self._lock:
            return self._running

    async def tick(self) -> float:
        """Run one scheduling step.

        Returns:
            Seconds to sleep before the next step
        """
        return await self._tick(None)

    async def _tick(self, stop_event: asyncio.Event | None) -> float:
        async with self._tick_lock:
            if stop_event is not None and stop_event.is_set():
                return 0.0

            try:
                next_action = await self._store.get_next_due_action()
            except Exception as e:
                logger.warning(f"Error reading next due action: {e}, retrying in {self._error_backoff}s")
                return self._error_backoff

            if next_action is None:
                logger.debug(f"No scheduled actions, sleeping {self._idle_interval}s")
                return self._idle_interval

            task, action = next_action
            due_at = task.cursor(action)
            now = datetime.now(timezone.utc)
            if due_at is not None and due_at > now:
                delay = min((due_at - now).total_seconds(), self._max_sleep)
                logger.debug(f"Next action: task {task.id} {action.value} in {delay:.1f}s")
                return delay

            try:
                await self._executor.execute(task, action)
            except Exception as e:
                logger.exception(f"Task {task.id} {action.value} failed: {e}")
            return 0.0

    async def _loop(self, stop_event: asyncio.Event) -> None:
        """Main scheduler loop, exits once stop_event is set."""
        while not stop_event.is_set():
            delay = await self._tick(stop_event)
            if delay <= 0:
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except TimeoutError:
                pass
