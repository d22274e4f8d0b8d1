"""In-process fan-out of "task updated" notifications."""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

TASK_UPDATED = "task-updated"


class TaskEventBroadcaster:
    """Fan out task-updated events to every subscriber queue.

    Publishing never blocks: a subscriber whose queue is full misses the
    event instead of stalling the scheduler.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()
        self._max_queue_size = max_queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._subscribers.discard(queue)

    def publish(self, task_id: int) -> None:
        """Notify subscribers that a task changed."""
        event = {"event": TASK_UPDATED, "task_id": task_id}
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {TASK_UPDATED} event for task {task_id}: subscriber queue full")
