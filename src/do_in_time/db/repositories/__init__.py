"""Repository classes for database operations."""

from do_in_time.db.repositories.executions import TaskExecutionRepository
from do_in_time.db.repositories.tasks import TaskRepository

__all__ = [
    "TaskExecutionRepository",
    "TaskRepository",
]
