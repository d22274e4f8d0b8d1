"""Database module for do-in-time."""

from do_in_time.db.engine import (
    create_engine,
    create_session_factory,
    ensure_sqlite_directory,
)
from do_in_time.db.models import (
    Base,
    TaskExecutionModel,
    TaskModel,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "ensure_sqlite_directory",
    "Base",
    "TaskExecutionModel",
    "TaskModel",
]
