"""Domain models for scheduled browser tasks.

Every enum string used in the database or the API is defined here, and the
row <-> dataclass mapping lives next to the dataclasses so the read and
write paths cannot drift apart.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from do_in_time.db.models import TaskExecutionModel, TaskModel


class BrowserType(str, enum.Enum):
    CHROME = "chrome"
    FIREFOX = "firefox"
    EDGE = "edge"
    SAFARI = "safari"
    BRAVE = "brave"
    OPERA = "opera"


class TaskStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class RepeatInterval(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ExecutionAction(str, enum.Enum):
    """Which side of a task's open/close cycle to run."""

    OPEN = "open"
    CLOSE = "close"


class ExecutionStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class RepeatConfig:
    """Recurrence policy. end_after takes precedence over end_date."""

    interval: RepeatInterval
    end_after: int | None = None  # Stop after N successful opens
    end_date: datetime | None = None  # Stop once the next occurrence reaches this instant


@dataclass
class Task:
    """A browser action scheduled at absolute UTC instants.

    The timezone is only used for recurrence arithmetic; start_time,
    close_time and every cursor are absolute instants.
    """

    name: str
    browser: BrowserType
    start_time: datetime
    timezone: str = "UTC"
    browser_profile: str | None = None
    url: str | None = None
    allow_close_all: bool = False
    close_time: datetime | None = None
    repeat_config: RepeatConfig | None = None
    status: TaskStatus = TaskStatus.ACTIVE
    execution_count: int = 0  # Successful opens only
    next_open_execution: datetime | None = None
    next_close_execution: datetime | None = None
    last_open_execution: datetime | None = None
    last_close_execution: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def cursor(self, action: ExecutionAction) -> datetime | None:
        """Return the next due instant for the given action."""
        if action == ExecutionAction.OPEN:
            return self.next_open_execution
        return self.next_close_execution

    def schedule_key(self) -> tuple:
        """Fields that define when the task runs."""
        return (self.start_time, self.close_time, self.timezone, self.repeat_config)

    @classmethod
    def from_model(cls, model: "TaskModel") -> "Task":
        """Create a Task from a database model."""
        repeat_config = None
        if model.repeat_interval is not None:
            repeat_config = RepeatConfig(
                interval=model.repeat_interval,
                end_after=model.repeat_end_after,
                end_date=model.repeat_end_date,
            )

        return cls(
            id=model.id,
            name=model.name,
            browser=model.browser,
            browser_profile=model.browser_profile,
            url=model.url,
            allow_close_all=model.allow_close_all,
            start_time=model.start_time,
            close_time=model.close_time,
            timezone=model.timezone,
            repeat_config=repeat_config,
            status=model.status,
            execution_count=model.execution_count,
            next_open_execution=model.next_open_execution,
            next_close_execution=model.next_close_execution,
            last_open_execution=model.last_open_execution,
            last_close_execution=model.last_close_execution,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def apply_to_model(self, model: "TaskModel") -> None:
        """Copy every persisted field onto a database model."""
        model.name = self.name
        model.browser = self.browser
        model.browser_profile = self.browser_profile
        model.url = self.url
        model.allow_close_all = self.allow_close_all
        model.start_time = self.start_time
        model.close_time = self.close_time
        model.timezone = self.timezone
        model.repeat_interval = self.repeat_config.interval if self.repeat_config else None
        model.repeat_end_after = self.repeat_config.end_after if self.repeat_config else None
        model.repeat_end_date = self.repeat_config.end_date if self.repeat_config else None
        model.status = self.status
        model.execution_count = self.execution_count
        model.next_open_execution = self.next_open_execution
        model.next_close_execution = self.next_close_execution
        model.last_open_execution = self.last_open_execution
        model.last_close_execution = self.last_close_execution


@dataclass
class TaskExecution:
    """One row of the append-only execution log."""

    id: int
    task_id: int
    action: ExecutionAction
    executed_at: datetime
    status: ExecutionStatus
    error_message: str | None = None

    @classmethod
    def from_model(cls, model: "TaskExecutionModel") -> "TaskExecution":
        return cls(
            id=model.id,
            task_id=model.task_id,
            action=model.action,
            executed_at=model.executed_at,
            status=model.status,
            error_message=model.error_message,
        )
