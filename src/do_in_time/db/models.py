"""SQLAlchemy ORM models for do-in-time."""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from do_in_time.models.task import (
    BrowserType,
    ExecutionAction,
    ExecutionStatus,
    RepeatInterval,
    TaskStatus,
)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware datetime stored as naive UTC.

    SQLite has no timezone support, so instants are normalized to UTC on the
    way in and tagged as UTC on the way out. Lexical order of the stored
    values matches chronological order.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime is not allowed: {value!r}")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Store enum values ("chrome"), not member names ("CHROME")."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskModel(Base):
    """Scheduled browser task with its runtime cursors."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    browser: Mapped[BrowserType] = mapped_column(
        _enum_column(BrowserType, "browser_type"), nullable=False
    )
    browser_profile: Mapped[str | None] = mapped_column(String(100), nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    allow_close_all: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    close_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    repeat_interval: Mapped[RepeatInterval | None] = mapped_column(
        _enum_column(RepeatInterval, "repeat_interval"), nullable=True
    )
    repeat_end_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    repeat_end_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    status: Mapped[TaskStatus] = mapped_column(
        _enum_column(TaskStatus, "task_status"),
        nullable=False,
        default=TaskStatus.ACTIVE,
    )
    execution_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_open_execution: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_close_execution: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_open_execution: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_close_execution: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    # Relationships
    executions: Mapped[list["TaskExecutionModel"]] = relationship(
        "TaskExecutionModel",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_next_open_execution", "status", "next_open_execution"),
        Index("idx_tasks_next_close_execution", "status", "next_close_execution"),
    )


class TaskExecutionModel(Base):
    """Append-only log of open/close attempts."""

    __tablename__ = "task_executions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[ExecutionAction] = mapped_column(
        _enum_column(ExecutionAction, "execution_action"), nullable=False
    )
    status: Mapped[ExecutionStatus] = mapped_column(
        _enum_column(ExecutionStatus, "execution_status"), nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
    )

    # Relationship
    task: Mapped["TaskModel"] = relationship("TaskModel", back_populates="executions")

    __table_args__ = (Index("idx_task_executions_task_id", "task_id", "executed_at"),)
