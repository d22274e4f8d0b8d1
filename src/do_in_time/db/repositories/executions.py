"""Execution log repository for database operations."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from do_in_time.db.models import TaskExecutionModel
from do_in_time.models.task import ExecutionAction, ExecutionStatus


class TaskExecutionRepository:
    """Repository for the append-only execution log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        task_id: int,
        action: ExecutionAction,
        status: ExecutionStatus,
        error_message: str | None = None,
    ) -> TaskExecutionModel:
        """Append an execution row.

        Args:
            task_id: The task the attempt belongs to
            action: Open or close
            status: Success or failed
            error_message: Failure detail, if any

        Returns:
            The created TaskExecutionModel
        """
        model = TaskExecutionModel(
            task_id=task_id,
            action=action,
            status=status,
            error_message=error_message,
            executed_at=datetime.now(timezone.utc),
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_for_task(
        self, task_id: int, limit: int = 50
    ) -> list[TaskExecutionModel]:
        """Get the most recent executions of a task, newest first.

        Args:
            task_id: The task ID
            limit: Maximum number of rows

        Returns:
            List of TaskExecutionModel instances
        """
        result = await self.session.execute(
            select(TaskExecutionModel)
            .where(TaskExecutionModel.task_id == task_id)
            .order_by(TaskExecutionModel.executed_at.desc(), TaskExecutionModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
