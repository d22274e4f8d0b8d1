"""Task repository for database operations."""

from sqlalchemy import and_, case, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from do_in_time.db.models import TaskExecutionModel, TaskModel
from do_in_time.models.task import ExecutionAction, Task, TaskStatus


class TaskRepository:
    """Repository for task database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, task: Task) -> TaskModel:
        """Insert a new task row.

        Args:
            task: Task values to persist; its id is ignored

        Returns:
            The created TaskModel with its assigned id
        """
        model = TaskModel()
        task.apply_to_model(model)

        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, task_id: int) -> TaskModel | None:
        """Get a task by ID.

        Args:
            task_id: The task ID to fetch

        Returns:
            TaskModel if found, None otherwise
        """
        result = await self.session.execute(
            select(TaskModel).where(TaskModel.id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[TaskModel]:
        """Get all tasks ordered by their first start time.

        Returns:
            List of TaskModel instances
        """
        result = await self.session.execute(
            select(TaskModel).order_by(TaskModel.start_time.asc(), TaskModel.id.asc())
        )
        return list(result.scalars().all())

    async def save(self, task_id: int, task: Task) -> TaskModel | None:
        """Overwrite every persisted field of a task (last write wins).

        Args:
            task_id: The task ID to update
            task: New field values

        Returns:
            Updated TaskModel, or None if the row no longer exists
        """
        model = await self.get(task_id)
        if model is None:
            return None

        task.apply_to_model(model)
        await self.session.flush()
        await self.session.refresh(model)
        return model

    async def delete(self, task_id: int) -> bool:
        """Delete a task and its execution log.

        Args:
            task_id: The task ID to delete

        Returns:
            True if deleted, False if not found
        """
        await self.session.execute(
            delete(TaskExecutionModel).where(TaskExecutionModel.task_id == task_id)
        )
        result = await self.session.execute(
            delete(TaskModel).where(TaskModel.id == task_id)
        )
        return (result.rowcount or 0) > 0

    async def get_next_due_action(self) -> tuple[TaskModel, ExecutionAction] | None:
        """Get the active task/action pair with the earliest due instant.

        When a task's open and close cursors are equal, open wins. Ties
        between tasks go to the lowest id.

        Returns:
            (TaskModel, ExecutionAction) or None if nothing is scheduled
        """
        open_first = and_(
            TaskModel.next_open_execution.is_not(None),
            or_(
                TaskModel.next_close_execution.is_(None),
                TaskModel.next_open_execution <= TaskModel.next_close_execution,
            ),
        )
        due_at = case(
            (open_first, TaskModel.next_open_execution),
            else_=TaskModel.next_close_execution,
        )
        next_action = case(
            (open_first, ExecutionAction.OPEN.value),
            else_=ExecutionAction.CLOSE.value,
        )

        result = await self.session.execute(
            select(TaskModel, next_action.label("next_action"))
            .where(TaskModel.status == TaskStatus.ACTIVE)
            .where(
                or_(
                    TaskModel.next_open_execution.is_not(None),
                    TaskModel.next_close_execution.is_not(None),
                )
            )
            .order_by(due_at.asc(), TaskModel.id.asc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None

        model, action = row
        return model, ExecutionAction(action)
