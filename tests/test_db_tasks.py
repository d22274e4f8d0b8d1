"""Tests for task and execution repositories."""

from datetime import timedelta

import pytest

from do_in_time.db.repositories import TaskExecutionRepository, TaskRepository
from do_in_time.models.task import (
    ExecutionAction,
    ExecutionStatus,
    RepeatConfig,
    RepeatInterval,
    Task,
    TaskStatus,
)


class TestTaskRepository:
    """Tests for TaskRepository."""

    @pytest.fixture
    async def repo(self, db_session):
        """Create a TaskRepository instance."""
        return TaskRepository(db_session)

    async def _add(self, repo, db_session, task: Task) -> int:
        model = await repo.create(task)
        await db_session.commit()
        return model.id

    async def test_create_task(self, repo, db_session, make_task):
        """Test creating a task round-trips every field."""
        task = make_task(
            browser_profile="Work",
            close_time=make_task().start_time + timedelta(minutes=30),
            timezone="Europe/Berlin",
            repeat_config=RepeatConfig(interval=RepeatInterval.WEEKLY, end_after=4),
        )
        task_id = await self._add(repo, db_session, task)

        fetched = Task.from_model(await repo.get(task_id))
        assert fetched.id == task_id
        assert fetched.name == "Standup"
        assert fetched.browser_profile == "Work"
        assert fetched.start_time == task.start_time
        assert fetched.close_time == task.close_time
        assert fetched.start_time.tzinfo is not None
        assert fetched.timezone == "Europe/Berlin"
        assert fetched.repeat_config == RepeatConfig(
            interval=RepeatInterval.WEEKLY, end_after=4
        )
        assert fetched.status == TaskStatus.ACTIVE
        assert fetched.execution_count == 0
        assert fetched.created_at is not None

    async def test_get_task_not_found(self, repo):
        assert await repo.get(999) is None

    async def test_list_all_ordered_by_start_time(self, repo, db_session, make_task, utcnow):
        later = await self._add(repo, db_session, make_task(start_time=utcnow + timedelta(hours=2)))
        earlier = await self._add(repo, db_session, make_task(start_time=utcnow + timedelta(hours=1)))

        models = await repo.list_all()
        assert [m.id for m in models] == [earlier, later]

    async def test_save_overwrites_fields(self, repo, db_session, make_task):
        task_id = await self._add(repo, db_session, make_task())

        task = Task.from_model(await repo.get(task_id))
        task.name = "Renamed"
        task.status = TaskStatus.FAILED
        model = await repo.save(task_id, task)
        await db_session.commit()

        assert model.name == "Renamed"
        assert model.status == TaskStatus.FAILED

    async def test_save_missing_task(self, repo, make_task):
        assert await repo.save(999, make_task()) is None

    async def test_delete_cascades_executions(self, repo, db_session, make_task):
        task_id = await self._add(repo, db_session, make_task())
        executions = TaskExecutionRepository(db_session)
        await executions.create(task_id, ExecutionAction.OPEN, ExecutionStatus.SUCCESS)
        await db_session.commit()

        assert await repo.delete(task_id) is True
        await db_session.commit()

        assert await repo.get(task_id) is None
        assert await executions.list_for_task(task_id) == []

    async def test_delete_not_found(self, repo):
        assert await repo.delete(999) is False


class TestGetNextDueAction:
    """Tests for next-due-action selection."""

    @pytest.fixture
    async def repo(self, db_session):
        return TaskRepository(db_session)

    async def _add(self, repo, db_session, task: Task) -> int:
        model = await repo.create(task)
        await db_session.commit()
        return model.id

    async def test_empty(self, repo):
        assert await repo.get_next_due_action() is None

    async def test_picks_earliest_across_tasks(self, repo, db_session, make_task, utcnow):
        await self._add(repo, db_session, make_task(next_open_execution=utcnow + timedelta(hours=2)))
        soon = await self._add(
            repo, db_session, make_task(next_open_execution=utcnow + timedelta(minutes=5))
        )

        model, action = await repo.get_next_due_action()
        assert model.id == soon
        assert action == ExecutionAction.OPEN

    async def test_close_before_open(self, repo, db_session, make_task, utcnow):
        task_id = await self._add(
            repo,
            db_session,
            make_task(
                next_open_execution=utcnow + timedelta(days=1),
                next_close_execution=utcnow + timedelta(minutes=30),
            ),
        )

        model, action = await repo.get_next_due_action()
        assert model.id == task_id
        assert action == ExecutionAction.CLOSE

    async def test_open_wins_tie_with_own_close(self, repo, db_session, make_task, utcnow):
        due = utcnow + timedelta(minutes=10)
        await self._add(
            repo, db_session, make_task(next_open_execution=due, next_close_execution=due)
        )

        _, action = await repo.get_next_due_action()
        assert action == ExecutionAction.OPEN

    async def test_tie_across_tasks_goes_to_lowest_id(self, repo, db_session, make_task, utcnow):
        due = utcnow + timedelta(minutes=10)
        first = await self._add(repo, db_session, make_task(next_open_execution=due))
        await self._add(repo, db_session, make_task(next_open_execution=due))

        model, _ = await repo.get_next_due_action()
        assert model.id == first

    async def test_close_only_task(self, repo, db_session, make_task, utcnow):
        await self._add(
            repo,
            db_session,
            make_task(next_open_execution=None, next_close_execution=utcnow + timedelta(minutes=1)),
        )

        _, action = await repo.get_next_due_action()
        assert action == ExecutionAction.CLOSE

    async def test_ignores_inactive_tasks(self, repo, db_session, make_task, utcnow):
        await self._add(
            repo,
            db_session,
            make_task(status=TaskStatus.COMPLETED, next_open_execution=utcnow),
        )
        await self._add(
            repo,
            db_session,
            make_task(status=TaskStatus.FAILED, next_open_execution=utcnow),
        )

        assert await repo.get_next_due_action() is None

    async def test_ignores_tasks_without_cursors(self, repo, db_session, make_task):
        await self._add(repo, db_session, make_task())

        assert await repo.get_next_due_action() is None

    async def test_idempotent(self, repo, db_session, make_task, utcnow):
        await self._add(repo, db_session, make_task(next_open_execution=utcnow))

        first_model, first_action = await repo.get_next_due_action()
        second_model, second_action = await repo.get_next_due_action()
        assert (first_model.id, first_action) == (second_model.id, second_action)

    async def test_reflects_mutations(self, repo, db_session, make_task, utcnow):
        a = await self._add(repo, db_session, make_task(next_open_execution=utcnow))
        b = await self._add(
            repo, db_session, make_task(next_open_execution=utcnow + timedelta(hours=1))
        )

        model, _ = await repo.get_next_due_action()
        assert model.id == a

        task = Task.from_model(await repo.get(a))
        task.next_open_execution = utcnow + timedelta(days=1)
        await repo.save(a, task)
        await db_session.commit()

        model, _ = await repo.get_next_due_action()
        assert model.id == b


class TestTaskExecutionRepository:
    """Tests for TaskExecutionRepository."""

    async def test_list_newest_first_with_limit(self, db_session, make_task):
        task_model = await TaskRepository(db_session).create(make_task())
        await db_session.commit()

        repo = TaskExecutionRepository(db_session)
        for action in (ExecutionAction.OPEN, ExecutionAction.CLOSE, ExecutionAction.OPEN):
            await repo.create(task_model.id, action, ExecutionStatus.SUCCESS)
        await repo.create(
            task_model.id, ExecutionAction.CLOSE, ExecutionStatus.FAILED, error_message="boom"
        )
        await db_session.commit()

        rows = await repo.list_for_task(task_model.id, limit=3)
        assert len(rows) == 3
        assert rows[0].status == ExecutionStatus.FAILED
        assert rows[0].error_message == "boom"
        assert rows[0].executed_at >= rows[1].executed_at >= rows[2].executed_at
