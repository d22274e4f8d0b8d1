"""Tests for TaskStore validation, re-arming and events."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from do_in_time.errors import InvalidTaskError, TaskNotFoundError, TimeParseError
from do_in_time.models.task import (
    ExecutionAction,
    ExecutionStatus,
    RepeatConfig,
    RepeatInterval,
    TaskStatus,
)
from do_in_time.services.task_store import rearm


class TestCreate:
    """Tests for TaskStore.create."""

    async def test_arms_cursors_from_times(self, store, make_task):
        task = make_task()
        task.close_time = task.start_time + timedelta(minutes=30)

        created = await store.create(task)

        assert created.id is not None
        assert created.status == TaskStatus.ACTIVE
        assert created.execution_count == 0
        assert created.next_open_execution == task.start_time
        assert created.next_close_execution == task.close_time
        assert created.last_open_execution is None

    async def test_without_close_time(self, store, make_task):
        created = await store.create(make_task())
        assert created.next_close_execution is None

    async def test_publishes_event(self, store, broadcaster, make_task):
        queue = broadcaster.subscribe()
        created = await store.create(make_task())

        assert queue.get_nowait() == {"event": "task-updated", "task_id": created.id}

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "  "},
            {"url": "javascript:alert(1)"},
            {"browser_profile": "../other"},
            {"repeat_config": RepeatConfig(interval=RepeatInterval.DAILY, end_after=0)},
        ],
    )
    async def test_rejects_invalid_task(self, store, make_task, overrides):
        with pytest.raises(InvalidTaskError):
            await store.create(make_task(**overrides))

    async def test_rejects_close_before_start(self, store, make_task):
        task = make_task()
        task.close_time = task.start_time
        with pytest.raises(InvalidTaskError, match="after start time"):
            await store.create(task)

    async def test_rejects_naive_start_time(self, store, make_task):
        with pytest.raises(InvalidTaskError):
            await store.create(make_task(start_time=datetime(2030, 1, 1, 9, 0)))

    async def test_rejects_unknown_timezone(self, store, make_task):
        with pytest.raises(TimeParseError):
            await store.create(make_task(timezone="Nowhere/Special"))

    async def test_url_is_optional(self, store, make_task):
        created = await store.create(make_task(url=None))
        assert created.url is None


class TestReadAndDelete:
    """Tests for get, list and delete."""

    async def test_get_not_found(self, store):
        with pytest.raises(TaskNotFoundError) as exc_info:
            await store.get(42)
        assert exc_info.value.task_id == 42

    async def test_list(self, store, make_task):
        await store.create(make_task(name="a"))
        await store.create(make_task(name="b"))

        assert sorted(t.name for t in await store.list()) == ["a", "b"]

    async def test_delete_removes_task_and_history(self, store, make_task):
        created = await store.create(make_task())
        await store.log_execution(created.id, ExecutionAction.OPEN, ExecutionStatus.SUCCESS)

        await store.delete(created.id)

        with pytest.raises(TaskNotFoundError):
            await store.get(created.id)
        with pytest.raises(TaskNotFoundError):
            await store.get_execution_history(created.id)

    async def test_delete_not_found(self, store):
        with pytest.raises(TaskNotFoundError):
            await store.delete(7)


class TestUpdate:
    """Tests for TaskStore.update."""

    async def test_non_schedule_change_keeps_cursors(self, store, make_task):
        created = await store.create(make_task())

        updated = await store.update(created.id, replace(created, name="Renamed"))

        assert updated.name == "Renamed"
        assert updated.next_open_execution == created.next_open_execution

    async def test_stale_runtime_state_is_not_written_back(
        self, store, executor, make_task, utcnow
    ):
        snapshot = await store.create(make_task(start_time=utcnow - timedelta(minutes=1)))
        await executor.execute(snapshot, ExecutionAction.OPEN)

        updated = await store.update(snapshot.id, replace(snapshot, name="Renamed"))

        assert updated.name == "Renamed"
        assert updated.status == TaskStatus.COMPLETED
        assert updated.execution_count == 1
        assert updated.next_open_execution is None
        assert updated.last_open_execution is not None
        assert await store.get_next_due_action() is None

    async def test_schedule_change_rearms_from_stored_state(
        self, store, executor, make_task, utcnow
    ):
        start = utcnow - timedelta(minutes=1)
        snapshot = await store.create(
            make_task(
                start_time=start,
                close_time=start + timedelta(hours=1),
                repeat_config=RepeatConfig(interval=RepeatInterval.DAILY),
            )
        )
        await executor.execute(snapshot, ExecutionAction.OPEN)

        updated = await store.update(
            snapshot.id, replace(snapshot, close_time=start + timedelta(hours=2))
        )

        assert updated.execution_count == 1
        assert updated.next_open_execution == start + timedelta(days=1)
        assert updated.next_close_execution == start + timedelta(hours=2)

    async def test_schedule_change_rearms_completed_task(self, store, make_task, utcnow):
        created = await store.create(make_task())
        created.status = TaskStatus.COMPLETED
        created.next_open_execution = None
        created.execution_count = 1
        created.last_open_execution = utcnow
        await store.save(created)

        new_start = utcnow + timedelta(hours=3)
        updated = await store.update(created.id, replace(created, start_time=new_start))

        assert updated.status == TaskStatus.ACTIVE
        assert updated.next_open_execution == new_start
        assert updated.execution_count == 0
        assert updated.last_open_execution is None

    async def test_schedule_change_rearms_failed_task(self, store, make_task, utcnow):
        created = await store.create(make_task())
        created.status = TaskStatus.FAILED
        await store.save(created)

        new_close = created.start_time + timedelta(minutes=5)
        updated = await store.update(created.id, replace(created, close_time=new_close))

        assert updated.status == TaskStatus.ACTIVE
        assert updated.next_close_execution == new_close

    async def test_update_validates(self, store, make_task):
        created = await store.create(make_task())
        with pytest.raises(InvalidTaskError):
            await store.update(created.id, replace(created, url="ftp://example.com"))

    async def test_update_not_found(self, store, make_task):
        with pytest.raises(TaskNotFoundError):
            await store.update(99, make_task())


class TestRearm:
    """Tests for cursor recomputation after a schedule edit."""

    NOW = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)

    def test_one_shot_in_the_past_completes(self, make_task):
        task = make_task(start_time=self.NOW - timedelta(hours=1))
        rearm(task, self.NOW)

        assert task.next_open_execution is None
        assert task.status == TaskStatus.COMPLETED

    def test_one_shot_keeps_future_close(self, make_task):
        task = make_task(
            start_time=self.NOW - timedelta(hours=1),
            close_time=self.NOW + timedelta(hours=1),
        )
        rearm(task, self.NOW)

        assert task.next_open_execution is None
        assert task.next_close_execution == self.NOW + timedelta(hours=1)
        assert task.status == TaskStatus.ACTIVE

    def test_repeating_walks_to_next_occurrence(self, make_task):
        start = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        task = make_task(
            start_time=start,
            close_time=start + timedelta(hours=1),
            repeat_config=RepeatConfig(interval=RepeatInterval.DAILY),
        )
        rearm(task, self.NOW)

        assert task.next_open_execution == datetime(2025, 6, 11, 9, 0, tzinfo=timezone.utc)
        assert task.next_close_execution == datetime(2025, 6, 11, 10, 0, tzinfo=timezone.utc)
        assert task.status == TaskStatus.ACTIVE

    def test_repeating_keeps_close_of_occurrence_in_progress(self, make_task):
        start = datetime(2025, 6, 1, 11, 0, tzinfo=timezone.utc)
        task = make_task(
            start_time=start,
            close_time=start + timedelta(hours=2),
            repeat_config=RepeatConfig(interval=RepeatInterval.DAILY),
        )
        rearm(task, self.NOW)

        assert task.next_open_execution == datetime(2025, 6, 11, 11, 0, tzinfo=timezone.utc)
        assert task.next_close_execution == datetime(2025, 6, 10, 13, 0, tzinfo=timezone.utc)

    def test_repeating_past_end_date_completes(self, make_task):
        start = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        task = make_task(
            start_time=start,
            repeat_config=RepeatConfig(
                interval=RepeatInterval.DAILY, end_date=datetime(2025, 6, 5, tzinfo=timezone.utc)
            ),
        )
        rearm(task, self.NOW)

        assert task.next_open_execution is None
        assert task.status == TaskStatus.COMPLETED


class TestExecutionLog:
    """Tests for the execution log."""

    async def test_history_newest_first(self, store, make_task):
        created = await store.create(make_task())
        await store.log_execution(created.id, ExecutionAction.OPEN, ExecutionStatus.SUCCESS)
        await store.log_execution(
            created.id, ExecutionAction.CLOSE, ExecutionStatus.FAILED, "no such process"
        )

        history = await store.get_execution_history(created.id)

        assert [h.action for h in history] == [ExecutionAction.CLOSE, ExecutionAction.OPEN]
        assert history[0].error_message == "no such process"
        assert history[1].error_message is None

    async def test_history_capped_at_fifty(self, store, make_task):
        created = await store.create(make_task())
        for _ in range(55):
            await store.log_execution(created.id, ExecutionAction.OPEN, ExecutionStatus.SUCCESS)

        assert len(await store.get_execution_history(created.id)) == 50
