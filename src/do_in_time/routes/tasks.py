"""Task CRUD and execution history endpoints."""

from fastapi import APIRouter, Query, Response

from do_in_time.dependencies import TaskStoreDep
from do_in_time.models.api import (
    TaskCreate,
    TaskExecutionResponse,
    TaskResponse,
    TaskUpdate,
)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("")
async def list_tasks(store: TaskStoreDep) -> list[TaskResponse]:
    return [TaskResponse.model_validate(t) for t in await store.list()]


@router.post("", status_code=201)
async def create_task(body: TaskCreate, store: TaskStoreDep) -> TaskResponse:
    task = await store.create(body.to_task())
    return TaskResponse.model_validate(task)


@router.get("/{task_id}")
async def get_task(task_id: int, store: TaskStoreDep) -> TaskResponse:
    return TaskResponse.model_validate(await store.get(task_id))


@router.put("/{task_id}")
async def update_task(
    task_id: int, body: TaskUpdate, store: TaskStoreDep
) -> TaskResponse:
    """Apply a partial update; schedule changes re-arm the task."""
    current = await store.get(task_id)
    task = await store.update(task_id, body.apply_to(current))
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=204)
async def delete_task(task_id: int, store: TaskStoreDep) -> Response:
    await store.delete(task_id)
    return Response(status_code=204)


@router.get("/{task_id}/executions")
async def list_task_executions(
    task_id: int,
    store: TaskStoreDep,
    limit: int = Query(default=50, ge=1, le=50),
) -> list[TaskExecutionResponse]:
    """Most recent execution attempts of a task, newest first."""
    executions = await store.get_execution_history(task_id, limit=limit)
    return [TaskExecutionResponse.model_validate(e) for e in executions]
