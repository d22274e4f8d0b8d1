"""Scheduler lifecycle endpoints."""

from fastapi import APIRouter

from do_in_time.dependencies import SchedulerDep
from do_in_time.models.api import SchedulerStatusResponse

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/status")
async def get_status(scheduler: SchedulerDep) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(running=await scheduler.is_running())


@router.post("/start")
async def start_scheduler(scheduler: SchedulerDep) -> SchedulerStatusResponse:
    """Start the scheduler loop. 409 if it is already running."""
    await scheduler.start()
    return SchedulerStatusResponse(running=True)


@router.post("/stop")
async def stop_scheduler(scheduler: SchedulerDep) -> SchedulerStatusResponse:
    """Stop the scheduler loop. 409 if it is not running."""
    await scheduler.stop()
    return SchedulerStatusResponse(running=False)
