"""FastAPI dependency injection providers for services."""

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request, WebSocket

if TYPE_CHECKING:
    from do_in_time.services import (
        BrowserLauncher,
        SchedulerService,
        TaskEventBroadcaster,
        TaskStore,
    )


def get_task_store(request: Request) -> "TaskStore":
    """Get the task store from app state."""
    return request.app.state.task_store


def get_scheduler(request: Request) -> "SchedulerService":
    """Get the scheduler service from app state."""
    return request.app.state.scheduler


def get_browser_launcher(request: Request) -> "BrowserLauncher":
    """Get the browser launcher from app state."""
    return request.app.state.browser_launcher


# WebSocket-specific dependencies (WebSocket routes don't have Request)
def get_broadcaster_ws(websocket: WebSocket) -> "TaskEventBroadcaster":
    """Get the event broadcaster from app state (for WebSocket routes)."""
    return websocket.app.state.broadcaster


TaskStoreDep = Annotated["TaskStore", Depends(get_task_store)]
SchedulerDep = Annotated["SchedulerService", Depends(get_scheduler)]
BrowserLauncherDep = Annotated["BrowserLauncher", Depends(get_browser_launcher)]

# WebSocket-specific dependencies
BroadcasterWsDep = Annotated["TaskEventBroadcaster", Depends(get_broadcaster_ws)]
