from .browsers import router as browsers_router
from .scheduler import router as scheduler_router
from .tasks import router as tasks_router
from .websocket import router as websocket_router

__all__ = [
    "browsers_router",
    "scheduler_router",
    "tasks_router",
    "websocket_router",
]
