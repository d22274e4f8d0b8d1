from .api import (
    InstalledBrowsersResponse,
    RepeatConfigSchema,
    SchedulerStatusResponse,
    TaskCreate,
    TaskExecutionResponse,
    TaskResponse,
    TaskUpdate,
)
from .task import (
    BrowserType,
    ExecutionAction,
    ExecutionStatus,
    RepeatConfig,
    RepeatInterval,
    Task,
    TaskExecution,
    TaskStatus,
)

__all__ = [
    # API schemas
    "InstalledBrowsersResponse",
    "RepeatConfigSchema",
    "SchedulerStatusResponse",
    "TaskCreate",
    "TaskExecutionResponse",
    "TaskResponse",
    "TaskUpdate",
    # Domain models
    "BrowserType",
    "ExecutionAction",
    "ExecutionStatus",
    "RepeatConfig",
    "RepeatInterval",
    "Task",
    "TaskExecution",
    "TaskStatus",
]
