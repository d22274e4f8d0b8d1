from .browser import BrowserLauncher, create_browser_launcher
from .events import TaskEventBroadcaster
from .executor import TaskExecutor, should_continue_repeating
from .recurrence import next_occurrence
from .scheduler import SchedulerService
from .task_store import TaskStore

__all__ = [
    "BrowserLauncher",
    "create_browser_launcher",
    "TaskEventBroadcaster",
    "TaskExecutor",
    "should_continue_repeating",
    "next_occurrence",
    "SchedulerService",
    "TaskStore",
]
