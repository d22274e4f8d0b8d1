"""Exception hierarchy for do-in-time.

Hierarchy:
    DoInTimeError
    ├── AlreadyRunningError
    ├── NotRunningError
    ├── InvalidTaskError
    ├── TaskNotFoundError
    ├── TimeParseError
    ├── BrowserNotFoundError
    └── BrowserActionError

Each class carries the HTTP status the command surface answers with.
"""


class DoInTimeError(Exception):
    """Base class for all do-in-time exceptions."""

    status_code: int = 500


class AlreadyRunningError(DoInTimeError):
    """The scheduler was started while already running."""

    status_code = 409

    def __init__(self) -> None:
        super().__init__("Already running")


class NotRunningError(DoInTimeError):
    """The scheduler was stopped while not running."""

    status_code = 409

    def __init__(self) -> None:
        super().__init__("Not running")


class InvalidTaskError(DoInTimeError):
    """Task configuration failed validation."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid task configuration: {message}")


class TaskNotFoundError(DoInTimeError):
    """No task with the given id exists."""

    status_code = 404

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class TimeParseError(DoInTimeError):
    """Unknown timezone or an unrepresentable local time."""

    status_code = 422

    def __init__(self, message: str) -> None:
        super().__init__(f"Time parsing error: {message}")


class BrowserNotFoundError(DoInTimeError):
    """The requested browser is not available on this machine."""

    status_code = 422

    def __init__(self, message: str) -> None:
        super().__init__(f"Browser not found: {message}")


class BrowserActionError(DoInTimeError):
    """The OS failed to launch or close a browser."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Browser action failed: {message}")
