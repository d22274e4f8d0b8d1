import os
import sys
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def default_data_dir() -> Path:
    """Per-platform application data directory."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA")
        return Path(base) if base else Path(".")
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    base = os.environ.get("XDG_DATA_HOME")
    return Path(base) if base else Path.home() / ".local" / "share"


def default_database_url() -> str:
    return f"sqlite+aiosqlite:///{default_data_dir() / 'do-in-time' / 'data.db'}"


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8765

    # Database settings
    database_url: str = default_database_url()
    db_echo: bool = False

    # Scheduler settings
    scheduler_autostart: bool = True
    scheduler_idle_interval: float = 10.0  # Sleep when nothing is scheduled
    scheduler_max_sleep: float = 60.0  # Upper bound on a single wait for a future action
    scheduler_error_backoff: float = 5.0  # Sleep after a failed store read

    # Close a browser entirely when the platform cannot close a single URL's tabs
    close_by_url_fallback: bool = False

    model_config = SettingsConfigDict(env_prefix="DO_IN_TIME_")
