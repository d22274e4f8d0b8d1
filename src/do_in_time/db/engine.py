"""Database engine and session management."""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine(
    database_url: str,
    echo: bool = False,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: SQLite connection URL (sqlite+aiosqlite:///path/to/data.db)
        echo: Whether to log SQL statements

    Returns:
        Configured AsyncEngine instance
    """
    engine = create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections on checkout
    )

    if engine.dialect.name == "sqlite":
        # Execution rows are removed by ON DELETE CASCADE
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: The async engine to use

    Returns:
        Session factory that produces AsyncSession instances
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
