"""do-in-time FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from do_in_time.config import Settings
from do_in_time.db import create_engine, create_session_factory, ensure_sqlite_directory
from do_in_time.db.models import Base
from do_in_time.errors import DoInTimeError
from do_in_time.routes import (
    browsers_router,
    scheduler_router,
    tasks_router,
    websocket_router,
)
from do_in_time.services import (
    SchedulerService,
    TaskEventBroadcaster,
    TaskExecutor,
    TaskStore,
    create_browser_launcher,
)

logger = logging.getLogger(__name__)


async def handle_do_in_time_error(request: Request, exc: DoInTimeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    engine = create_engine(settings.database_url, echo=settings.db_echo)
    session_factory = create_session_factory(engine)
    logger.info(f"Database connection configured: {settings.database_url}")

    # Initialize core services
    broadcaster = TaskEventBroadcaster()
    task_store = TaskStore(session_factory, broadcaster=broadcaster)
    browser_launcher = create_browser_launcher(
        close_by_url_fallback=settings.close_by_url_fallback
    )
    executor = TaskExecutor(task_store, browser_launcher, broadcaster=broadcaster)
    scheduler = SchedulerService(
        task_store,
        executor,
        idle_interval=settings.scheduler_idle_interval,
        max_sleep=settings.scheduler_max_sleep,
        error_backoff=settings.scheduler_error_backoff,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("do-in-time starting up")

        ensure_sqlite_directory(settings.database_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

        if settings.scheduler_autostart:
            await scheduler.start()

        yield

        if await scheduler.is_running():
            await scheduler.stop(wait=True)

        await engine.dispose()
        logger.info("Database connection closed")

        logger.info("do-in-time shutting down")

    app = FastAPI(
        title="do-in-time",
        description="Schedule browsers to open and close at given times",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store services in app.state for dependency injection
    app.state.settings = settings
    app.state.broadcaster = broadcaster
    app.state.task_store = task_store
    app.state.browser_launcher = browser_launcher
    app.state.executor = executor
    app.state.scheduler = scheduler

    app.add_exception_handler(DoInTimeError, handle_do_in_time_error)

    # Include routers
    app.include_router(tasks_router)
    app.include_router(scheduler_router)
    app.include_router(browsers_router)
    app.include_router(websocket_router)

    return app
