"""FastAPI application factory and lifespan management."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from searchsync.config import Settings
from searchsync.events import EventBus
from searchsync.middleware.auth import APIKeyMiddleware
from searchsync.middleware.errors import register_error_handlers
from searchsync.middleware.logging import RequestLoggingMiddleware
from searchsync.routes import admin, health, records, search
from searchsync.search.autocommit import run_auto_commit
from searchsync.services import SyncServices
from searchsync.sync.hooks import subscribe_mutation_hooks

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Opens the record store and search index, subscribes the mutation
    hooks to the event bus and starts the auto-commit task. Optionally
    rebuilds every registered class before serving.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info("api_startup", host=settings.host, port=settings.port)

    services = SyncServices(settings)
    services.open()

    if settings.reindex_on_startup:
        for record_class in services.registry.record_classes:
            await asyncio.to_thread(
                services.engine.reindex_class,
                record_class,
                settings.default_batch_size,
                settings.commit_per_batch,
            )

    event_bus = EventBus(
        queue_size=settings.event_queue_size,
        max_subscribers=settings.event_max_subscribers,
    )

    app.state.services = services
    app.state.event_bus = event_bus

    tasks = [
        await subscribe_mutation_hooks(event_bus, services.hooks, services.store),
        asyncio.create_task(
            run_auto_commit(
                services.search_index,
                settings.commit_interval,
                paused=lambda: services.engine.rebuild_in_progress,
            )
        ),
    ]

    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        services.close()
        logger.info("api_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="searchsync",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    register_error_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)
    if settings.key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.key)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(records.router, prefix="/api/v1")
    app.include_router(search.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
