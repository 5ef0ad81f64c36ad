"""FastAPI entrypoint for the metrics collection server."""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

from .api.errors import storage_error_handler
from .api.middleware import GzipRequestMiddleware, RequestLoggingMiddleware
from .api.routers import dashboard, health, updates, values
from .config import Settings, load_settings
from .domain.metrics import MetricsService, PersistenceConfig
from .domain.persistence import PersistenceError, StateStore
from .domain.storage import MetricsStorage, StorageError, build_metrics_storage
from .infra.logging import get_logger

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    storage: MetricsStorage | None = None,
    state_store: StateStore | None = None,
) -> FastAPI:
    """Compose storage and service, then register middleware and routers.

    Restore, autosave and the final flush run inside the application
    lifespan so they bracket request handling.
    """

    settings = settings or load_settings()
    storage = storage or build_metrics_storage(settings.server.database_dsn or None)
    service = MetricsService(storage, state_store=state_store)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        persistence = settings.persistence
        service.configure_persistence(
            PersistenceConfig(
                file_path=persistence.file_storage_path,
                store_interval=persistence.store_interval,
                restore=persistence.restore,
            )
        )
        service.restore_state()
        stop_event = threading.Event()
        autosave = service.start_auto_save(stop_event)
        logger.info("metrics_server_started", extra={"address": settings.server.address})
        try:
            yield
        finally:
            stop_event.set()
            if autosave is not None:
                autosave.join()
            try:
                service.save_state()
            except (PersistenceError, StorageError) as exc:
                logger.error(
                    "metrics_shutdown_flush_failed",
                    exc_info=exc,
                    extra={"file_path": persistence.file_storage_path},
                )
            else:
                logger.info(
                    "metrics_shutdown_flush",
                    extra={"file_path": persistence.file_storage_path},
                )
            storage.close()
            logger.info("metrics_server_stopped")

    application = FastAPI(title="Metrics Collector", version="0.1.0", lifespan=lifespan)
    application.state.settings = settings
    application.state.metrics_service = service
    application.add_exception_handler(StorageError, storage_error_handler)

    # Outermost last: logging wraps response gzip, which wraps request inflation.
    application.add_middleware(GzipRequestMiddleware)
    application.add_middleware(GZipMiddleware, minimum_size=0)
    application.add_middleware(RequestLoggingMiddleware)

    for router in (
        health.router,
        dashboard.router,
        updates.router,
        values.router,
    ):
        application.include_router(router)
    return application
