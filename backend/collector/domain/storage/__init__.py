"""Metrics storage backends."""

from __future__ import annotations

from ...infra.db import build_engine
from ...infra.logging import get_logger
from .base import (
    INT64_MAX,
    INT64_MIN,
    CounterOverflowError,
    MetricsSnapshot,
    MetricsStorage,
    StorageError,
    SupportsPing,
)
from .memory import InMemoryMetricsStorage, ReadWriteLock
from .sql import SqlMetricsStorage

__all__ = [
    "INT64_MAX",
    "INT64_MIN",
    "CounterOverflowError",
    "InMemoryMetricsStorage",
    "MetricsSnapshot",
    "MetricsStorage",
    "ReadWriteLock",
    "SqlMetricsStorage",
    "StorageError",
    "SupportsPing",
    "build_metrics_storage",
]

logger = get_logger(__name__)


def build_metrics_storage(database_dsn: str | None = None) -> MetricsStorage:
    """Factory that returns the SQL backend when a DSN is set, else the in-memory one."""

    if database_dsn:
        storage = SqlMetricsStorage(build_engine(database_dsn))
        logger.info(
            "metrics_storage_selected",
            extra={"backend": "sql", "dialect": storage.engine.dialect.name},
        )
        return storage
    logger.info("metrics_storage_selected", extra={"backend": "memory"})
    return InMemoryMetricsStorage()
