"""Metrics ingestion domain: parsing, formatting, and the service layer."""

from .service import ErrorCallback, MetricsService, log_persistence_error
from .types import (
    BadKindError,
    BadValueError,
    MetricEnvelope,
    MetricKind,
    MetricsServiceError,
    PersistenceConfig,
    PersistenceState,
    PersistenceStateError,
)
from .values import format_counter, format_gauge, parse_counter_delta, parse_gauge_value

__all__ = [
    "BadKindError",
    "BadValueError",
    "ErrorCallback",
    "MetricEnvelope",
    "MetricKind",
    "MetricsService",
    "MetricsServiceError",
    "PersistenceConfig",
    "PersistenceState",
    "PersistenceStateError",
    "format_counter",
    "format_gauge",
    "log_persistence_error",
    "parse_counter_delta",
    "parse_gauge_value",
]
