"""Shared metrics domain types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Optional

__all__ = [
    "BadKindError",
    "BadValueError",
    "MetricEnvelope",
    "MetricKind",
    "MetricsServiceError",
    "PersistenceConfig",
    "PersistenceState",
    "PersistenceStateError",
]


class MetricsServiceError(Exception):
    """Domain exception propagated to API handlers."""

    def __init__(
        self,
        *,
        status_code: HTTPStatus,
        error_code: str,
        message: str,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}


class BadValueError(MetricsServiceError):
    """Unparseable, NaN, or infinite numeric input."""

    def __init__(self, details: Dict[str, Any] | None = None) -> None:
        super().__init__(
            status_code=HTTPStatus.BAD_REQUEST,
            error_code="bad_value",
            message="bad value",
            details=details,
        )


class BadKindError(MetricsServiceError):
    """Metric type other than gauge or counter."""

    def __init__(self, kind: str) -> None:
        super().__init__(
            status_code=HTTPStatus.BAD_REQUEST,
            error_code="bad_kind",
            message="bad metric type",
            details={"kind": kind},
        )


class PersistenceStateError(RuntimeError):
    """Persistence lifecycle call made in the wrong state."""


class MetricKind(str, Enum):
    """Enumerates supported metric types."""

    GAUGE = "gauge"
    COUNTER = "counter"

    @classmethod
    def parse(cls, raw: str) -> "MetricKind":
        try:
            return cls(raw)
        except ValueError:
            raise BadKindError(raw) from None


class PersistenceState(str, Enum):
    UNCONFIGURED = "unconfigured"
    IDLE = "idle"
    AUTOSAVING = "autosaving"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PersistenceConfig:
    """Where and how often the service flushes its snapshot.

    ``store_interval`` of zero means write-through after every update; an
    empty ``file_path`` disables persistence.
    """

    file_path: str = ""
    store_interval: float = 0
    restore: bool = False

    def __post_init__(self) -> None:
        if self.store_interval < 0:
            raise ValueError("store_interval must be >= 0")


@dataclass(frozen=True)
class MetricEnvelope:
    """Wire-level metric: exactly one of ``value``/``delta`` matters per kind."""

    id: str
    kind: str
    value: Optional[float] = None
    delta: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "type": self.kind}
        if self.value is not None:
            payload["value"] = self.value
        if self.delta is not None:
            payload["delta"] = self.delta
        return payload
