"""Storage backend contract shared by the in-memory and SQL implementations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, runtime_checkable

__all__ = [
    "INT64_MAX",
    "INT64_MIN",
    "CounterOverflowError",
    "MetricsSnapshot",
    "MetricsStorage",
    "StorageError",
    "SupportsPing",
]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class StorageError(RuntimeError):
    """Raised when a backend cannot complete a read or write."""


class CounterOverflowError(StorageError):
    """Raised when accumulating a delta would leave the signed 64-bit range."""

    def __init__(self, name: str, current: int, delta: int) -> None:
        super().__init__(
            f"counter '{name}' overflows int64 ({current} + {delta})"
        )
        self.name = name
        self.current = current
        self.delta = delta


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of every gauge and counter."""

    gauges: Dict[str, float] = field(default_factory=dict)
    counters: Dict[str, int] = field(default_factory=dict)


class MetricsStorage(Protocol):  # pragma: no cover - interface only
    """Capability interface the metrics service depends on."""

    def set_gauge(self, name: str, value: float) -> None: ...

    def increment_counter(self, name: str, delta: int) -> None: ...

    def get_gauge(self, name: str) -> Optional[float]: ...

    def get_counter(self, name: str) -> Optional[int]: ...

    def list_gauges(self) -> Dict[str, float]: ...

    def list_counters(self) -> Dict[str, int]: ...

    def snapshot(self) -> MetricsSnapshot: ...

    def close(self) -> None: ...


@runtime_checkable
class SupportsPing(Protocol):  # pragma: no cover - interface only
    """Backends with a reachable durable store expose a bounded health probe."""

    def ping(self, timeout: float = 2.0) -> bool: ...
