"""Volatile metrics storage guarded by a reader/writer lock."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Condition, Lock
from typing import Dict, Iterator, Optional

from .base import INT64_MAX, INT64_MIN, CounterOverflowError, MetricsSnapshot, MetricsStorage

__all__ = ["InMemoryMetricsStorage", "ReadWriteLock"]


class ReadWriteLock:
    """Shared/exclusive lock; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = Condition(Lock())
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer_active or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True
        try:
            yield
        finally:
            with self._cond:
                self._writer_active = False
                self._cond.notify_all()


class InMemoryMetricsStorage(MetricsStorage):
    """Process-local store used when no database DSN is configured."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._gauges: Dict[str, float] = {}
        self._counters: Dict[str, int] = {}

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock.write():
            self._gauges[name] = value

    def increment_counter(self, name: str, delta: int) -> None:
        with self._lock.write():
            current = self._counters.get(name, 0)
            updated = current + delta
            if not INT64_MIN <= updated <= INT64_MAX:
                raise CounterOverflowError(name, current, delta)
            self._counters[name] = updated

    def get_gauge(self, name: str) -> Optional[float]:
        with self._lock.read():
            return self._gauges.get(name)

    def get_counter(self, name: str) -> Optional[int]:
        with self._lock.read():
            return self._counters.get(name)

    def list_gauges(self) -> Dict[str, float]:
        with self._lock.read():
            return dict(self._gauges)

    def list_counters(self) -> Dict[str, int]:
        with self._lock.read():
            return dict(self._counters)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock.read():
            return MetricsSnapshot(gauges=dict(self._gauges), counters=dict(self._counters))

    def close(self) -> None:
        """Nothing to release; the maps live and die with the process."""
