"""Metrics service orchestrating validation, storage, and persistence."""

from __future__ import annotations

import math
import threading
from typing import Callable, Dict, Optional

from ...infra.logging import get_logger
from ..persistence import FileStateStore, PersistenceError, StateStore
from ..storage import CounterOverflowError, MetricsSnapshot, MetricsStorage, StorageError
from .types import (
    BadValueError,
    MetricEnvelope,
    MetricKind,
    PersistenceConfig,
    PersistenceState,
    PersistenceStateError,
)
from .values import format_counter, format_gauge, parse_counter_delta, parse_gauge_value

__all__ = ["ErrorCallback", "MetricsService", "log_persistence_error"]

logger = get_logger(__name__)

ErrorCallback = Callable[[Exception], None]


def log_persistence_error(exc: Exception) -> None:
    logger.error(
        "metrics_persistence_failed",
        exc_info=exc,
        extra={"error": str(exc), "error_type": type(exc).__name__},
    )


def _resolve_kind(kind: MetricKind | str) -> MetricKind:
    if isinstance(kind, MetricKind):
        return kind
    return MetricKind.parse(kind)


class MetricsService:
    """Validation and persistence policy layered over a storage backend.

    The service only ever talks to the ``MetricsStorage`` interface; which
    backend sits behind it is decided once at composition time.
    """

    def __init__(
        self,
        storage: MetricsStorage,
        *,
        state_store: StateStore | None = None,
    ) -> None:
        self._storage = storage
        self._state_store = state_store or FileStateStore()
        self._config = PersistenceConfig()
        self._state = PersistenceState.UNCONFIGURED
        self._on_error: ErrorCallback = log_persistence_error
        self._has_writes = False
        self._restored = False
        self._lifecycle_lock = threading.Lock()
        self._save_lock = threading.Lock()

    @property
    def storage(self) -> MetricsStorage:
        return self._storage

    @property
    def persistence_state(self) -> PersistenceState:
        return self._state

    @property
    def persistence_config(self) -> PersistenceConfig:
        return self._config

    # ------------------------------------------------------------------
    # Ingestion and queries
    # ------------------------------------------------------------------
    def update_metric(self, kind: MetricKind | str, name: str, raw_value: str) -> None:
        """Parse ``raw_value`` for ``kind`` and apply it to storage.

        Raises ``BadKindError`` for an unknown kind and ``BadValueError`` for
        input that does not parse. In write-through mode the snapshot is
        flushed before returning; flush failures go to ``on_error``.
        """

        metric_kind = _resolve_kind(kind)
        if not name:
            raise BadValueError({"name": name})
        if metric_kind is MetricKind.GAUGE:
            self._storage.set_gauge(name, parse_gauge_value(raw_value))
        else:
            delta = parse_counter_delta(raw_value)
            try:
                self._storage.increment_counter(name, delta)
            except CounterOverflowError as exc:
                raise BadValueError({"name": name, "delta": delta}) from exc
        self._has_writes = True
        self._write_through()

    def get_metric(self, kind: MetricKind | str, name: str) -> Optional[str]:
        """Return the canonical text value, or ``None`` when never written."""

        metric_kind = _resolve_kind(kind)
        if metric_kind is MetricKind.GAUGE:
            value = self._storage.get_gauge(name)
            return None if value is None else format_gauge(value)
        counter = self._storage.get_counter(name)
        return None if counter is None else format_counter(counter)

    def update_envelope(self, envelope: MetricEnvelope) -> MetricEnvelope:
        """Apply a JSON envelope and echo the metric's current value."""

        metric_kind = _resolve_kind(envelope.kind)
        if not envelope.id:
            raise BadValueError({"id": envelope.id})
        if metric_kind is MetricKind.GAUGE:
            if envelope.value is None or not math.isfinite(envelope.value):
                raise BadValueError({"id": envelope.id, "value": envelope.value})
            self.update_metric(metric_kind, envelope.id, format_gauge(envelope.value))
            return MetricEnvelope(
                id=envelope.id,
                kind=metric_kind.value,
                value=self._storage.get_gauge(envelope.id),
            )
        if envelope.delta is None:
            raise BadValueError({"id": envelope.id, "delta": None})
        self.update_metric(metric_kind, envelope.id, format_counter(envelope.delta))
        return MetricEnvelope(
            id=envelope.id,
            kind=metric_kind.value,
            delta=self._storage.get_counter(envelope.id),
        )

    def get_envelope(self, envelope: MetricEnvelope) -> Optional[MetricEnvelope]:
        metric_kind = _resolve_kind(envelope.kind)
        if not envelope.id:
            raise BadValueError({"id": envelope.id})
        if metric_kind is MetricKind.GAUGE:
            value = self._storage.get_gauge(envelope.id)
            if value is None:
                return None
            return MetricEnvelope(id=envelope.id, kind=metric_kind.value, value=value)
        delta = self._storage.get_counter(envelope.id)
        if delta is None:
            return None
        return MetricEnvelope(id=envelope.id, kind=metric_kind.value, delta=delta)

    def list_gauges(self) -> Dict[str, float]:
        return self._storage.list_gauges()

    def list_counters(self) -> Dict[str, int]:
        return self._storage.list_counters()

    def snapshot(self) -> MetricsSnapshot:
        return self._storage.snapshot()

    # ------------------------------------------------------------------
    # Persistence policy
    # ------------------------------------------------------------------
    def configure_persistence(
        self,
        config: PersistenceConfig,
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        with self._lifecycle_lock:
            if self._state is not PersistenceState.UNCONFIGURED:
                raise PersistenceStateError("persistence is already configured")
            self._config = config
            if on_error is not None:
                self._on_error = on_error
            self._state = PersistenceState.IDLE
        logger.info(
            "metrics_persistence_configured",
            extra={
                "file_path": config.file_path,
                "store_interval": config.store_interval,
                "restore": config.restore,
                "write_through": self._is_write_through(),
            },
        )

    def restore_state(self) -> None:
        """Reset storage to the persisted snapshot.

        Gauges are replaced and counters are brought to their saved totals,
        so restoring into a non-empty store yields the saved values rather
        than sums. Names absent from the record are left as they are. A
        corrupt record raises ``PersistenceError``.
        """

        with self._lifecycle_lock:
            config = self._config
            if self._state is PersistenceState.UNCONFIGURED:
                return
            if not config.restore or not config.file_path:
                return
            if self._restored:
                raise PersistenceStateError("state has already been restored")
            if self._state is not PersistenceState.IDLE or self._has_writes:
                raise PersistenceStateError("restore must run before the first write")

            gauges, counters = self._state_store.load(config.file_path)
            current = self._storage.list_counters()
            for name, value in gauges.items():
                self._storage.set_gauge(name, value)
            for name, total in counters.items():
                existing = current.get(name)
                if existing is None or existing != total:
                    self._storage.increment_counter(name, total - (existing or 0))
            self._restored = True
        logger.info(
            "metrics_state_restored",
            extra={
                "file_path": config.file_path,
                "gauges": len(gauges),
                "counters": len(counters),
            },
        )

    def save_state(self) -> None:
        """Write the current snapshot through the state store.

        A no-op without a configured path. Errors propagate to the caller.
        """

        path = self._config.file_path
        if not path:
            return
        with self._save_lock:
            snapshot = self._storage.snapshot()
            self._state_store.save(path, snapshot.gauges, snapshot.counters)

    def start_auto_save(
        self,
        stop_event: threading.Event,
        *,
        on_error: ErrorCallback | None = None,
    ) -> Optional[threading.Thread]:
        """Start the periodic flush thread; returns ``None`` when none is needed."""

        handler = on_error or self._on_error
        with self._lifecycle_lock:
            if self._state is PersistenceState.UNCONFIGURED:
                raise PersistenceStateError("persistence is not configured")
            if self._state is not PersistenceState.IDLE:
                raise PersistenceStateError("autosave has already been started")
            interval = self._config.store_interval
            if not self._config.file_path or interval <= 0:
                return None
            self._state = PersistenceState.AUTOSAVING

        thread = threading.Thread(
            target=self._auto_save_loop,
            args=(stop_event, interval, handler),
            name="metrics-autosave",
            daemon=True,
        )
        thread.start()
        logger.info(
            "metrics_autosave_started",
            extra={"file_path": self._config.file_path, "store_interval": interval},
        )
        return thread

    def _auto_save_loop(
        self,
        stop_event: threading.Event,
        interval: float,
        handler: ErrorCallback,
    ) -> None:
        try:
            while not stop_event.wait(interval):
                try:
                    self.save_state()
                except (PersistenceError, StorageError) as exc:
                    handler(exc)
        finally:
            with self._lifecycle_lock:
                self._state = PersistenceState.STOPPED
            logger.info("metrics_autosave_stopped", extra={"file_path": self._config.file_path})

    def _is_write_through(self) -> bool:
        return bool(self._config.file_path) and self._config.store_interval == 0

    def _write_through(self) -> None:
        if self._state is PersistenceState.UNCONFIGURED or not self._is_write_through():
            return
        try:
            self.save_state()
        except (PersistenceError, StorageError) as exc:
            self._on_error(exc)

