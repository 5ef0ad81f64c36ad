"""Durable snapshot adapters for the metrics service."""

from __future__ import annotations

import json
import math
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Protocol, Tuple

from ..storage.base import INT64_MAX, INT64_MIN

__all__ = [
    "FileStateStore",
    "PersistenceError",
    "StateStore",
    "decode_state",
    "encode_state",
]


class PersistenceError(RuntimeError):
    """Raised when the durable medium cannot be written or read back."""


class StateStore(Protocol):  # pragma: no cover - interface only
    """Storage-agnostic persistence for a full gauges/counters snapshot."""

    def save(
        self, path: str, gauges: Mapping[str, float], counters: Mapping[str, int]
    ) -> None: ...

    def load(self, path: str) -> Tuple[Dict[str, float], Dict[str, int]]: ...


def encode_state(gauges: Mapping[str, float], counters: Mapping[str, int]) -> str:
    """Serialize a snapshot deterministically (sorted keys, two-space indent)."""

    document = {"gauges": dict(gauges), "counters": dict(counters)}
    return json.dumps(document, indent=2, sort_keys=True, allow_nan=False)


def decode_state(raw: str) -> Tuple[Dict[str, float], Dict[str, int]]:
    """Parse and type-check a persisted record."""

    try:
        document = json.loads(raw, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"malformed metrics state: {exc}") from exc
    if not isinstance(document, dict):
        raise PersistenceError("metrics state must be a JSON object")

    raw_gauges = document.get("gauges")
    raw_counters = document.get("counters")
    if raw_gauges is None:
        raw_gauges = {}
    if raw_counters is None:
        raw_counters = {}
    if not isinstance(raw_gauges, dict) or not isinstance(raw_counters, dict):
        raise PersistenceError("'gauges' and 'counters' must be JSON objects")

    gauges: Dict[str, float] = {}
    for name, value in raw_gauges.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PersistenceError(f"gauge '{name}' is not a number: {value!r}")
        if not math.isfinite(value):
            raise PersistenceError(f"gauge '{name}' is not finite")
        gauges[name] = float(value)

    counters: Dict[str, int] = {}
    for name, value in raw_counters.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise PersistenceError(f"counter '{name}' is not an integer: {value!r}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise PersistenceError(f"counter '{name}' is outside the int64 range")
        counters[name] = value
    return gauges, counters


def _reject_constant(token: str) -> float:
    raise PersistenceError(f"malformed metrics state: {token} is not valid JSON")


class FileStateStore(StateStore):
    """Persists the snapshot as pretty-printed JSON, replaced atomically."""

    def save(
        self, path: str, gauges: Mapping[str, float], counters: Mapping[str, int]
    ) -> None:
        if not path:
            return
        try:
            content = encode_state(gauges, counters)
        except ValueError as exc:
            raise PersistenceError(f"metrics state is not serializable: {exc}") from exc
        try:
            _atomic_write_text(Path(path), content)
        except OSError as exc:
            raise PersistenceError(f"failed to write metrics state to {path}: {exc}") from exc

    def load(self, path: str) -> Tuple[Dict[str, float], Dict[str, int]]:
        if not path:
            return {}, {}
        target = Path(path)
        try:
            raw = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}, {}
        except OSError as exc:
            raise PersistenceError(f"failed to read metrics state from {path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise PersistenceError(f"metrics state in {path} is not UTF-8: {exc}") from exc
        return decode_state(raw)


def _atomic_write_text(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)
