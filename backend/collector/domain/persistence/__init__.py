"""Durable persistence of metrics snapshots."""

from .state_store import (
    FileStateStore,
    PersistenceError,
    StateStore,
    decode_state,
    encode_state,
)

__all__ = [
    "FileStateStore",
    "PersistenceError",
    "StateStore",
    "decode_state",
    "encode_state",
]
