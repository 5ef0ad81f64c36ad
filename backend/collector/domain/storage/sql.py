"""SQLAlchemy-backed metrics storage (PostgreSQL in production, SQLite in tests)."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from sqlalchemy import BigInteger, Column, Double, MetaData, Table, Text, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ...infra.db import DEFAULT_PING_TIMEOUT, ping_engine
from ...infra.logging import get_logger
from .base import (
    INT64_MAX,
    INT64_MIN,
    CounterOverflowError,
    MetricsSnapshot,
    MetricsStorage,
    StorageError,
)

__all__ = [
    "COUNTERS_TABLE",
    "GAUGES_TABLE",
    "METADATA",
    "SqlMetricsStorage",
]

logger = get_logger(__name__)

METADATA = MetaData()

GAUGES_TABLE = Table(
    "gauges",
    METADATA,
    Column("name", Text(), primary_key=True),
    Column("value", Double(), nullable=False),
)

COUNTERS_TABLE = Table(
    "counters",
    METADATA,
    Column("name", Text(), primary_key=True),
    Column("value", BigInteger(), nullable=False),
)

_UPSERT_DIALECTS: Dict[str, Callable] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _counter_headroom(delta: int):
    if delta > 0:
        return COUNTERS_TABLE.c.value <= INT64_MAX - delta
    if delta < 0:
        return COUNTERS_TABLE.c.value >= INT64_MIN - delta
    return None


class SqlMetricsStorage(MetricsStorage):
    """Each call is an independent upsert or point query against the database."""

    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        dialect = engine.dialect.name
        if dialect not in _UPSERT_DIALECTS:
            raise StorageError(f"unsupported database dialect: {dialect}")
        self._engine = engine
        self._insert = _UPSERT_DIALECTS[dialect]
        if create_schema:
            self.ensure_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    def ensure_schema(self) -> None:
        try:
            METADATA.create_all(self._engine, checkfirst=True)
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to create metrics schema: {exc}") from exc

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_gauge(self, name: str, value: float) -> None:
        stmt = self._insert(GAUGES_TABLE).values(name=name, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[GAUGES_TABLE.c.name],
            set_={"value": stmt.excluded.value},
        )
        self._execute_write(stmt, operation="set_gauge", name=name)

    def increment_counter(self, name: str, delta: int) -> None:
        # Single statement so concurrent agents never lose an increment. The
        # conflict update only fires while the sum stays inside int64; a
        # skipped update returns no row.
        stmt = self._insert(COUNTERS_TABLE).values(name=name, value=delta)
        stmt = stmt.on_conflict_do_update(
            index_elements=[COUNTERS_TABLE.c.name],
            set_={"value": COUNTERS_TABLE.c.value + stmt.excluded.value},
            where=_counter_headroom(delta),
        ).returning(COUNTERS_TABLE.c.value)
        row = self._execute_write(stmt, operation="increment_counter", name=name)
        if row is None:
            current = self.get_counter(name)
            raise CounterOverflowError(name, current if current is not None else 0, delta)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_gauge(self, name: str) -> Optional[float]:
        stmt = select(GAUGES_TABLE.c.value).where(GAUGES_TABLE.c.name == name)
        return self._scalar(stmt, operation="get_gauge")

    def get_counter(self, name: str) -> Optional[int]:
        stmt = select(COUNTERS_TABLE.c.value).where(COUNTERS_TABLE.c.name == name)
        return self._scalar(stmt, operation="get_counter")

    def list_gauges(self) -> Dict[str, float]:
        try:
            with self._engine.connect() as conn:
                return self._read_table(conn, GAUGES_TABLE)
        except SQLAlchemyError as exc:
            raise StorageError(f"list_gauges failed: {exc}") from exc

    def list_counters(self) -> Dict[str, int]:
        try:
            with self._engine.connect() as conn:
                return self._read_table(conn, COUNTERS_TABLE)
        except SQLAlchemyError as exc:
            raise StorageError(f"list_counters failed: {exc}") from exc

    def snapshot(self) -> MetricsSnapshot:
        try:
            with self._engine.begin() as conn:
                gauges = self._read_table(conn, GAUGES_TABLE)
                counters = self._read_table(conn, COUNTERS_TABLE)
        except SQLAlchemyError as exc:
            raise StorageError(f"snapshot failed: {exc}") from exc
        return MetricsSnapshot(gauges=gauges, counters=counters)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def ping(self, timeout: float = DEFAULT_PING_TIMEOUT) -> bool:
        return ping_engine(self._engine, timeout=timeout)

    def close(self) -> None:
        self._engine.dispose()
        logger.info("sql_metrics_storage_closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _execute_write(self, stmt, *, operation: str, name: str):
        try:
            with self._engine.begin() as conn:
                result = conn.execute(stmt)
                return result.first() if result.returns_rows else None
        except SQLAlchemyError as exc:
            logger.error(
                "sql_metrics_write_failed",
                extra={"operation": operation, "metric": name, "error": str(exc)},
            )
            raise StorageError(f"{operation} failed for '{name}': {exc}") from exc

    def _scalar(self, stmt, *, operation: str):
        try:
            with self._engine.connect() as conn:
                return conn.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError(f"{operation} failed: {exc}") from exc

    @staticmethod
    def _read_table(conn, table: Table) -> Dict:
        rows = conn.execute(select(table.c.name, table.c.value))
        return {row.name: row.value for row in rows}
