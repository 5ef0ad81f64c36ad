"""Tests for the in-memory and SQL metrics storage backends."""

# Coverage: metrics storage

from __future__ import annotations

import threading

import pytest
import sqlalchemy as sa

from backend.collector.domain.storage import (
    CounterOverflowError,
    InMemoryMetricsStorage,
    SqlMetricsStorage,
    StorageError,
    SupportsPing,
    build_metrics_storage,
)
from backend.collector.infra.db import build_engine, normalize_database_url

pytestmark = [pytest.mark.storage]


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryMetricsStorage()
    else:
        backend = SqlMetricsStorage(build_engine(f"sqlite:///{tmp_path / 'metrics.db'}"))
    yield backend
    backend.close()


def test_gauge_is_replaced(storage):
    assert storage.get_gauge("temperature") is None

    storage.set_gauge("temperature", 36.6)
    storage.set_gauge("temperature", 37.1)

    assert storage.get_gauge("temperature") == 37.1


def test_counter_accumulates_signed_deltas(storage):
    assert storage.get_counter("requests") is None

    storage.increment_counter("requests", 5)
    storage.increment_counter("requests", -2)

    assert storage.get_counter("requests") == 3


def test_zero_delta_creates_counter(storage):
    storage.increment_counter("idle", 0)

    assert storage.get_counter("idle") == 0


def test_kinds_have_separate_namespaces(storage):
    storage.set_gauge("shared", 1.5)
    storage.increment_counter("shared", 4)

    assert storage.get_gauge("shared") == 1.5
    assert storage.get_counter("shared") == 4


def test_listings_are_independent_copies(storage):
    storage.set_gauge("g", 1.0)
    storage.increment_counter("c", 1)

    gauges = storage.list_gauges()
    counters = storage.list_counters()
    gauges["g"] = 99.0
    gauges["extra"] = 1.0
    counters["c"] = 99

    assert storage.list_gauges() == {"g": 1.0}
    assert storage.list_counters() == {"c": 1}


def test_snapshot_contains_both_kinds(storage):
    storage.set_gauge("Alloc", 1024.0)
    storage.increment_counter("PollCount", 3)

    snapshot = storage.snapshot()

    assert snapshot.gauges == {"Alloc": 1024.0}
    assert snapshot.counters == {"PollCount": 3}


def test_concurrent_increments_are_not_lost(storage):
    threads_count, per_thread = 4, 25
    barrier = threading.Barrier(threads_count)

    def worker() -> None:
        barrier.wait()
        for _ in range(per_thread):
            storage.increment_counter("hits", 1)

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert storage.get_counter("hits") == threads_count * per_thread


def test_memory_concurrency_with_many_writers():
    storage = InMemoryMetricsStorage()
    threads_count, per_thread = 16, 500

    def worker() -> None:
        for _ in range(per_thread):
            storage.increment_counter("hits", 1)
            storage.list_counters()

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert storage.get_counter("hits") == threads_count * per_thread


def test_counter_overflow_leaves_value_untouched(storage):
    storage.increment_counter("big", 2**63 - 1)

    with pytest.raises(CounterOverflowError):
        storage.increment_counter("big", 1)

    assert storage.get_counter("big") == 2**63 - 1
    assert isinstance(storage.get_counter("big"), int)


def test_counter_underflow_leaves_value_untouched(storage):
    storage.increment_counter("low", -(2**63))

    with pytest.raises(CounterOverflowError):
        storage.increment_counter("low", -1)

    assert storage.get_counter("low") == -(2**63)


def test_counter_may_reach_int64_bounds(storage):
    storage.increment_counter("edge", 2**63 - 2)
    storage.increment_counter("edge", 1)

    assert storage.get_counter("edge") == 2**63 - 1


def test_sql_storage_persists_across_engines(tmp_path):
    url = f"sqlite:///{tmp_path / 'metrics.db'}"
    first = SqlMetricsStorage(build_engine(url))
    first.set_gauge("x", 1.5)
    first.increment_counter("y", 2)
    first.close()

    second = SqlMetricsStorage(build_engine(url))

    assert second.snapshot().gauges == {"x": 1.5}
    assert second.snapshot().counters == {"y": 2}
    second.close()


def test_sql_storage_surfaces_write_failures(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'metrics.db'}")
    storage = SqlMetricsStorage(engine)
    with engine.begin() as conn:
        conn.execute(sa.text("DROP TABLE counters"))

    with pytest.raises(StorageError):
        storage.increment_counter("requests", 1)
    with pytest.raises(StorageError):
        storage.snapshot()


def test_sql_storage_ping(tmp_path):
    storage = SqlMetricsStorage(build_engine(f"sqlite:///{tmp_path / 'metrics.db'}"))

    assert isinstance(storage, SupportsPing)
    assert storage.ping(timeout=2.0) is True


def test_memory_storage_has_no_ping():
    assert not isinstance(InMemoryMetricsStorage(), SupportsPing)


def test_build_metrics_storage_selects_backend(tmp_path):
    assert isinstance(build_metrics_storage(None), InMemoryMetricsStorage)

    sql = build_metrics_storage(f"sqlite:///{tmp_path / 'metrics.db'}")
    assert isinstance(sql, SqlMetricsStorage)
    sql.close()


def test_normalize_database_url_maps_postgres_schemes():
    assert (
        normalize_database_url("postgres://u:p@db:5432/metrics")
        == "postgresql+psycopg://u:p@db:5432/metrics"
    )
    assert (
        normalize_database_url("postgresql://u:p@db/metrics")
        == "postgresql+psycopg://u:p@db/metrics"
    )
    assert normalize_database_url("sqlite:///tmp/x.db") == "sqlite:///tmp/x.db"
