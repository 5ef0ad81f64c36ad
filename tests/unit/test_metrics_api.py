"""HTTP tests for the metrics server routes, middleware and lifespan."""

# Coverage: metrics API

from __future__ import annotations

import gzip
import json

import pytest
from fastapi.testclient import TestClient

from backend.collector.api.middleware import MAX_INFLATED_BODY
from backend.collector.config import PersistenceSettings, ServerSettings, Settings
from backend.collector.domain.persistence import FileStateStore, PersistenceError
from backend.collector.domain.storage import InMemoryMetricsStorage, SqlMetricsStorage
from backend.collector.infra.db import build_engine
from backend.collector.main import create_app

pytestmark = [pytest.mark.api]


def _settings(tmp_path, *, store_interval: int = 300, restore: bool = False) -> Settings:
    return Settings(
        server=ServerSettings(address="localhost:8080"),
        persistence=PersistenceSettings(
            store_interval=store_interval,
            file_storage_path=str(tmp_path / "metrics-db.json"),
            restore=restore,
        ),
    )


@pytest.fixture()
def client(tmp_path):
    app = create_app(_settings(tmp_path), storage=InMemoryMetricsStorage())
    with TestClient(app) as test_client:
        yield test_client


def test_text_update_and_value_round_trip(client):
    response = client.post("/update/gauge/temperature/36.6")

    assert response.status_code == 200
    assert response.text == "OK"
    assert response.headers["content-type"].startswith("text/plain")

    value = client.get("/value/gauge/temperature")
    assert value.status_code == 200
    assert value.text == "36.6"


def test_counter_accumulates_over_http(client):
    client.post("/update/counter/requests/5")
    client.post("/update/counter/requests/-2")

    assert client.get("/value/counter/requests").text == "3"


def test_trailing_slash_is_tolerated(client):
    assert client.post("/update/counter/hits/1/").status_code == 200
    assert client.get("/value/counter/hits/").text == "1"


@pytest.mark.parametrize(
    ("path", "status", "body"),
    [
        ("/update/gauge/temp/not-a-number", 400, "bad value"),
        ("/update/gauge/temp/NaN", 400, "bad value"),
        ("/update/counter/hits/3.5", 400, "bad value"),
        ("/update/gauge/temp", 400, "bad value"),
        ("/update/timer/latency/1", 400, "bad metric type"),
        ("/update/gauge//12.3", 404, "metric name is required"),
        ("/update/gauge", 404, "not found"),
        ("/update/gauge/a/b/c", 404, "not found"),
    ],
)
def test_text_update_errors(client, path, status, body):
    response = client.post(path)

    assert response.status_code == status
    assert response.text == body


def test_text_update_rejects_wrong_content_type(client):
    response = client.post(
        "/update/gauge/temp/1", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 415
    assert response.text == "unsupported media type: expected text/plain"


def test_text_update_accepts_text_plain_with_charset(client):
    response = client.post(
        "/update/gauge/temp/1", headers={"Content-Type": "text/plain; charset=utf-8"}
    )

    assert response.status_code == 200


@pytest.mark.parametrize(
    ("path", "status", "body"),
    [
        ("/value/gauge/missing", 404, "not found"),
        ("/value/timer/x", 400, "bad metric type"),
        ("/value/gauge//", 404, "metric name is required"),
        ("/value/gauge", 404, "not found"),
    ],
)
def test_text_value_errors(client, path, status, body):
    response = client.get(path)

    assert response.status_code == status
    assert response.text == body


def test_json_update_returns_current_value(client):
    first = client.post("/update/", json={"id": "PollCount", "type": "counter", "delta": 5})
    second = client.post("/update/", json={"id": "PollCount", "type": "counter", "delta": 2})

    assert first.status_code == 200
    assert second.json() == {"id": "PollCount", "type": "counter", "delta": 7}
    assert second.headers["content-type"].startswith("application/json")


def test_json_update_gauge_omits_delta(client):
    response = client.post("/update/", json={"id": "Alloc", "type": "gauge", "value": 1024})

    assert response.json() == {"id": "Alloc", "type": "gauge", "value": 1024.0}
    assert client.get("/value/gauge/Alloc").text == "1024"


@pytest.mark.parametrize(
    ("payload", "status", "body"),
    [
        ("{not json", 400, "bad value"),
        ('{"type": "gauge", "value": 1.5}', 400, "bad value"),
        ('{"id": "x", "type": "gauge"}', 400, "bad value"),
        ('{"id": "x", "type": "counter"}', 400, "bad value"),
        ('{"id": "x", "type": "counter", "delta": 1.5}', 400, "bad value"),
        ('{"id": "x", "type": "gauge", "value": "1.5"}', 400, "bad value"),
        ('{"id": "x", "type": "gauge", "value": true}', 400, "bad value"),
        ('{"id": "x", "type": "timer", "value": 1.5}', 400, "bad metric type"),
        ('{"id": "x", "type": "timer", "value": "abc"}', 400, "bad metric type"),
        ('{"id": "x", "type": "timer", "delta": 1.5}', 400, "bad metric type"),
        ('{"id": "x", "type": "counter", "delta": "5"}', 400, "bad value"),
        ('{"id": "x", "type": "counter", "delta": 9223372036854775808}', 400, "bad value"),
        ('{"id": "x", "type": "gauge", "value": 1e400}', 400, "bad value"),
    ],
)
def test_json_update_errors(client, payload, status, body):
    response = client.post(
        "/update/", content=payload, headers={"Content-Type": "application/json"}
    )

    assert response.status_code == status
    assert response.text == body


def test_json_routes_reject_wrong_content_type(client):
    response = client.post(
        "/update/", content="{}", headers={"Content-Type": "text/plain"}
    )

    assert response.status_code == 415
    assert response.text == "unsupported media type: expected application/json"


def test_json_value_returns_envelope_or_404(client):
    client.post("/update/counter/requests/4")

    found = client.post("/value/", json={"id": "requests", "type": "counter"})
    missing = client.post("/value/", json={"id": "nope", "type": "gauge"})
    bad_kind = client.post("/value/", json={"id": "requests", "type": "meter"})

    assert found.json() == {"id": "requests", "type": "counter", "delta": 4}
    assert missing.status_code == 404
    assert missing.text == "not found"
    assert bad_kind.status_code == 400
    assert bad_kind.text == "bad metric type"


def test_gzip_request_body_is_inflated(client):
    body = gzip.compress(json.dumps({"id": "x", "type": "gauge", "value": 2.5}).encode())

    response = client.post(
        "/update/",
        content=body,
        headers={"Content-Type": "application/json", "Content-Encoding": "gzip"},
    )

    assert response.status_code == 200
    assert response.json() == {"id": "x", "type": "gauge", "value": 2.5}


def test_corrupt_gzip_body_is_rejected(client):
    response = client.post(
        "/update/",
        content=b"definitely not gzip",
        headers={"Content-Type": "application/json", "Content-Encoding": "gzip"},
    )

    assert response.status_code == 400
    assert response.text == "invalid gzip body"


def test_truncated_gzip_body_is_rejected(client):
    body = gzip.compress(b'{"id": "x", "type": "gauge", "value": 1}')[:-8]

    response = client.post(
        "/update/",
        content=body,
        headers={"Content-Type": "application/json", "Content-Encoding": "gzip"},
    )

    assert response.status_code == 400
    assert response.text == "invalid gzip body"


def test_oversized_gzip_body_is_refused(client):
    body = gzip.compress(b" " * (MAX_INFLATED_BODY + 1))

    response = client.post(
        "/update/",
        content=body,
        headers={"Content-Type": "application/json", "Content-Encoding": "gzip"},
    )

    assert response.status_code == 413
    assert response.text == "request body too large"


def test_response_is_gzipped_when_accepted(client):
    client.post("/update/gauge/x/1")

    response = client.get("/", headers={"Accept-Encoding": "gzip"})

    assert response.headers.get("content-encoding") == "gzip"
    assert response.json()["gauges"] == {"x": "1"}


def test_dashboard_lists_sorted_metrics(client):
    for path in (
        "/update/gauge/b/2.5",
        "/update/gauge/a/1e6",
        "/update/counter/z/1",
        "/update/counter/m/2",
    ):
        client.post(path)

    response = client.get("/")

    assert response.status_code == 200
    payload = response.json()
    assert list(payload["gauges"].items()) == [("a", "1e+06"), ("b", "2.5")]
    assert list(payload["counters"].items()) == [("m", 2), ("z", 1)]


def test_ping_without_database(client):
    response = client.get("/ping")

    assert response.status_code == 500
    assert response.text == "DB not configured"


def test_ping_with_sql_backend(tmp_path):
    storage = SqlMetricsStorage(build_engine(f"sqlite:///{tmp_path / 'metrics.db'}"))
    app = create_app(_settings(tmp_path), storage=storage)

    with TestClient(app) as test_client:
        response = test_client.get("/ping")
        test_client.post("/update/counter/hits/2")
        assert test_client.get("/value/counter/hits").text == "2"

    assert response.status_code == 200
    assert response.text == "OK"


def test_ping_reports_unreachable_database(tmp_path, monkeypatch):
    storage = SqlMetricsStorage(build_engine(f"sqlite:///{tmp_path / 'metrics.db'}"))
    monkeypatch.setattr(storage, "ping", lambda timeout=2.0: False)
    app = create_app(_settings(tmp_path), storage=storage)

    with TestClient(app) as test_client:
        response = test_client.get("/ping")

    assert response.status_code == 500
    assert response.text == "DB ping failed"


def test_storage_failure_maps_to_500(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'metrics.db'}")
    storage = SqlMetricsStorage(engine)
    app = create_app(_settings(tmp_path), storage=storage)

    with TestClient(app) as test_client:
        with engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE gauges")
        response = test_client.post("/update/gauge/x/1")

        assert response.status_code == 500


def test_sql_counter_overflow_is_bad_value(tmp_path):
    storage = SqlMetricsStorage(build_engine(f"sqlite:///{tmp_path / 'metrics.db'}"))
    app = create_app(_settings(tmp_path), storage=storage)

    with TestClient(app) as test_client:
        test_client.post(f"/update/counter/c/{2**63 - 1}")
        response = test_client.post("/update/counter/c/1")

        assert response.status_code == 400
        assert response.text == "bad value"
        assert test_client.get("/value/counter/c").text == str(2**63 - 1)


@pytest.mark.parametrize(
    "content",
    [
        '{"gauges": {"x": NaN}, "counters": {}}',
        '{"gauges": {"y": Infinity}, "counters": {}}',
        '{"gauges": [], "counters": {}}',
    ],
)
def test_invalid_snapshot_aborts_startup(tmp_path, content):
    (tmp_path / "metrics-db.json").write_text(content, encoding="utf-8")
    app = create_app(_settings(tmp_path, restore=True), storage=InMemoryMetricsStorage())

    with pytest.raises(PersistenceError):
        with TestClient(app):
            pass


def test_lifespan_restores_and_flushes_on_shutdown(tmp_path):
    path = tmp_path / "metrics-db.json"
    FileStateStore().save(str(path), {"x": 1.5}, {"y": 2})
    app = create_app(
        _settings(tmp_path, restore=True), storage=InMemoryMetricsStorage()
    )

    with TestClient(app) as test_client:
        assert test_client.get("/value/gauge/x").text == "1.5"
        assert test_client.get("/value/counter/y").text == "2"
        test_client.post("/update/counter/y/3")

    assert FileStateStore().load(str(path)) == ({"x": 1.5}, {"y": 5})


def test_write_through_mode_persists_each_update(tmp_path):
    path = tmp_path / "metrics-db.json"
    app = create_app(_settings(tmp_path, store_interval=0), storage=InMemoryMetricsStorage())

    with TestClient(app) as test_client:
        test_client.post("/update/gauge/temperature/36.6")
        assert FileStateStore().load(str(path)) == ({"temperature": 36.6}, {})


def test_corrupt_snapshot_aborts_startup(tmp_path):
    (tmp_path / "metrics-db.json").write_text("{corrupt", encoding="utf-8")
    app = create_app(_settings(tmp_path, restore=True), storage=InMemoryMetricsStorage())

    with pytest.raises(PersistenceError):
        with TestClient(app):
            pass
