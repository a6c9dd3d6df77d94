from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import safewalk.main as main_module
from safewalk.geo import Coordinate
from safewalk.main import app, city_graph
from safewalk.metrics_store import reset_metrics
from safewalk.route_cache import clear_route_cache
from safewalk.routing_graph import Node, build_graph


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(main_module.settings, "advice_api_key", "")
    clear_route_cache()
    reset_metrics()
    yield
    app.dependency_overrides.clear()
    clear_route_cache()
    reset_metrics()


def test_root_and_health() -> None:
    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}
        assert client.get("/").json()["docs"] == "/docs"


def test_nodes_and_zones() -> None:
    with TestClient(app) as client:
        nodes = client.get("/nodes").json()
        assert len(nodes["nodes"]) == 14
        assert nodes["center"] == {"lat": 2.4419, "lon": -76.6063}
        by_id = {n["id"]: n for n in nodes["nodes"]}
        assert by_id["n9"]["label"] == "Esquina Peligrosa"

        zones = client.get("/zones").json()
        assert [z["id"] for z in zones["zones"]] == ["dz1", "dz2"]
        assert zones["containment"] == "bbox"
        assert len(zones["zones"][0]["polygon"]) == 4


def test_graph_summary() -> None:
    with TestClient(app) as client:
        summary = client.get("/graph/summary").json()
    assert summary["node_count"] == 14
    assert summary["street_count"] == 20
    assert summary["directed_edge_count"] == 40
    assert summary["danger_zone_count"] == 2


def test_route_found() -> None:
    with TestClient(app) as client:
        resp = client.post("/route", json={"start_id": "n1", "end_id": "n10", "mode": "safest"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["found"] is True
    assert body["path"] == ["n1", "n4", "n9", "n10"]
    assert len(body["coordinates"]) == 4
    assert body["coordinates"][0] == {"lat": 2.4419, "lon": -76.6063}
    assert body["total_distance_m"] > 0
    assert body["average_safety_score"] == pytest.approx(7.0)
    assert [p["risk"] for p in body["segment_risk"]] == [1.0, 1.0, 10.0, 10.0]
    assert body["risk_band"] == "Alto"
    assert body["segment_risk"][0]["label"] == "Inicio"
    assert body["reason_code"] is None


def test_route_defaults_to_safest_mode() -> None:
    with TestClient(app) as client:
        body = client.post("/route", json={"start_id": "n13", "end_id": "n14"}).json()
    assert body["mode"] == "safest"
    assert body["path"] == ["n13", "n14"]


def test_unknown_node_is_404() -> None:
    with TestClient(app) as client:
        resp = client.post("/route", json={"start_id": "n1", "end_id": "n99"})
        assert resp.status_code == 404
        detail = resp.json()["detail"]
        assert detail["reason_code"] == "unknown_node"
        assert "n99" in detail["message"]

        metrics = client.get("/metrics").json()
    assert metrics["endpoints"]["/route"]["error_count"] == 1
    assert metrics["route_outcomes"] == {"unknown_node": 1}


def test_blank_node_id_is_rejected() -> None:
    with TestClient(app) as client:
        resp = client.post("/route", json={"start_id": "  ", "end_id": "n2"})
    assert resp.status_code == 422


def test_disconnected_graph_reports_no_route() -> None:
    graph = build_graph(
        [
            Node(id="a", label="Norte", coordinate=Coordinate(2.0, -76.0)),
            Node(id="b", label="Sur", coordinate=Coordinate(2.001, -76.0)),
        ],
        [],
        version="pytest-islands",
    )
    app.dependency_overrides[city_graph] = lambda: graph
    with TestClient(app) as client:
        resp = client.post("/route", json={"start_id": "a", "end_id": "b", "mode": "shortest"})
        advised = client.post("/route/advice", json={"start_id": "a", "end_id": "b"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["found"] is False
    assert body["reason_code"] == "no_path"
    assert body["path"] == []
    assert advised.json()["advice"] is None


def test_route_advice_uses_fallback_without_key() -> None:
    with TestClient(app) as client:
        resp = client.post("/route/advice", json={"start_id": "n1", "end_id": "n8"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["route"]["found"] is True
    assert body["advice"]["source"] == "fallback"
    assert len(body["advice"]["tips"]) == 3


def test_route_cache_hits_and_clear() -> None:
    with TestClient(app) as client:
        before = client.get("/cache/stats").json()
        first = client.post("/route", json={"start_id": "n1", "end_id": "n8", "mode": "shortest"})
        second = client.post("/route", json={"start_id": "n1", "end_id": "n8", "mode": "shortest"})
        assert first.json() == second.json()

        other_mode = client.post("/route", json={"start_id": "n1", "end_id": "n8", "mode": "safest"})
        assert other_mode.status_code == 200

        stats = client.get("/cache/stats").json()
        assert stats["hits"] - before["hits"] == 1
        assert stats["misses"] - before["misses"] == 2
        assert stats["size"] == 2

        assert client.delete("/cache").json() == {"cleared": 2}
        assert client.get("/cache/stats").json()["size"] == 0


def test_metrics_count_route_requests() -> None:
    with TestClient(app) as client:
        client.post("/route", json={"start_id": "n1", "end_id": "n2"})
        client.post("/route", json={"start_id": "n2", "end_id": "n3"})
        metrics = client.get("/metrics").json()

    assert metrics["endpoints"]["/route"]["request_count"] == 2
    assert metrics["endpoints"]["/route"]["error_count"] == 0
    assert metrics["route_outcomes"] == {"found": 2}
    assert metrics["modes"]["safest"]["found"] == 2


def test_cached_routes_still_count_as_outcomes() -> None:
    with TestClient(app) as client:
        for _ in range(3):
            resp = client.post("/route", json={"start_id": "n1", "end_id": "n2", "mode": "shortest"})
            assert resp.json()["found"] is True
        metrics = client.get("/metrics").json()
        assert client.get("/cache/stats").json()["size"] == 1

    assert metrics["route_outcomes"] == {"found": 3}
    assert metrics["modes"]["shortest"]["found"] == 3


def test_missing_graph_is_503_with_reason_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app.state, "graph", None, raising=False)
    client = TestClient(app)
    resp = client.post("/route", json={"start_id": "n1", "end_id": "n2"})

    assert resp.status_code == 503
    assert resp.json()["detail"]["reason_code"] == "graph_unavailable"
