"""Tests for the HTTP bridge."""

import pytest
from fastapi.testclient import TestClient

import api

ORIGIN = {"latitude": 37.7749, "longitude": -122.4194}


@pytest.fixture
def client():
    """Client with the lifespan-managed session running."""
    with TestClient(api.app) as test_client:
        yield test_client


class TestRestEndpoints:
    """Test REST endpoints."""

    def test_info(self, client):
        assert client.get("/").json()["name"] == "fieldglow"

    def test_status_before_start(self, client):
        response = client.get("/status")

        assert response.status_code == 200
        assert response.json()["state"] == "IDLE"

    def test_start_and_snapshot(self, client):
        response = client.post("/start", json={"position": ORIGIN, "heading": 0.0})

        assert response.status_code == 200
        body = response.json()
        assert body["snapshot"]["state"] == "OUTDOOR_SEARCH"
        assert [f["feedback_type"] for f in body["feedback"]] == ["session.started", "nodes.spawned"]

        snapshot = client.get("/snapshot").json()
        assert snapshot["origin_pos"] == ORIGIN
        assert len(snapshot["nodes"]) >= 3

    def test_debug_walk(self, client):
        client.post("/start", json={})
        client.post("/debug/turn", json={"degrees": 90.0})
        body = client.post("/debug/move", json={"meters": 12.0}).json()

        assert body["snapshot"]["debug_mode"] is True
        assert body["snapshot"]["distance_to_home"] == pytest.approx(12.0, rel=0.01)

    def test_nearby_nodes(self, client):
        client.post("/start", json={"position": ORIGIN})

        nearby = client.get("/nodes/nearby", params={"radius": 1000.0}).json()
        snapshot = client.get("/snapshot").json()

        assert nearby["count"] == len(snapshot["nodes"])
        distances = [node["distance"] for node in nearby["nodes"]]
        assert distances == sorted(distances)

    def test_nearby_rejects_negative_radius(self, client):
        assert client.get("/nodes/nearby", params={"radius": -5}).status_code == 422

    def test_invalid_action_is_noop(self, client):
        body = client.post("/capture/begin").json()

        assert body["feedback"] == []
        assert body["snapshot"]["state"] == "IDLE"

    def test_position_validation(self, client):
        response = client.post("/sensors/position", json={"position": {"latitude": 95.0, "longitude": 0.0}})
        assert response.status_code == 422

    def test_overrides(self, client):
        client.post("/start", json={"position": ORIGIN})

        snapshot = client.post("/overrides/outdoor").json()["snapshot"]
        assert snapshot["manual_outdoor"] is True

        snapshot = client.post("/overrides/home").json()["snapshot"]
        assert snapshot["manual_home"] is True
        assert snapshot["manual_outdoor"] is False

    def test_emergency_and_reset(self, client):
        client.post("/start", json={"position": ORIGIN})

        body = client.post("/evacuate/emergency").json()
        assert body["snapshot"]["state"] == "EVAC_ANIM"

        body = client.post("/reset").json()
        assert body["snapshot"]["state"] == "IDLE"
        assert client.get("/status").json()["indexed_nodes"] == 0


class TestFeedbackWebSocket:
    """Test feedback streaming."""

    def test_stream_feedback(self, client):
        with client.websocket_connect("/ws/feedback") as websocket:
            assert websocket.receive_json()["subscribed"] is True
            client.post("/start", json={"position": ORIGIN})

            first = websocket.receive_json()
            second = websocket.receive_json()

        assert first["feedback_type"] == "session.started"
        assert second["feedback_type"] == "nodes.spawned"
