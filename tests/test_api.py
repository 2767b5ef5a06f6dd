"""
test_api.py — HTTP surface: /send-alert, /stations/nearest and health.

The delivery provider is replaced through FastAPI dependency overrides so
no request ever leaves the process.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.app.alerts.delivery import GatewayAlertSender
from backend.app.api.v1.alerts import get_alert_sender
from backend.app.api.v1.stations import get_stations
from backend.app.main import app
from backend.app.spatial.distance import Coordinate
from backend.app.spatial.stations import Station

PHONE = "+15551234567"
BODY = {"phone": PHONE, "latitude": 37.7749, "longitude": -122.4194}


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def gateway(stub_gateway):
    def _install(**kwargs):
        gw = stub_gateway(**kwargs)
        app.dependency_overrides[get_alert_sender] = lambda: GatewayAlertSender(gw)
        return gw
    return _install


# ═══════════════════════════════════════════════════════════════════════════
# POST /send-alert
# ═══════════════════════════════════════════════════════════════════════════

class TestSendAlert:

    def test_success(self, client, gateway):
        gw = gateway()
        resp = client.post("/send-alert", json=BODY)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Alert sent successfully!"}
        assert len(gw.texts) == 1
        assert "https://www.google.com/maps?q=37.7749,-122.4194" in gw.texts[0][1]
        assert gw.calls[0][0] == PHONE

    def test_phone_only_is_rejected_without_provider_calls(self, client, gateway):
        gw = gateway()
        resp = client.post("/send-alert", json={"phone": PHONE})
        assert resp.status_code == 400
        assert resp.json() == {"message": "Missing required fields!"}
        assert gw.total_calls == 0

    @pytest.mark.parametrize("body", [
        {},
        {"latitude": 1.0, "longitude": 2.0},
        {"phone": "", "latitude": 1.0, "longitude": 2.0},
        {"phone": "   ", "latitude": 1.0, "longitude": 2.0},
        {"phone": PHONE, "latitude": 1.0},
        {"phone": PHONE, "longitude": 2.0},
        {"phone": PHONE, "latitude": None, "longitude": 2.0},
    ])
    def test_missing_fields(self, client, gateway, body):
        gw = gateway()
        resp = client.post("/send-alert", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"message": "Missing required fields!"}
        assert gw.total_calls == 0

    def test_zero_coordinates_are_valid(self, client, gateway):
        gw = gateway()
        resp = client.post("/send-alert", json={"phone": PHONE, "latitude": 0, "longitude": 0})
        assert resp.status_code == 200
        assert "q=0.0,0.0" in gw.texts[0][1]

    def test_out_of_range_coordinates(self, client, gateway):
        gw = gateway()
        resp = client.post("/send-alert", json={"phone": PHONE, "latitude": 95, "longitude": 0})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid coordinates"
        assert gw.total_calls == 0

    def test_unparseable_body(self, client, gateway):
        gateway()
        resp = client.post("/send-alert", json={"phone": PHONE, "latitude": "north", "longitude": 0})
        assert resp.status_code == 400
        assert resp.json() == {"message": "Invalid request body"}

    def test_text_failure_returns_500(self, client, gateway):
        gw = gateway(fail_text="The 'To' number is not a valid phone number.")
        resp = client.post("/send-alert", json=BODY)
        assert resp.status_code == 500
        assert resp.json() == {
            "message": "Error sending alert",
            "error": "The 'To' number is not a valid phone number.",
            "text_sent": False,
            "call_placed": False,
        }
        assert gw.calls == []

    def test_call_failure_reports_partial(self, client, gateway):
        gw = gateway(fail_call="Authenticate")
        resp = client.post("/send-alert", json=BODY)
        assert resp.status_code == 500
        body = resp.json()
        assert body["message"] == "Error sending alert"
        assert body["error"] == "Authenticate"
        assert body["text_sent"] is True
        assert body["call_placed"] is False
        assert len(gw.texts) == 1

    def test_each_request_sends_again(self, client, gateway):
        gw = gateway()
        client.post("/send-alert", json=BODY)
        client.post("/send-alert", json=BODY)
        assert len(gw.texts) == 2
        assert len(gw.calls) == 2


# ═══════════════════════════════════════════════════════════════════════════
# GET /stations/nearest
# ═══════════════════════════════════════════════════════════════════════════

class TestNearestStations:

    STATIONS = (
        Station("Far", Coordinate(38.5, -121.5)),
        Station("Near", Coordinate(37.7760, -122.4190)),
        Station("Middle", Coordinate(37.80, -122.41)),
    )

    @pytest.fixture(autouse=True)
    def _catalogue(self):
        app.dependency_overrides[get_stations] = lambda: self.STATIONS

    def test_default_count(self, client):
        resp = client.get("/stations/nearest", params={"latitude": 37.7749, "longitude": -122.4194})
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        assert [s["name"] for s in body["stations"]] == ["Near", "Middle"]
        assert body["stations"][0]["distance_label"].endswith(" km")
        assert body["stations"][0]["directions_url"].startswith("https://www.google.com/maps/dir/?api=1")

    def test_k_larger_than_catalogue(self, client):
        resp = client.get(
            "/stations/nearest", params={"latitude": 37.7749, "longitude": -122.4194, "k": 10},
        )
        assert resp.json()["count"] == 3

    def test_bad_latitude(self, client):
        resp = client.get("/stations/nearest", params={"latitude": 123, "longitude": 0})
        assert resp.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Root & health
# ═══════════════════════════════════════════════════════════════════════════

class TestHealth:

    def test_root(self, client):
        body = client.get("/").json()
        assert "/send-alert" in body["endpoints"]

    def test_liveness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_request_id_echoed(self, client):
        resp = client.get("/", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"
        assert resp.headers["X-Process-Time"].endswith("ms")

    def test_health_report(self, client):
        body = client.get("/health").json()
        assert body["status"] in ("healthy", "degraded", "unhealthy")
        names = {c["name"] for c in body["components"]}
        assert names == {"delivery_provider", "contact_store", "stations"}

    def test_bundled_catalogue_served(self, client):
        get_stations.cache_clear()
        resp = client.get("/stations/nearest", params={"latitude": 37.7749, "longitude": -122.4194})
        assert resp.status_code == 200
        assert resp.json()["count"] >= 1
