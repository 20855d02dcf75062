import pytest
from fastapi.testclient import TestClient

from nsems.main import create_device_app


@pytest.fixture
def device_http(cfg, device):
    # no context manager: the background workers stay off
    return TestClient(create_device_app(cfg, runtime=device))


def test_scan_endpoint_verifies_remotely(device_http, token):
    body = device_http.post("/api/scan", json={"qrData": token}).json()
    assert body["valid"] is True
    assert body["source"] == "remote"
    assert body["holder"]["name"] == "Ada Perera"
    assert body["recorded"] is True
    assert body["superseded"] is False


def test_scan_endpoint_offline_uses_cache_and_queues(device_http, network, token):
    assert device_http.post("/api/cache/refresh").json()["count"] == 1
    network.up = False
    body = device_http.post("/api/scan", json={"qrData": token}).json()
    assert (body["valid"], body["source"]) == (True, "local")

    status = device_http.get("/api/sync/status").json()
    assert status["pending"] == 1
    assert status["online"] is False

    health = device_http.get("/api/health").json()
    assert health["status"] == "offline"
    assert health["dataAvailable"] is True


def test_scan_endpoint_reports_malformed(device_http):
    body = device_http.post("/api/scan", json={"qrData": "STU-01|abc"}).json()
    assert (body["result"], body["reason"]) == ("invalid", "malformed")


def test_manual_trigger_flushes_queue(device_http, network, authority, token):
    network.up = False
    device_http.post("/api/scan", json={"qrData": token})
    network.up = True
    body = device_http.post("/api/sync/trigger").json()
    assert body["synced"] == 1
    assert body["remaining"] == 0
    assert authority.service.log_count() == 1


def test_cache_refresh_failure_is_reported(device_http, network):
    network.up = False
    body = device_http.post("/api/cache/refresh").json()
    assert body["success"] is False
    assert body["count"] == 0
