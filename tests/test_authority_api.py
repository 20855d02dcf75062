from nsems.models.schemas import VerificationOutcome

from conftest import HOLDER_ID, ROTATION_MS


def test_validate_valid_token(authority_http, authority, token):
    response = authority_http.post("/api/scanner/validate", json={"qrData": token, "scannerId": "gate-9"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["valid"] is True
    assert body["result"] == "valid"
    assert body["holder"]["identifier"] == HOLDER_ID
    assert body["holder"]["program"] == "Software Engineering"
    assert "secret" not in body["holder"]
    assert '"secret"' not in response.text
    assert body["expiresAtMs"] % ROTATION_MS == 0

    total, logs = authority.service.recent_logs()
    assert total == 1
    assert logs[0].scannerId == "gate-9"
    assert logs[0].source == "remote"


def test_validate_classifications_are_not_http_errors(authority_http, clock, token):
    malformed = authority_http.post("/api/scanner/validate", json={"qrData": "STU-01|abc"})
    assert malformed.status_code == 200
    assert (malformed.json()["valid"], malformed.json()["reason"]) == (False, "malformed")

    clock.advance(2 * ROTATION_MS)
    expired = authority_http.post("/api/scanner/validate", json={"qrData": token})
    assert expired.json()["result"] == "expired"


def test_validate_logs_every_attempt(authority_http, authority, token):
    authority_http.post("/api/scanner/validate", json={"qrData": token})
    authority_http.post("/api/scanner/validate", json={"qrData": "nonsense"})
    assert authority.service.log_count() == 2


def test_empty_payload_is_rejected_by_request_validation(authority_http):
    assert authority_http.post("/api/scanner/validate", json={"qrData": ""}).status_code == 422


def test_sync_all_exports_active_holders_with_secrets(authority_http, authority):
    authority.store.enroll("STU-02", "K2", name="Suspended One", status="suspended")
    authority.store.enroll("STU-03", name="Fresh")
    response = authority_http.get("/api/holders/sync-all")
    assert response.status_code == 200
    rows = {r["identifier"]: r for r in response.json()}
    assert set(rows) == {"STU-01", "STU-03"}
    assert rows["STU-01"]["secret"] == "K"
    assert len(rows["STU-03"]["secret"]) == 64


def test_sync_logs_is_idempotent(authority_http, authority):
    outcome = VerificationOutcome(
        identifier=HOLDER_ID, window=10, result="valid",
        verifiedAtLocalOrRemote="local", timestamp=123, latencyMs=4, scannerId="gate-1",
    )
    body = {"entries": [outcome.model_dump()]}
    assert authority_http.post("/api/scanner/sync-logs", json=body).json() == {"syncedCount": 1}
    assert authority_http.post("/api/scanner/sync-logs", json=body).json() == {"syncedCount": 0}
    assert authority.service.log_count() == 1


def test_logs_filter_by_identifier(authority_http, authority, token):
    authority_http.post("/api/scanner/validate", json={"qrData": token})
    authority_http.post("/api/scanner/validate", json={"qrData": "OTHER|5|abcd"})
    body = authority_http.get("/api/scanner/logs", params={"identifier": HOLDER_ID}).json()
    assert body["total"] == 1
    assert body["logs"][0]["identifier"] == HOLDER_ID


def test_health(authority_http):
    assert authority_http.get("/api/health").json()["status"] == "ok"
