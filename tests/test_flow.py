import re
from types import SimpleNamespace

import pytest

from phoneqr.routes import verification as verification_routes

from conftest import TTL_SECONDS


def _generate(client, phone="1234567890") -> dict:
    resp = client.post("/api/generate-qr", json={"phone": phone})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_generate_qr(client):
    data = _generate(client)

    assert data["success"] is True
    assert data["phone"] == "+1234567890"
    assert re.fullmatch(r"sess_\d+_[a-z0-9]{9}", data["session_id"])
    assert data["qr_code"].startswith("data:image/png;base64,")
    assert data["expires_in"] == "30 minutes"


def test_generate_qr_invalid_phone(client):
    for body in ({"phone": "1234567"}, {"phone": "1" * 16}, {"phone": ""}, {}):
        resp = client.post("/api/generate-qr", json=body)
        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert "8-15 digits" in data["error"]


def test_malformed_body_uses_error_envelope(client):
    resp = client.post(
        "/api/generate-qr",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = client.post("/api/generate-qr", json={"phone": 12345678})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_full_verification_flow(client):
    data = _generate(client)
    s_id = data["session_id"]

    # 1. Poll before scan
    resp = client.get(f"/api/session/{s_id}")
    assert resp.status_code == 200
    status = resp.json()
    assert status["success"] is True
    assert status["verified"] is False
    assert status["verified_at"] is None
    assert status["phone"] == "+1234567890"

    # 2. Scan with the phone from the QR payload
    resp = client.post("/api/verify-scan", json={"session_id": s_id, "scanned_phone": "+1234567890"})
    assert resp.status_code == 200
    result = resp.json()
    assert result["success"] is True
    assert result["phone"] == "+1234567890"
    assert result["message"] == "Phone number verified"
    assert result["verified_at"] >= status["created_at"]

    # 3. Poll sees the flip
    status = client.get(f"/api/session/{s_id}").json()
    assert status["verified"] is True
    assert status["verified_at"] == result["verified_at"]


def test_repeat_scan_is_idempotent(client):
    s_id = _generate(client)["session_id"]
    first = client.post("/api/verify-scan", json={"session_id": s_id, "scanned_phone": "+1234567890"}).json()

    resp = client.post("/api/verify-scan", json={"session_id": s_id, "scanned_phone": "+1234567890"})
    assert resp.status_code == 200
    again = resp.json()
    assert again["success"] is True
    assert again["message"] == "Phone number already verified"
    assert again["phone"] == first["phone"]
    assert again["verified_at"] == first["verified_at"]


def test_scan_phone_mismatch(client):
    s_id = _generate(client)["session_id"]

    resp = client.post("/api/verify-scan", json={"session_id": s_id, "scanned_phone": "+1234567891"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Phone numbers do not match"}

    assert client.get(f"/api/session/{s_id}").json()["verified"] is False


def test_scan_unknown_session(client):
    resp = client.post(
        "/api/verify-scan",
        json={"session_id": "sess_doesnotexist", "scanned_phone": "+1234567890"},
    )
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_scan_missing_fields(client):
    for body in ({}, {"session_id": "sess_1_x"}, {"scanned_phone": "+1234567890"}):
        resp = client.post("/api/verify-scan", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Missing required data"}


def test_status_unknown_session(client):
    resp = client.get("/api/session/sess_doesnotexist")
    assert resp.status_code == 404
    data = resp.json()
    assert data["success"] is False
    assert data["error"]


def test_expired_session_is_not_found(client, clock):
    s_id = _generate(client)["session_id"]
    clock.advance(TTL_SECONDS)

    assert client.get(f"/api/session/{s_id}").status_code == 404
    resp = client.post("/api/verify-scan", json={"session_id": s_id, "scanned_phone": "+1234567890"})
    assert resp.status_code == 404

    sessions = client.get("/api/sessions").json()
    assert sessions["count"] == 0
    assert sessions["total_in_memory"] == 1


def test_sessions_diagnostic(client, clock):
    s_id = _generate(client)["session_id"]
    _generate(client, "1987654321")
    client.post("/api/verify-scan", json={"session_id": s_id, "scanned_phone": "+1234567890"})
    clock.advance(42)

    data = client.get("/api/sessions").json()
    assert data["success"] is True
    assert data["count"] == 2
    assert data["total_in_memory"] == 2
    first = next(s for s in data["sessions"] if s["session_id"] == s_id)
    assert first["phone"] == "+1234567890"
    assert first["verified"] is True
    assert first["verified_at"] is not None
    assert first["age_seconds"] == 42
    assert all(isinstance(s["created_at"], str) for s in data["sessions"])


def test_server_status(client):
    _generate(client)

    data = client.get("/api/status").json()
    assert data["success"] is True
    assert data["active_sessions"] == 1
    assert data["uptime"].endswith(" sec")
    assert data["memory_usage"].endswith(" MB peak")


def test_health_and_index(client):
    assert client.get("/health").json() == {"ok": True}

    resp = client.get("/")
    assert resp.status_code == 200
    assert "/api/generate-qr" in resp.text
    assert "const pollInterval = 2000;" in resp.text


def test_index_drops_camera_opened_after_leaving_scan(client):
    page = client.get("/").text

    # a stream that resolves after cancel/reset/confirm is stopped, not attached
    assert "const attempt = scanGeneration;" in page
    assert "if (attempt !== scanGeneration) {" in page
    assert "stream.getTracks().forEach(track => track.stop());" in page
    assert "scanGeneration += 1;" in page


def test_index_formats_every_typed_digit(client):
    page = client.get("/").text

    assert "d.match(/\\d{1,3}/g)" in page
    assert ".slice(0, 15)" not in page


@pytest.mark.parametrize("platform, maxrss", [
    ("linux", 50 * 1024),
    ("darwin", 50 * 1024 * 1024),
])
def test_server_status_reports_peak_memory(client, monkeypatch, platform, maxrss):
    fake_resource = SimpleNamespace(
        RUSAGE_SELF=0,
        getrusage=lambda who: SimpleNamespace(ru_maxrss=maxrss),
    )
    monkeypatch.setattr(verification_routes, "resource", fake_resource)
    monkeypatch.setattr(verification_routes.sys, "platform", platform)

    assert client.get("/api/status").json()["memory_usage"] == "50 MB peak"
