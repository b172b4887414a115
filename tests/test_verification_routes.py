"""Tests for the /api/verification endpoints."""

from __future__ import annotations

import pytest

from medreg.config import Settings
from medreg.main import create_app
from medreg.services import delivery_service

EMAIL = "doctor@example.com"
PHONE = "+584121234567"


def test_request_code_opens_pending_session(client, fixed_secrets):
    r = client.post("/api/verification/email/request-code", json={"value": "  Doctor@Example.com "})
    assert r.status_code == 200
    data = r.get_json()
    assert data["alreadyVerified"] is False
    assert data["delivery"] == "code"
    assert data["session"]["value"] == EMAIL
    assert data["session"]["state"] == "PENDING"
    assert data["session"]["active"] is True
    assert data["session"]["verified"] is False
    assert "code" not in data


def test_verify_code_marks_email_verified(client, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})

    r = client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "123456"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["state"] == "VERIFIED"
    assert data["verified"] is True
    assert data["method"] == "CODE"

    status = client.get("/api/verification/email/status", query_string={"value": EMAIL}).get_json()
    assert status["verified"] is True


def test_phone_code_flow_accepts_local_format(client, fixed_secrets):
    r = client.post("/api/verification/phone/request-code", json={"value": "0412-123-4567"})
    assert r.status_code == 200
    assert r.get_json()["session"]["value"] == PHONE

    r = client.post("/api/verification/phone/verify-code", json={"value": "04121234567", "code": "123456"})
    assert r.status_code == 200
    assert r.get_json()["verified"] is True


def test_wrong_code_is_rejected(client, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})

    r = client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "999999"})
    assert r.status_code == 401
    assert r.get_json()["error"] == "Invalid verification code."

    status = client.get("/api/verification/email/status", query_string={"value": EMAIL}).get_json()
    assert status["state"] == "PENDING"


def test_too_many_wrong_codes_locks(client, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})
    for _ in range(4):
        client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "999999"})

    r = client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "999999"})
    assert r.status_code == 429


def test_expired_code_is_rejected(client, clock, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})
    clock.advance(601)

    r = client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "123456"})
    assert r.status_code == 401
    assert r.get_json()["error"] == "Invalid or expired code."


def test_verify_requires_code(client):
    r = client.post("/api/verification/email/verify-code", json={"value": EMAIL})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Code is required."


@pytest.mark.parametrize(
    "channel,value",
    [("email", "not-an-email"), ("phone", "+1 202 555 0100"), ("email", None)],
)
def test_invalid_contact_values(client, channel, value):
    r = client.post(f"/api/verification/{channel}/request-code", json={"value": value})
    assert r.status_code == 400
    assert "error" in r.get_json()


def test_unknown_channel_is_not_found(client):
    r = client.post("/api/verification/fax/request-code", json={"value": EMAIL})
    assert r.status_code == 404


def test_resend_cooldown(client, clock, fixed_secrets):
    assert client.post("/api/verification/email/request-code", json={"value": EMAIL}).status_code == 200

    clock.advance(10)
    r = client.post("/api/verification/email/request-code", json={"value": EMAIL})
    assert r.status_code == 429
    data = r.get_json()
    assert data["rateLimited"] is True
    assert data["waitTime"] == 50
    assert data["retryAfter"] == int((clock() + 50) * 1000)

    clock.advance(50)
    assert client.post("/api/verification/email/request-code", json={"value": EMAIL}).status_code == 200


def test_resend_keeps_session_deadline(client, clock, fixed_secrets):
    first = client.post("/api/verification/email/request-code", json={"value": EMAIL}).get_json()
    clock.advance(120)
    second = client.post("/api/verification/email/request-code", json={"value": EMAIL}).get_json()

    assert second["session"]["expiresAt"] == first["session"]["expiresAt"]
    assert second["codeExpiresAt"] > first["codeExpiresAt"]


def test_verified_contact_is_not_challenged_again(client, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})
    client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "123456"})

    r = client.post("/api/verification/email/request-code", json={"value": EMAIL})
    assert r.status_code == 200
    assert r.get_json()["alreadyVerified"] is True


def test_delivery_failure_returns_bad_gateway(client, monkeypatch):
    def failing_send(settings, email, code):
        raise delivery_service.DeliveryError("smtp down")

    monkeypatch.setattr(delivery_service, "send_email_code", failing_send)

    r = client.post("/api/verification/email/request-code", json={"value": EMAIL})
    assert r.status_code == 502

    status = client.get("/api/verification/email/status", query_string={"value": EMAIL}).get_json()
    assert status["state"] == "NOT_STARTED"


def test_email_link_flow(client, fixed_secrets):
    r = client.post("/api/verification/email/request-code", json={"value": EMAIL, "delivery": "link"})
    assert r.status_code == 200
    assert r.get_json()["delivery"] == "link"

    r = client.get(
        "/api/verification/email/confirm-link",
        query_string={"value": EMAIL, "token": fixed_secrets["token"]},
    )
    assert r.status_code == 200
    data = r.get_json()
    assert data["verified"] is True
    assert data["method"] == "LINK"


def test_link_delivery_rejected_for_phone(client):
    r = client.post("/api/verification/phone/request-code", json={"value": PHONE, "delivery": "link"})
    assert r.status_code == 400


def test_confirm_link_with_bad_token(client, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL, "delivery": "link"})
    r = client.get("/api/verification/email/confirm-link", query_string={"value": EMAIL, "token": "nope"})
    assert r.status_code == 401


def test_auto_phone_verification_disabled_by_default(client):
    r = client.post("/api/verification/phone/auto", json={"value": PHONE})
    assert r.status_code == 403


def test_auto_phone_verification_without_prior_start(clock):
    app = create_app(Settings(phone_auto_verify=True), clock=clock)
    client = app.test_client()

    r = client.post("/api/verification/phone/auto", json={"value": "0412 123 4567"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["state"] == "VERIFIED"
    assert data["method"] == "AUTO"
    assert data["value"] == PHONE


def test_extend_pushes_deadline(client, clock, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})
    client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "123456"})

    clock.advance(300)
    r = client.post("/api/verification/email/extend", json={"value": EMAIL})
    assert r.get_json()["extended"] is True

    clock.advance(599)
    status = client.get("/api/verification/email/status", query_string={"value": EMAIL}).get_json()
    assert status["verified"] is True

    clock.advance(2)
    status = client.get("/api/verification/email/status", query_string={"value": EMAIL}).get_json()
    assert status["verified"] is False
    assert status["state"] == "EXPIRED"


def test_extend_unknown_value_creates_nothing(client):
    r = client.post("/api/verification/phone/extend", json={"value": PHONE})
    assert r.status_code == 200
    data = r.get_json()
    assert data["extended"] is False
    assert data["state"] == "NOT_STARTED"
    assert data["active"] is False


def test_email_and_phone_sessions_are_separate(app):
    trackers = app.extensions["verification_trackers"]
    trackers["email"].mark_as_verified("shared", "CODE")

    assert trackers["phone"].is_verified("shared") is False
    assert trackers["email"] is not trackers["phone"]


def test_failed_delivery_does_not_start_cooldown(client, monkeypatch, fixed_secrets):
    def failing_send(settings, email, code):
        raise delivery_service.DeliveryError("smtp down")

    with monkeypatch.context() as patched:
        patched.setattr(delivery_service, "send_email_code", failing_send)
        assert client.post("/api/verification/email/request-code", json={"value": EMAIL}).status_code == 502

    r = client.post("/api/verification/email/request-code", json={"value": EMAIL})
    assert r.status_code == 200
    assert r.get_json()["session"]["state"] == "PENDING"


def test_reset_forgets_verified_contact(client, fixed_secrets):
    client.post("/api/verification/email/request-code", json={"value": EMAIL})
    client.post("/api/verification/email/verify-code", json={"value": EMAIL, "code": "123456"})

    r = client.post("/api/verification/email/reset", json={"value": EMAIL})
    assert r.status_code == 200
    data = r.get_json()
    assert data["cleared"] is True
    assert data["state"] == "NOT_STARTED"
    assert data["verified"] is False
