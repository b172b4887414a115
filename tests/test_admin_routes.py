"""Tests for admin stats and cleanup."""

from __future__ import annotations

import pytest

from medreg.config import Settings
from medreg.main import create_app


def test_index(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "message" in r.get_json()


def test_stats_count_sessions_and_codes(client):
    client.post("/api/verification/email/request-code", json={"value": "doctor@example.com"})
    client.post("/api/verification/phone/request-code", json={"value": "04121234567"})

    r = client.get("/api/admin/stats")
    assert r.status_code == 200
    data = r.get_json()
    assert data["sessions"]["email"] == {"PENDING": 1, "VERIFIED": 0, "EXPIRED": 0}
    assert data["sessions"]["phone"] == {"PENDING": 1, "VERIFIED": 0, "EXPIRED": 0}
    assert data["pending_codes"] == 2
    assert data["mongodb_enabled"] is False


@pytest.fixture
def mongo_client(mongo_db, clock):
    app = create_app(Settings(enable_mongodb=True), clock=clock)
    return app.test_client()


def test_cleanup_removes_expired_codes_from_mongodb(mongo_client, mongo_db, clock):
    mongo_client.post("/api/verification/email/request-code", json={"value": "doctor@example.com"})
    assert mongo_db.verification_codes.count_documents({}) == 1

    clock.advance(601)
    r = mongo_client.post("/api/admin/cleanup")
    assert r.status_code == 200
    assert r.get_json() == {"memory_deleted": 0, "mongodb_deleted": 1}
    assert mongo_db.verification_codes.count_documents({}) == 0


def test_reset_sessions_clears_both_channels(app, client):
    trackers = app.extensions["verification_trackers"]
    trackers["email"].mark_as_verified("doctor@example.com", "CODE")
    trackers["phone"].start_verification("+584121234567")

    r = client.post("/api/admin/reset-sessions")
    assert r.status_code == 200
    assert r.get_json() == {"cleared": {"email": 1, "phone": 1}}
    assert trackers["email"].is_verified("doctor@example.com") is False
