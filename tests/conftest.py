"""Shared pytest fixtures: a controllable clock, app factories and in-memory MongoDB."""

from __future__ import annotations

import sys
from pathlib import Path

import mongomock
import pytest

# Ensure the application package is importable during tests.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from medreg import database  # noqa: E402
from medreg.config import Settings  # noqa: E402
from medreg.main import create_app  # noqa: E402
from medreg.services import auth_provider  # noqa: E402

START_TIME = 1_700_000_000.0


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, now: float) -> None:
        self.now = now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch: pytest.MonkeyPatch):
    """Provide an isolated in-memory MongoDB database for each test."""
    test_db_name = "test_medreg"

    client = mongomock.MongoClient()
    db = client[test_db_name]

    monkeypatch.setattr(database, "get_mongo_client", lambda: client)
    monkeypatch.setattr(database, "get_database", lambda: db)

    yield db

    client.drop_database(test_db_name)


@pytest.fixture
def fixed_secrets(monkeypatch: pytest.MonkeyPatch):
    """Make issued codes and link tokens predictable."""
    monkeypatch.setattr(auth_provider, "generate_code", lambda: "123456")
    monkeypatch.setattr(auth_provider, "generate_token", lambda prefix="link": f"{prefix}_fixed-token")
    return {"code": "123456", "token": "link_fixed-token"}


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def app(settings: Settings, clock: FakeClock):
    flask_app = create_app(settings, clock=clock)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
