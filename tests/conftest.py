"""
Shared fixtures: an app wired to mongomock and a fake Groq client.

No network access: the document store is an in-memory mongomock database and the
assistant's chat-completions client is a recording stand-in.
"""

from __future__ import annotations

from datetime import UTC, datetime

import mongomock
import pytest

from assistant import HealthAssistant
from main import create_app
from storage import HealthStore
from tests.fakes import Clock, FakeCompletions, FakeGroq


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2026, 3, 10, 12, 0, tzinfo=UTC))


@pytest.fixture
def completions() -> FakeCompletions:
    return FakeCompletions()


@pytest.fixture
def store() -> HealthStore:
    return HealthStore(mongomock.MongoClient().db)


@pytest.fixture
def app(store: HealthStore, completions: FakeCompletions, clock: Clock):
    assistant = HealthAssistant(client=FakeGroq(completions), model="test-model")
    return create_app(
        store=store,
        assistant=assistant,
        clock=clock,
        config_overrides={"TESTING": True, "JWT_SECRET_KEY": "test-secret-key-with-enough-length"},
    )


@pytest.fixture
def client(app):
    return app.test_client()


def _register(client, email: str, password: str = "s3cret-pass") -> dict[str, str]:
    resp = client.post("/api/register", json={"name": "Test User", "email": email, "password": password})
    assert resp.status_code == 201, resp.get_json()
    return {"Authorization": f"Bearer {resp.get_json()['access_token']}"}


@pytest.fixture
def auth(client) -> dict[str, str]:
    return _register(client, "alex@example.com")


@pytest.fixture
def other_auth(client) -> dict[str, str]:
    return _register(client, "sam@example.com")
