"""Shared fixtures for the scoring and settlement tests.

API tests run against an in-memory balance store with the AI analyzer and
the Redis cache stubbed out, so no Firestore, Gemini or Redis is needed.
"""

import os
import sys
from pathlib import Path

import jwt
import pytest

# Add the repo root to the path so tests can import the flat modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep the rotating log file out of the working tree
os.environ.setdefault("LOG_FILE_PATH", os.path.join(os.environ.get("TMPDIR", "/tmp"), "ecoscan_test.log"))

TEST_SECRET = "test-secret-key-for-hs256-signing-0001"


@pytest.fixture
def store():
    from balance_store import InMemoryBalanceStore

    return InMemoryBalanceStore()


@pytest.fixture
def analyzer_stub(monkeypatch):
    """Replaces the Gemini call; set .reply or .error on the returned object."""

    class _Stub:
        def __init__(self):
            self.reply = {}
            self.error = None
            self.calls = []

        def __call__(self, payload):
            self.calls.append(payload)
            if self.error is not None:
                raise self.error
            return self.reply

    stub = _Stub()
    monkeypatch.setattr("api.carbon.analyze_footprint", stub)
    monkeypatch.setattr("api.cache_utils.get_redis_client", lambda: None)
    return stub


@pytest.fixture
def make_app(analyzer_stub):
    """Builds a test app around the given balance store."""
    from main import create_app

    def _make(balance_store):
        return create_app(
            {
                "TESTING": True,
                "RATELIMIT_ENABLED": False,
                "RATELIMIT_STORAGE_URI": "memory://",
                "JWT_SECRET_KEYS": [TEST_SECRET],
            },
            balance_store=balance_store,
        )

    return _make


@pytest.fixture
def app(make_app, store):
    return make_app(store)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    def _headers(user_id="user-1"):
        token = jwt.encode({"user_id": user_id}, TEST_SECRET, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def best_turkey_survey():
    return {
        "transport": ["walk_bike"],
        "diet": ["vegetarian_vegan"],
        "drink": ["drink_water_tea"],
        "energy": "none",
        "region": "Turkey",
    }


@pytest.fixture
def worst_dubai_survey():
    return {
        "transport": ["car_gasoline", "ev"],
        "diet": ["red_meat"],
        "drink": ["drink_alcohol", "drink_water_tea"],
        "energy": "high",
        "region": "Dubai, UAE",
    }
