"""
Pytest configuration and shared fixtures.
"""

import time
import uuid

import jwt
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from books_api.config import APIConfig
from books_api.database import MongoBookStore
from books_api.main import create_app

TEST_SECRET = "test-access-token-secret-0123456789abcdef"


@pytest.fixture
def make_token():
    """Build signed tokens the way the issuing service does."""
    def _make_token(
        username="caoh_the_nerd",
        secret=TEST_SECRET,
        expires_in=3600,
        algorithm="HS256",
        **claims
    ):
        payload = dict(claims)
        if username is not None:
            payload["username"] = username
        if expires_in is not None:
            payload["exp"] = int(time.time()) + expires_in
        return jwt.encode(payload, secret, algorithm=algorithm)
    return _make_token


@pytest.fixture
def api_config():
    """Configuration for tests, isolated from any local .env file."""
    return APIConfig(
        _env_file=None,
        access_token_secret=TEST_SECRET,
        store_timeout_seconds=2.0,
    )


@pytest.fixture
def book_store():
    """Book store backed by an in-memory MongoDB."""
    client = AsyncMongoMockClient()
    return MongoBookStore(client[f"test_reading_log_{uuid.uuid4().hex}"])


@pytest.fixture
def app(api_config, book_store):
    """Application wired to the in-memory book store."""
    return create_app(config=api_config, store=book_store)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers(make_token):
    """Authorization header carrying a valid token."""
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def sample_book_data():
    """Book payload as sent by the client."""
    return {
        "author": "James Clear",
        "title": "Atomic Habits",
        "date_finished": "2022-03-21T15:00:00.000Z",
        "registered_by": "crazy_toffer",
    }
