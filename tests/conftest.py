"""
Pytest configuration and fixtures for testing
"""
import asyncio
import os

# Test environment must be in place before any settings are loaded
os.environ.update({
    "ENV": "test",
    "CORS_ORIGIN": "http://localhost:5173",
    "CLERK_PUBLISHABLE_KEY": "pk_test_mock",
    "CLERK_SECRET_KEY": "sk_test_mock",
    "CLERK_JWT_KEY": "",
    "JWT_SECRET": "test-jwt-secret-0123456789abcdefghij",
    "REFRESH_TOKEN_SECRET": "test-refresh-secret-0123456789abcdef",
    "DATABASE_URL": "sqlite+aiosqlite:///./test.db",
    "REDIS_URL": "",
    "USER_STORE": "database",
    "LOG_LEVEL": "error",
    "RATE_LIMIT_MAX_REQUESTS": "1000",
})

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from auth_utils import create_access_token, new_session_id
from config.settings import load_settings
from database import Database
from main import create_app
from web import create_web_app


@pytest.fixture
def settings():
    return load_settings()


@pytest.fixture
def database(tmp_path):
    """
    Isolated file-backed SQLite database for each test.

    NullPool keeps connections from leaking between the event loops used by
    asyncio.run() here and by the TestClient.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    asyncio.run(db.init())
    yield db
    asyncio.run(db.dispose())


@pytest.fixture
def client(settings, database):
    """FastAPI TestClient for the API service, backed by the test database"""
    app = create_app(settings, database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def web_client(settings):
    """TestClient for the web client; redirects are not followed"""
    app = create_web_app(settings)
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def make_token(settings):
    def _make_token(user_id="user_123", session_id=None):
        return create_access_token(user_id, session_id or new_session_id(), settings)
    return _make_token


@pytest.fixture
def auth_headers(make_token):
    def _auth_headers(user_id="user_123"):
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _auth_headers
