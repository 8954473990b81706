"""Pytest configuration."""
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# must be set before studystreak is imported: settings and the engine are built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-for-pytest-only-0123456789abcdef"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["DEBUG"] = "false"

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from fastapi.testclient import TestClient

from studystreak.core.database import AsyncSessionLocal, create_all, drop_all, engine
from studystreak.services import redis_cache
from studystreak.services.redis_cache import RedisCacheService

DEFAULT_PASSWORD = "Str0ng!Pass"


@pytest.fixture(scope="session")
def project_root():
    return PROJECT_ROOT


@pytest.fixture
def fake_redis(monkeypatch):
    """In-memory Redis behind the shared cache service."""
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    monkeypatch.setattr(redis_cache, "_redis_cache", RedisCacheService(client=client))
    return client


@pytest.fixture
def no_redis(monkeypatch):
    """Cache service with Redis down."""
    monkeypatch.setattr(redis_cache, "_redis_cache", RedisCacheService())


@pytest.fixture
def client(fake_redis):
    from studystreak.main import app

    with TestClient(app, raise_server_exceptions=False) as test_client:
        test_client.portal.call(create_all)
        yield test_client
        test_client.portal.call(drop_all)
        test_client.portal.call(engine.dispose)


@pytest.fixture
def db_call(client):
    """Run `fn(session)` against the test database on the client's event loop."""

    def _call(fn):
        async def _run():
            async with AsyncSessionLocal() as session:
                return await fn(session)

        return client.portal.call(_run)

    return _call


@pytest_asyncio.fixture
async def db_session():
    await create_all()
    async with AsyncSessionLocal() as session:
        yield session
    await drop_all()
    await engine.dispose()


def register(client, email="student@example.com", name="Study Student", password=DEFAULT_PASSWORD):
    resp = client.post(
        "/api/v1/auth/register",
        json={
            "name": name,
            "email": email,
            "password": password,
            "confirm_password": password,
            "accept_terms": True,
        },
    )
    assert resp.status_code == 201, resp.text
    # tests authenticate with the header unless they exercise the cookie
    client.cookies.clear()
    return resp.json()["data"]


def bearer(auth: dict) -> dict:
    return {"Authorization": f"Bearer {auth['access_token']}"}


@pytest.fixture
def auth(client):
    return register(client)


@pytest.fixture
def headers(auth):
    return bearer(auth)


@pytest.fixture
def make_user(client):
    """Register another account; returns (auth payload, headers)."""

    def _make(email, name="Study Buddy"):
        data = register(client, email=email, name=name)
        return data, bearer(data)

    return _make


class FakeLLMClient:
    """Stands in for LLMClient and records every call."""

    configured = True

    def __init__(self, reply="Try a 25 minute Pomodoro on chapter one."):
        self.reply = reply
        self.calls = []

    async def call_openai(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append(messages)
        return {
            "model": "gpt-4o-mini",
            "choices": [{"message": {"role": "assistant", "content": self.reply}}],
            "usage": {"total_tokens": 42},
        }


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLMClient()
    monkeypatch.setattr("studystreak.services.ai_agents.get_llm_client", lambda: fake)
    return fake
