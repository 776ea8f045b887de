"""Shared fixtures — in-memory database, app context and HTTP client.

Every test gets a fresh in-memory SQLite database behind the real app.
The lifespan does not run under ASGITransport, so the AppContext is built
here with a fake media storage and a push client that is never started.
"""

import os

# Must be set before app modules read Settings at import time
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from app.clients.push_client import PushClient
from app.config import Settings
from app.context import AppContext
from app.database import Database
from app.main import app
from app.models import User
from app.security import hash_password


class FakeStorage:
    """Records uploads instead of talking to MinIO."""

    BASE_URL = "http://cdn.test/media/"

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self._uploads = 0

    def upload_image(self, data: bytes, content_type: str, prefix: str) -> str:
        self._uploads += 1
        key = f"{prefix}/{self._uploads}"
        self.objects[key] = (data, content_type)
        return f"{self.BASE_URL}{key}"

    def delete_image(self, url: str) -> None:
        self.objects.pop(url.removeprefix(self.BASE_URL), None)
        self.deleted.append(url)


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        upload_max_bytes=1024,
        onesignal_app_id=None,
        otel_enabled=False,
    )


@pytest.fixture
async def database(test_settings):
    db = Database(test_settings.sqlalchemy_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
async def client(test_settings, database, storage):
    app.state.ctx = AppContext(
        settings=test_settings,
        database=database,
        storage=storage,
        push=PushClient(test_settings),
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def register_and_login(client, username, **fields):
    body = {
        "nome": username.capitalize(),
        "sobrenome": "Silva",
        "email": f"{username}@example.com",
        "username": username,
        "cep": "01001-000",
        "password": "secret1",
        **fields,
    }
    res = await client.post("/api/auth/register", json=body)
    assert res.status_code == 201, res.text

    res = await client.post(
        "/api/auth/login", json={"email": body["email"], "password": body["password"]},
    )
    assert res.status_code == 200, res.text
    data = res.json()
    return SimpleNamespace(
        id=data["user"]["user_id"],
        username=username,
        token=data["token"],
        headers={"Authorization": f"Bearer {data['token']}"},
    )


@pytest.fixture
def make_user(client):
    async def _make(username, **fields):
        return await register_and_login(client, username, **fields)
    return _make


@pytest.fixture
async def alice(make_user):
    return await make_user("alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("bob")


@pytest.fixture
async def carol(make_user):
    return await make_user("carol")


async def _insert_user(session, username):
    """Insert a user row directly, bypassing the API."""
    user = User(
        nome=username.capitalize(),
        sobrenome="Souza",
        email=f"{username}@example.com",
        username=username,
        cep="00000",
        password_hash=hash_password("secret1", rounds=4),
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
def insert_user():
    return _insert_user
