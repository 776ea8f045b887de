"""Request transactions: commit failures reach the client and undo side effects."""

import httpx
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.push_client import PushClient
from app.main import app


@pytest.fixture
def failing_commit(monkeypatch):
    """Make every session commit raise `error`; call .undo() to restore."""
    def _fail(error):
        async def commit(self):
            raise error
        monkeypatch.setattr(AsyncSession, "commit", commit)
        return monkeypatch
    return _fail


@pytest.fixture
async def push_requests(client, test_settings):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "n1"})

    settings = test_settings.model_copy(update={"onesignal_app_id": "app-123"})
    push = PushClient(settings, transport=httpx.MockTransport(handler))
    await push.start()
    app.state.ctx.push = push
    yield requests
    await push.stop()


async def _followers(client, user):
    return (await client.get(f"/api/users/{user.id}/followers")).json()["followers"]


async def test_commit_conflict_is_reported(client, failing_commit, alice, bob):
    patch = failing_commit(IntegrityError("COMMIT", {}, Exception("write conflict")))

    res = await client.put(f"/api/users/{bob.id}/follow", headers=alice.headers)

    assert res.status_code == 400
    assert res.json() == {"message": "Operação conflitante com o estado atual."}
    patch.undo()
    assert await _followers(client, bob) == []


async def test_commit_database_error_is_reported(client, failing_commit, alice, bob):
    patch = failing_commit(OperationalError("COMMIT", {}, Exception("connection lost")))

    res = await client.put(f"/api/users/{bob.id}/follow", headers=alice.headers)

    assert res.status_code == 500
    assert res.json() == {"message": "Erro ao acessar o banco de dados."}
    patch.undo()
    assert await _followers(client, bob) == []


async def test_push_is_sent_after_commit(client, push_requests, alice, bob):
    res = await client.put(f"/api/users/{bob.id}/follow", headers=alice.headers)
    await app.state.ctx.push.stop()

    assert res.status_code == 200
    [request] = push_requests
    assert b"include_external_user_ids" in request.content
    assert bob.id.encode() in request.content


async def test_no_push_when_commit_fails(client, push_requests, failing_commit, alice, bob):
    failing_commit(IntegrityError("COMMIT", {}, Exception("write conflict")))

    res = await client.put(f"/api/users/{bob.id}/follow", headers=alice.headers)
    await app.state.ctx.push.stop()

    assert res.status_code == 400
    assert push_requests == []


async def test_uploaded_image_is_removed_when_commit_fails(client, storage, failing_commit, alice):
    failing_commit(IntegrityError("COMMIT", {}, Exception("write conflict")))

    res = await client.post(
        "/api/posts",
        data={"content": "foto"},
        files={"image": ("cat.png", b"\x89PNG", "image/png")},
        headers=alice.headers,
    )

    assert res.status_code == 400
    assert storage.objects == {}
    assert len(storage.deleted) == 1


async def test_empty_post_with_invalid_image_uploads_nothing(client, storage, alice):
    res = await client.post(
        "/api/posts",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=alice.headers,
    )

    assert res.status_code == 400
    assert storage.objects == {}
    assert storage.deleted == []


async def test_committed_image_is_kept(client, storage, alice):
    res = await client.post(
        "/api/posts",
        files={"image": ("cat.png", b"\x89PNG", "image/png")},
        headers=alice.headers,
    )

    assert res.status_code == 201
    assert len(storage.objects) == 1
    assert storage.deleted == []
