"""Profile maintenance: profile fields, username changes and avatars."""

from datetime import timedelta

from app.models import User, utcnow


async def test_update_profile_fields(client, alice):
    res = await client.put(
        "/api/users/me", json={"bio": "Olá!", "telefone": "11 99999-0000"}, headers=alice.headers,
    )

    assert res.status_code == 200
    assert res.json()["bio"] == "Olá!"
    assert res.json()["telefone"] == "11 99999-0000"
    assert res.json()["nome"] == "Alice"


async def test_first_username_change_is_allowed(client, alice):
    res = await client.put("/api/users/me/username", json={"username": "alice2"}, headers=alice.headers)

    assert res.status_code == 200
    assert res.json()["username"] == "alice2"
    assert res.json()["username_changed_at"] is not None


async def test_second_change_within_window_is_rejected(client, alice):
    await client.put("/api/users/me/username", json={"username": "alice2"}, headers=alice.headers)

    res = await client.put("/api/users/me/username", json={"username": "alice3"}, headers=alice.headers)

    assert res.status_code == 400
    assert "30 dias" in res.json()["message"]
    me = await client.get("/api/auth/me", headers=alice.headers)
    assert me.json()["username"] == "alice2"


async def test_change_allowed_again_after_window(client, database, alice):
    await client.put("/api/users/me/username", json={"username": "alice2"}, headers=alice.headers)
    async with database.session_factory() as s:
        user = await s.get(User, alice.id)
        user.username_changed_at = utcnow() - timedelta(days=31)
        await s.commit()

    res = await client.put("/api/users/me/username", json={"username": "alice3"}, headers=alice.headers)

    assert res.status_code == 200
    assert res.json()["username"] == "alice3"
    async with database.session_factory() as s:
        user = await s.get(User, alice.id)
        assert utcnow() - user.username_changed_at < timedelta(minutes=1)


async def test_taken_username_is_rejected(client, alice, bob):
    res = await client.put("/api/users/me/username", json={"username": "bob"}, headers=alice.headers)

    assert res.status_code == 400
    assert res.json()["message"] == "Nome de usuário já existe. Por favor, escolha outro."


async def test_avatar_upload_stores_url(client, storage, alice):
    res = await client.put(
        "/api/users/me/avatar",
        files={"image": ("me.png", b"\x89PNG fake", "image/png")},
        headers=alice.headers,
    )

    assert res.status_code == 200
    assert res.json()["avatar"].startswith("http://cdn.test/media/avatars/")
    assert list(storage.objects.values()) == [(b"\x89PNG fake", "image/png")]


async def test_avatar_must_be_an_image(client, storage, alice):
    res = await client.put(
        "/api/users/me/avatar",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=alice.headers,
    )

    assert res.status_code == 400
    assert res.json() == {"message": "Apenas imagens são permitidas!"}
    assert storage.objects == {}
