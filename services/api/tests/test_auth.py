"""Auth routes and the bearer-token identity gate."""

from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import func, select

from app.models import User

ANA = {
    "nome": "Ana",
    "sobrenome": "Lima",
    "email": "ana@x.com",
    "username": "ana1",
    "cep": "00000",
    "password": "secret1",
}


async def _user_count(database):
    async with database.session_factory() as s:
        return await s.scalar(select(func.count()).select_from(User))


async def test_register_creates_user_without_exposing_password(client, database):
    res = await client.post("/api/auth/register", json=ANA)

    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Usuário registrado com sucesso!"
    assert body["user"]["username"] == "ana1"
    assert body["user"]["email"] == "ana@x.com"
    assert "password" not in res.text
    assert "password_hash" not in res.text
    assert await _user_count(database) == 1


async def test_register_stores_a_bcrypt_hash(client, database):
    await client.post("/api/auth/register", json=ANA)

    async with database.session_factory() as s:
        user = await s.scalar(select(User).where(User.username == "ana1"))
    assert user.password_hash != "secret1"
    assert user.password_hash.startswith("$2")


async def test_register_lowercases_email(client):
    res = await client.post("/api/auth/register", json={**ANA, "email": "Ana@X.com"})

    assert res.status_code == 201
    assert res.json()["user"]["email"] == "ana@x.com"


async def test_duplicate_email_is_rejected(client, database):
    await client.post("/api/auth/register", json=ANA)

    res = await client.post("/api/auth/register", json={**ANA, "username": "other"})

    assert res.status_code == 400
    assert res.json() == {"message": "Email já cadastrado."}
    assert await _user_count(database) == 1


async def test_duplicate_username_is_rejected(client, database):
    await client.post("/api/auth/register", json=ANA)

    res = await client.post("/api/auth/register", json={**ANA, "email": "ana2@x.com"})

    assert res.status_code == 400
    assert res.json()["message"] == "Nome de usuário já existe. Por favor, escolha outro."
    assert await _user_count(database) == 1


async def test_missing_required_field_returns_400(client, database):
    body = {k: v for k, v in ANA.items() if k != "cep"}

    res = await client.post("/api/auth/register", json=body)

    assert res.status_code == 400
    assert res.json()["message"] == "Dados inválidos."
    assert any(e["field"].endswith("cep") for e in res.json()["errors"])
    assert await _user_count(database) == 0


async def test_login_accepts_email_or_username(client):
    await client.post("/api/auth/register", json=ANA)

    by_email = await client.post("/api/auth/login", json={"email": "ana@x.com", "password": "secret1"})
    by_username = await client.post("/api/auth/login", json={"email": "ana1", "password": "secret1"})

    assert by_email.status_code == 200
    assert by_username.status_code == 200
    assert by_email.json()["token"]
    assert by_username.json()["user"]["username"] == "ana1"


async def test_login_wrong_password(client):
    await client.post("/api/auth/register", json=ANA)

    res = await client.post("/api/auth/login", json={"email": "ana1", "password": "nope123"})

    assert res.status_code == 400
    assert res.json() == {"message": "Senha incorreta."}


async def test_login_unknown_user(client):
    res = await client.post("/api/auth/login", json={"email": "ghost", "password": "secret1"})

    assert res.status_code == 404


async def test_me_returns_private_profile(client, alice):
    res = await client.get("/api/auth/me", headers=alice.headers)

    assert res.status_code == 200
    body = res.json()
    assert body["user_id"] == alice.id
    assert body["email"] == "alice@example.com"
    assert body["favoritos"] == []
    assert body["friend_requests"] == []
    assert "password_hash" not in body


async def test_missing_token_is_401(client):
    res = await client.get("/api/auth/me")

    assert res.status_code == 401
    assert res.json() == {"message": "Token não fornecido."}


async def test_malformed_header_is_401(client, alice):
    res = await client.get("/api/auth/me", headers={"Authorization": f"Token {alice.token}"})

    assert res.status_code == 401


async def test_bad_signature_is_403(client, alice):
    forged = jwt.encode({"id": alice.id}, "wrong-secret", algorithm="HS256")

    res = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})

    assert res.status_code == 403
    assert res.json() == {"message": "Token inválido."}


async def test_expired_token_is_403(client, alice):
    expired = jwt.encode(
        {"id": alice.id, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "test-secret",
        algorithm="HS256",
    )

    res = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})

    assert res.status_code == 403


async def test_health(client):
    res = await client.get("/health")

    assert res.status_code == 200
    assert res.json()["status"] == "ok"
