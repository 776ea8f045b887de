"""Password hashing and token helpers."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.errors import Forbidden
from app.security import create_access_token, decode_access_token, hash_password, verify_password


def test_password_hash_verifies_only_the_original(test_settings):
    hashed = hash_password("secret1", rounds=test_settings.bcrypt_rounds)

    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_verify_password_rejects_malformed_hash():
    assert not verify_password("secret1", "not-a-bcrypt-hash")


def test_token_carries_user_id_and_expiry(test_settings):
    token = create_access_token("user-1", "ana1", test_settings)

    payload = jwt.decode(token, "test-secret", algorithms=["HS256"])
    assert payload["id"] == "user-1"
    assert payload["username"] == "ana1"
    exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    assert exp - datetime.now(timezone.utc) <= timedelta(days=test_settings.jwt_expires_days)

    assert decode_access_token(token, test_settings) == "user-1"


def test_token_without_id_is_rejected(test_settings):
    token = jwt.encode({"username": "ana1"}, "test-secret", algorithm="HS256")

    with pytest.raises(Forbidden):
        decode_access_token(token, test_settings)


def test_garbage_token_is_rejected(test_settings):
    with pytest.raises(Forbidden):
        decode_access_token("not.a.jwt", test_settings)
