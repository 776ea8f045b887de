"""
Identity gate: bcrypt password hashing, JWT issuance/verification and the
FastAPI dependency that resolves the caller's user id.

Tokens are stateless; there is no revocation list and logout is a
client-side discard.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Header, Request

from app.config import Settings
from app.errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user_id: str, username: str, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "username": username,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> str:
    """
    Verify signature and expiry and return the user id carried by the token.
    Raises Forbidden for anything that does not verify.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        logger.info("Rejected token: %s", exc)
        raise Forbidden("Token inválido.") from exc

    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise Forbidden("Token inválido.")
    return user_id


async def get_current_user_id(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> str:
    """FastAPI dependency: Authorization: Bearer <token> → caller user id."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated("Token não fornecido.")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("Token não fornecido.")
    return decode_access_token(token, request.app.state.ctx.settings)
