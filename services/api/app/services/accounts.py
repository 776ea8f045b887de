"""
Account service: registration, login and profile maintenance.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.errors import BadRequest, Conflict, NotFound
from app.models import User, utcnow
from app.schemas import ProfileUpdate, RegisterRequest
from app.security import hash_password, verify_password
from app.services.graph import get_user

logger = logging.getLogger(__name__)

EMAIL_TAKEN = "Email já cadastrado."
USERNAME_TAKEN = "Nome de usuário já existe. Por favor, escolha outro."


async def _username_taken(db: AsyncSession, username: str) -> bool:
    return await db.scalar(select(User.user_id).where(User.username == username)) is not None


async def register(db: AsyncSession, body: RegisterRequest, settings: Settings) -> User:
    if await db.scalar(select(User.user_id).where(User.email == body.email)):
        raise Conflict(EMAIL_TAKEN)
    if await _username_taken(db, body.username):
        raise Conflict(USERNAME_TAKEN)

    # bcrypt is CPU-bound; keep it off the event loop
    password_hash = await run_in_threadpool(hash_password, body.password, settings.bcrypt_rounds)
    user = User(
        nome=body.nome,
        sobrenome=body.sobrenome,
        username=body.username,
        telefone=body.telefone,
        email=body.email,
        cep=body.cep,
        password_hash=password_hash,
    )
    db.add(user)
    await db.flush()
    logger.info("Registered user %s (id=%s)", user.username, user.user_id)
    return user


async def authenticate(db: AsyncSession, identifier: str, password: str) -> User:
    """Look the user up by email or username and check the password."""
    user = await db.scalar(
        select(User).where(or_(User.email == identifier.lower(), User.username == identifier))
    )
    if user is None:
        raise NotFound("Usuário não encontrado.")
    if not await run_in_threadpool(verify_password, password, user.password_hash):
        raise BadRequest("Senha incorreta.")
    return user


async def update_profile(db: AsyncSession, user_id: str, body: ProfileUpdate) -> User:
    user = await get_user(db, user_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field in ("nome", "sobrenome", "cep"):
            raise BadRequest(f"O campo {field} não pode ser vazio.")
        setattr(user, field, value)
    await db.flush()
    return user


async def change_username(
    db: AsyncSession,
    user_id: str,
    username: str,
    interval_days: int = 30,
    now: Optional[datetime] = None,
) -> User:
    """At most one change per `interval_days`; the first change is always allowed."""
    user = await get_user(db, user_id)
    now = now or utcnow()

    if username == user.username:
        raise BadRequest("Este já é o seu nome de usuário.")
    if user.username_changed_at and now - user.username_changed_at < timedelta(days=interval_days):
        raise BadRequest(
            f"Você só pode alterar o nome de usuário uma vez a cada {interval_days} dias."
        )
    if await _username_taken(db, username):
        raise Conflict(USERNAME_TAKEN)

    old = user.username
    user.username = username
    user.username_changed_at = now
    await db.flush()
    logger.info("User %s renamed %s → %s", user_id, old, username)
    return user


async def set_avatar(db: AsyncSession, user_id: str, url: str) -> User:
    user = await get_user(db, user_id)
    user.avatar = url
    await db.flush()
    return user
