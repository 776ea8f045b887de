"""
Authentication endpoints:
  POST /api/auth/register — create an account
  POST /api/auth/login    — exchange email/username + password for a JWT
  GET  /api/auth/me       — the caller's private profile
"""
import logging

from fastapi import APIRouter, Depends, status
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from app.context import AppContext, get_context
from app.database import DbSession
from app.schemas import LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, UserPrivate
from app.security import create_access_token, get_current_user_id
from app.services import accounts, graph

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    with tracer.start_as_current_span("register_user"):
        user = await accounts.register(db, body, ctx.settings)
        profile = await graph.build_profile(db, user, private=True)
        return RegisterResponse(message="Usuário registrado com sucesso!", user=profile)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    with tracer.start_as_current_span("login"):
        user = await accounts.authenticate(db, body.email, body.password)
        token = create_access_token(user.user_id, user.username, ctx.settings)
        profile = await graph.build_profile(db, user, private=True)
        logger.info("User %s logged in", user.user_id)
        return LoginResponse(token=token, user=profile)


@router.get("/me", response_model=UserPrivate)
async def me(
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    user = await graph.get_user(db, caller_id)
    return await graph.build_profile(db, user, private=True)
