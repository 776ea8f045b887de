"""
User and social graph endpoints:
  PUT    /api/users/me                          — update profile fields
  PUT    /api/users/me/username                 — change username (once per 30 days)
  PUT    /api/users/me/avatar                   — upload avatar image
  GET    /api/users/me/friend-requests          — pending inbound requests
  GET    /api/users/me/favorites                — users the caller favorited
  GET    /api/users/username/{username}         — public profile by username
  GET    /api/users/{id}                        — public profile
  GET    /api/users/{id}/followers|following|friends
  PUT    /api/users/{id}/follow|unfollow|favorite|unfavorite
  POST   /api/users/{id}/friend-request         — send
  DELETE /api/users/{id}/friend-request         — cancel
  PUT    /api/users/{id}/friend-request/accept  — accept (id = requester)
  PUT    /api/users/{id}/friend-request/reject  — reject (id = requester)
  DELETE /api/users/{id}/friend                 — unfriend
"""
import logging
from functools import partial

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.minio_client import read_image
from app.context import AppContext, get_context, get_notifier
from app.database import DbSession, on_rollback
from app.models import EdgeKind
from app.schemas import (
    AuthorSummary,
    MessageResponse,
    ProfileUpdate,
    UsernameChange,
    UserPrivate,
    UserProfile,
)
from app.security import get_current_user_id
from app.services import accounts, graph
from app.services.notifications import Notifier

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


# ─────────────────────────── Own account ─────────────────────────────────

@router.put("/me", response_model=UserPrivate)
async def update_me(
    body: ProfileUpdate,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    user = await accounts.update_profile(db, caller_id, body)
    return await graph.build_profile(db, user, private=True)


@router.put("/me/username", response_model=UserPrivate)
async def change_username(
    body: UsernameChange,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    with tracer.start_as_current_span("change_username"):
        user = await accounts.change_username(
            db, caller_id, body.username, ctx.settings.username_change_interval_days
        )
        return await graph.build_profile(db, user, private=True)


@router.put("/me/avatar", response_model=UserPrivate)
async def upload_avatar(
    image: UploadFile = File(...),
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    with tracer.start_as_current_span("upload_avatar"):
        data, content_type = await read_image(image, ctx.settings.upload_max_bytes)
        await graph.get_user(db, caller_id)
        url = await run_in_threadpool(ctx.storage.upload_image, data, content_type, "avatars")
        on_rollback(db, partial(run_in_threadpool, ctx.storage.delete_image, url))
        user = await accounts.set_avatar(db, caller_id, url)
        return await graph.build_profile(db, user, private=True)


@router.get("/me/friend-requests", response_model=list[AuthorSummary])
async def my_friend_requests(
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    return await graph.neighbour_users(db, caller_id, EdgeKind.FRIEND_REQUEST, inbound=True)


@router.get("/me/favorites", response_model=list[AuthorSummary])
async def my_favorites(
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    return await graph.neighbour_users(db, caller_id, EdgeKind.FAVORITE)


# ─────────────────────────── Public reads ────────────────────────────────

@router.get("/username/{username}", response_model=UserProfile)
async def get_user_by_username(username: str, db: AsyncSession = DbSession):
    user = await graph.get_user_by_username(db, username)
    return await graph.build_profile(db, user)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(user_id: str, db: AsyncSession = DbSession):
    user = await graph.get_user(db, user_id)
    return await graph.build_profile(db, user)


@router.get("/{user_id}/followers")
async def list_followers(user_id: str, db: AsyncSession = DbSession):
    await graph.get_user(db, user_id)
    followers = await graph.neighbours(db, user_id, EdgeKind.FOLLOW, inbound=True)
    return {"user_id": user_id, "followers": followers}


@router.get("/{user_id}/following")
async def list_following(user_id: str, db: AsyncSession = DbSession):
    await graph.get_user(db, user_id)
    following = await graph.neighbours(db, user_id, EdgeKind.FOLLOW)
    return {"user_id": user_id, "following": following}


@router.get("/{user_id}/friends")
async def list_friends(user_id: str, db: AsyncSession = DbSession):
    await graph.get_user(db, user_id)
    friends = await graph.neighbours(db, user_id, EdgeKind.FRIEND)
    return {"user_id": user_id, "friends": friends}


# ─────────────────────────── Follow / favorite ───────────────────────────

@router.put("/{user_id}/follow", response_model=MessageResponse)
async def follow_user(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    notifier: Notifier = Depends(get_notifier),
):
    with tracer.start_as_current_span("follow_user"):
        await graph.follow(db, notifier, caller_id, user_id)
        return MessageResponse(message="Usuário seguido com sucesso.")


@router.put("/{user_id}/unfollow", response_model=MessageResponse)
async def unfollow_user(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    with tracer.start_as_current_span("unfollow_user"):
        await graph.unfollow(db, caller_id, user_id)
        return MessageResponse(message="Você deixou de seguir este usuário.")


@router.put("/{user_id}/favorite", response_model=MessageResponse)
async def favorite_user(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await graph.favorite(db, caller_id, user_id)
    return MessageResponse(message="Usuário adicionado aos favoritos.")


@router.put("/{user_id}/unfavorite", response_model=MessageResponse)
async def unfavorite_user(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await graph.unfavorite(db, caller_id, user_id)
    return MessageResponse(message="Usuário removido dos favoritos.")


# ─────────────────────────── Friends ─────────────────────────────────────

@router.post("/{user_id}/friend-request", response_model=MessageResponse)
async def send_friend_request(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    notifier: Notifier = Depends(get_notifier),
):
    with tracer.start_as_current_span("send_friend_request"):
        await graph.send_friend_request(db, notifier, caller_id, user_id)
        return MessageResponse(message="Solicitação de amizade enviada.")


@router.delete("/{user_id}/friend-request", response_model=MessageResponse)
async def cancel_friend_request(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await graph.cancel_friend_request(db, caller_id, user_id)
    return MessageResponse(message="Solicitação de amizade cancelada.")


@router.put("/{user_id}/friend-request/accept", response_model=MessageResponse)
async def accept_friend_request(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    notifier: Notifier = Depends(get_notifier),
):
    with tracer.start_as_current_span("accept_friend_request"):
        await graph.accept_friend_request(db, notifier, caller_id, user_id)
        return MessageResponse(message="Solicitação de amizade aceita.")


@router.put("/{user_id}/friend-request/reject", response_model=MessageResponse)
async def reject_friend_request(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await graph.reject_friend_request(db, caller_id, user_id)
    return MessageResponse(message="Solicitação de amizade recusada.")


@router.delete("/{user_id}/friend", response_model=MessageResponse)
async def remove_friend(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await graph.remove_friend(db, caller_id, user_id)
    return MessageResponse(message="Amizade desfeita.")
