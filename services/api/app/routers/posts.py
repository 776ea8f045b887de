"""
Post endpoints:
  POST   /api/posts                     — create a post (multipart: content, image)
  GET    /api/posts/feed                — caller + followed authors, newest first
  GET    /api/posts/user/{user_id}      — posts by author id
  GET    /api/posts/username/{username} — posts by author username
  GET    /api/posts/{id}                — fetch a single post
  PUT    /api/posts/{id}/like           — like / unlike toggle
  DELETE /api/posts/{id}                — author-only delete
"""
import logging
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.minio_client import read_image
from app.context import AppContext, get_context, get_notifier
from app.database import DbSession, on_rollback
from app.models import Post
from app.schemas import AuthorSummary, LikeToggleResponse, MessageResponse, PostResponse
from app.security import get_current_user_id
from app.services import content
from app.services.notifications import Notifier

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_post_response(post: Post) -> PostResponse:
    return PostResponse(
        post_id=post.post_id,
        user_id=post.user_id,
        author=AuthorSummary.model_validate(post.author) if post.author else None,
        content=post.content,
        image=post.image,
        likes=[like.user_id for like in post.likes],
        like_count=post.like_count,
        comment_count=post.comment_count,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    text: str = Form("", alias="content"),
    image: Optional[UploadFile] = File(None),
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    """
    1. Validate the optional image (image/* only, size-capped).
    2. Persist the post; content may be empty only when an image is attached.
    3. Upload the image to MinIO and link its durable URL. The object is
       deleted again if the transaction rolls back.
    """
    with tracer.start_as_current_span("create_post") as span:
        data = None
        if image is not None and image.filename:
            data, content_type = await read_image(image, ctx.settings.upload_max_bytes)

        post = await content.create_post(db, caller_id, text, has_image=data is not None)

        if data is not None:
            image_url = await run_in_threadpool(ctx.storage.upload_image, data, content_type, "posts")
            on_rollback(db, partial(run_in_threadpool, ctx.storage.delete_image, image_url))
            post = await content.attach_image(db, post.post_id, image_url)

        span.set_attribute("post.id", post.post_id)
        span.set_attribute("post.user_id", post.user_id)
        return _build_post_response(post)


@router.get("/feed", response_model=list[PostResponse])
async def get_feed(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    with tracer.start_as_current_span("get_feed") as span:
        span.set_attribute("user.id", caller_id)
        posts = await content.list_feed(db, caller_id, page, limit or ctx.settings.feed_page_size)
        return [_build_post_response(p) for p in posts]


@router.get("/user/{user_id}", response_model=list[PostResponse])
async def list_user_posts(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = DbSession,
):
    posts = await content.list_by_user(db, user_id, page, limit)
    return [_build_post_response(p) for p in posts]


@router.get("/username/{username}", response_model=list[PostResponse])
async def list_username_posts(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = DbSession,
):
    posts = await content.list_by_username(db, username, page, limit)
    return [_build_post_response(p) for p in posts]


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, db: AsyncSession = DbSession):
    post = await content.get_post(db, post_id)
    return _build_post_response(post)


@router.put("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    notifier: Notifier = Depends(get_notifier),
):
    """Like the post, or remove the caller's like if it is already there."""
    with tracer.start_as_current_span("toggle_post_like"):
        likes, like_count, liked = await content.toggle_post_like(db, notifier, caller_id, post_id)
        return LikeToggleResponse(likes=likes, like_count=like_count, liked=liked)


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    with tracer.start_as_current_span("delete_post"):
        await content.delete_post(db, caller_id, post_id)
        return MessageResponse(message="Post deletado com sucesso.")
