"""
Comment endpoints:
  POST   /api/comments/{post_id}   — comment on a post (optionally as a reply)
  GET    /api/comments/{post_id}   — paginated top-level comments with replies
  PUT    /api/comments/{id}        — edit (author only)
  DELETE /api/comments/{id}        — delete with replies (author only)
  PUT    /api/comments/{id}/like   — like / unlike toggle
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from app.context import get_notifier
from app.database import DbSession
from app.models import Comment, CommentStatus
from app.schemas import (
    AuthorSummary,
    CommentCreate,
    CommentPage,
    CommentResponse,
    CommentThread,
    CommentUpdate,
    LikeToggleResponse,
    MessageResponse,
)
from app.security import get_current_user_id
from app.services import content
from app.services.notifications import Notifier

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _build_comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        comment_id=comment.comment_id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        author=AuthorSummary.model_validate(comment.author) if comment.author else None,
        content=comment.content,
        parent_comment_id=comment.parent_comment_id,
        status=comment.status,
        likes=[like.user_id for like in comment.likes],
        like_count=comment.like_count,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


def _build_thread(comment: Comment) -> CommentThread:
    replies = [
        _build_comment_response(r) for r in comment.replies if r.status == CommentStatus.ACTIVE
    ]
    return CommentThread(**_build_comment_response(comment).model_dump(), replies=replies)


@router.post("/{post_id}", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    body: CommentCreate,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    notifier: Notifier = Depends(get_notifier),
):
    with tracer.start_as_current_span("create_comment") as span:
        comment = await content.create_comment(
            db, notifier, caller_id, post_id, body.content, body.parent_comment_id
        )
        span.set_attribute("comment.id", comment.comment_id)
        return _build_comment_response(comment)


@router.get("/{post_id}", response_model=CommentPage)
async def list_comments(
    post_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query("newest", description="newest | oldest | mostLiked"),
    db: AsyncSession = DbSession,
):
    comments, total = await content.list_comments(db, post_id, page, limit, sort)
    return CommentPage(
        comments=[_build_thread(c) for c in comments],
        total_pages=content.total_pages(total, limit),
        current_page=page,
        total_comments=total,
    )


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    body: CommentUpdate,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    comment = await content.update_comment(db, caller_id, comment_id, body.content)
    return _build_comment_response(comment)


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    with tracer.start_as_current_span("delete_comment"):
        await content.delete_comment(db, caller_id, comment_id)
        return MessageResponse(message="Comentário deletado com sucesso.")


@router.put("/{comment_id}/like", response_model=LikeToggleResponse)
async def toggle_comment_like(
    comment_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    notifier: Notifier = Depends(get_notifier),
):
    with tracer.start_as_current_span("toggle_comment_like"):
        likes, like_count, liked = await content.toggle_comment_like(db, notifier, caller_id, comment_id)
        return LikeToggleResponse(likes=likes, like_count=like_count, liked=liked)
