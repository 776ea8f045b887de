"""
Content service: posts, comments and likes.

Mutations are author-only. Like toggles add the caller's like when absent
and remove it when present; only the like transition notifies, and never
when the caller likes their own content. Counters are maintained with
UPDATE ... SET n = n ± 1 so concurrent toggles don't lose increments.
"""
import logging
import math
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.errors import BadRequest, Forbidden, NotFound
from app.models import (
    Comment,
    CommentLike,
    CommentStatus,
    Edge,
    EdgeKind,
    NotificationType,
    Post,
    PostLike,
)
from app.schemas import RelatedComment, RelatedPost
from app.services.graph import get_user, get_user_by_username
from app.services.notifications import Notifier, display_name, snippet
from app.telemetry import COMMENTS_CREATED_TOTAL, LIKE_TOGGLES_TOTAL, POSTS_CREATED_TOTAL

logger = logging.getLogger(__name__)

COMMENT_SORTS = {
    "newest": (Comment.created_at.desc(),),
    "oldest": (Comment.created_at.asc(),),
    "mostLiked": (Comment.like_count.desc(), Comment.created_at.desc()),
}


# ─────────────────────────── Posts ───────────────────────────────────────

async def _load_post(db: AsyncSession, post_id: str) -> Optional[Post]:
    result = await db.execute(
        select(Post)
        .where(Post.post_id == post_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_post(db: AsyncSession, post_id: str) -> Post:
    post = await _load_post(db, post_id)
    if post is None:
        raise NotFound("Post não encontrado.")
    return post


async def create_post(db: AsyncSession, caller_id: str, content: str, has_image: bool = False) -> Post:
    """
    Validate and insert the post row. An image, if any, is uploaded by the
    caller afterwards and linked with attach_image().
    """
    content = (content or "").strip()
    if not content and not has_image:
        raise BadRequest("O conteúdo do post é obrigatório.")
    await get_user(db, caller_id)

    post = Post(user_id=caller_id, content=content)
    db.add(post)
    await db.flush()

    POSTS_CREATED_TOTAL.inc()
    logger.info("Post created: %s by user %s", post.post_id, caller_id)
    return await get_post(db, post.post_id)


async def attach_image(db: AsyncSession, post_id: str, image_url: str) -> Post:
    await db.execute(update(Post).where(Post.post_id == post_id).values(image=image_url))
    return await get_post(db, post_id)


async def _page(db: AsyncSession, where, page: int, limit: int) -> list[Post]:
    rows = await db.scalars(
        select(Post)
        .where(where)
        .order_by(Post.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(rows.all())


async def list_feed(db: AsyncSession, caller_id: str, page: int = 1, limit: int = 20) -> list[Post]:
    """Posts by the caller and everyone the caller follows, newest first."""
    following = select(Edge.target_id).where(
        Edge.source_id == caller_id, Edge.kind == EdgeKind.FOLLOW
    )
    return await _page(db, or_(Post.user_id == caller_id, Post.user_id.in_(following)), page, limit)


async def list_by_user(db: AsyncSession, user_id: str, page: int = 1, limit: int = 20) -> list[Post]:
    return await _page(db, Post.user_id == user_id, page, limit)


async def list_by_username(db: AsyncSession, username: str, page: int = 1, limit: int = 20) -> list[Post]:
    user = await get_user_by_username(db, username)
    return await list_by_user(db, user.user_id, page, limit)


async def toggle_post_like(
    db: AsyncSession, notifier: Notifier, caller_id: str, post_id: str
) -> tuple[list[str], int, bool]:
    """Returns (likes, like_count, liked) after the toggle."""
    post = await get_post(db, post_id)
    liker = await get_user(db, caller_id)

    existing = await db.get(PostLike, (caller_id, post_id))
    if existing is not None:
        await db.delete(existing)
        delta, liked = -1, False
    else:
        db.add(PostLike(user_id=caller_id, post_id=post_id))
        delta, liked = 1, True

    await db.execute(
        update(Post).where(Post.post_id == post_id).values(like_count=Post.like_count + delta)
    )
    LIKE_TOGGLES_TOTAL.labels(target="post", action="like" if liked else "unlike").inc()

    if liked and post.user_id != caller_id:
        await notifier.emit(
            recipient_id=post.user_id,
            sender=liker,
            kind=NotificationType.POST_LIKE,
            content=f"{display_name(liker)} curtiu sua publicação.",
            related=RelatedPost(id=post_id),
        )

    post = await get_post(db, post_id)
    return [like.user_id for like in post.likes], post.like_count, liked


async def delete_post(db: AsyncSession, caller_id: str, post_id: str) -> None:
    """Author-only hard delete. The post's comments and likes go with it."""
    post = await get_post(db, post_id)
    if post.user_id != caller_id:
        raise Forbidden("Apenas o autor pode deletar este post.")

    comment_ids = select(Comment.comment_id).where(Comment.post_id == post_id)
    await db.execute(
        delete(CommentLike)
        .where(CommentLike.comment_id.in_(comment_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Comment)
        .where(Comment.post_id == post_id, Comment.parent_comment_id.is_not(None))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Comment).where(Comment.post_id == post_id).execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(PostLike).where(PostLike.post_id == post_id).execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Post).where(Post.post_id == post_id).execution_options(synchronize_session=False)
    )
    db.expunge(post)
    logger.info("Post %s deleted by %s", post_id, caller_id)


# ─────────────────────────── Comments ────────────────────────────────────

async def _load_comment(db: AsyncSession, comment_id: str) -> Optional[Comment]:
    result = await db.execute(
        select(Comment)
        .where(Comment.comment_id == comment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_comment(db: AsyncSession, comment_id: str) -> Comment:
    comment = await _load_comment(db, comment_id)
    if comment is None:
        raise NotFound("Comentário não encontrado.")
    return comment


async def create_comment(
    db: AsyncSession,
    notifier: Notifier,
    caller_id: str,
    post_id: str,
    content: str,
    parent_comment_id: Optional[str] = None,
) -> Comment:
    post = await get_post(db, post_id)
    author = await get_user(db, caller_id)

    parent_id = None
    if parent_comment_id:
        parent = await _load_comment(db, parent_comment_id)
        if parent is None:
            raise NotFound("Comentário pai não encontrado.")
        if parent.post_id != post_id:
            raise BadRequest("O comentário pai pertence a outra publicação.")
        # Threads are one level deep: a reply to a reply joins its root.
        parent_id = parent.parent_comment_id or parent.comment_id

    comment = Comment(post_id=post_id, user_id=caller_id, content=content, parent_comment_id=parent_id)
    db.add(comment)
    await db.flush()
    await db.execute(
        update(Post).where(Post.post_id == post_id).values(comment_count=Post.comment_count + 1)
    )
    COMMENTS_CREATED_TOTAL.inc()

    if post.user_id != caller_id:
        await notifier.emit(
            recipient_id=post.user_id,
            sender=author,
            kind=NotificationType.POST_COMMENT,
            content=f'{display_name(author)} comentou em sua publicação: "{snippet(content)}"',
            related=RelatedPost(id=post_id),
        )
    return await get_comment(db, comment.comment_id)


async def list_comments(
    db: AsyncSession, post_id: str, page: int = 1, limit: int = 10, sort: str = "newest"
) -> tuple[list[Comment], int]:
    """Top-level active comments (replies attached) and the total count."""
    await get_post(db, post_id)
    where = (
        Comment.post_id == post_id,
        Comment.parent_comment_id.is_(None),
        Comment.status == CommentStatus.ACTIVE,
    )
    total = await db.scalar(select(func.count()).select_from(Comment).where(*where)) or 0
    rows = await db.scalars(
        select(Comment)
        .where(*where)
        .order_by(*COMMENT_SORTS.get(sort, COMMENT_SORTS["newest"]))
        .offset((page - 1) * limit)
        .limit(limit)
        .options(selectinload(Comment.replies))
    )
    return list(rows.all()), total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def update_comment(db: AsyncSession, caller_id: str, comment_id: str, content: str) -> Comment:
    comment = await get_comment(db, comment_id)
    if comment.user_id != caller_id:
        raise Forbidden("Você não tem permissão para editar este comentário.")
    comment.content = content
    await db.flush()
    return await get_comment(db, comment_id)


async def delete_comment(db: AsyncSession, caller_id: str, comment_id: str) -> None:
    """Author-only. Removes the comment, its replies and their likes."""
    comment = await get_comment(db, comment_id)
    if comment.user_id != caller_id:
        raise Forbidden("Você não tem permissão para deletar este comentário.")

    reply_ids = list(
        (await db.scalars(select(Comment.comment_id).where(Comment.parent_comment_id == comment_id))).all()
    )
    removed = [comment_id, *reply_ids]

    await db.execute(
        delete(CommentLike)
        .where(CommentLike.comment_id.in_(removed))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Comment)
        .where(Comment.parent_comment_id == comment_id)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Comment).where(Comment.comment_id == comment_id).execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Post)
        .where(Post.post_id == comment.post_id)
        .values(comment_count=Post.comment_count - len(removed))
    )
    db.expunge(comment)
    logger.info("Comment %s (%d replies) deleted by %s", comment_id, len(reply_ids), caller_id)


async def toggle_comment_like(
    db: AsyncSession, notifier: Notifier, caller_id: str, comment_id: str
) -> tuple[list[str], int, bool]:
    comment = await get_comment(db, comment_id)
    liker = await get_user(db, caller_id)

    existing = await db.get(CommentLike, (caller_id, comment_id))
    if existing is not None:
        await db.delete(existing)
        delta, liked = -1, False
    else:
        db.add(CommentLike(user_id=caller_id, comment_id=comment_id))
        delta, liked = 1, True

    await db.execute(
        update(Comment)
        .where(Comment.comment_id == comment_id)
        .values(like_count=Comment.like_count + delta)
    )
    LIKE_TOGGLES_TOTAL.labels(target="comment", action="like" if liked else "unlike").inc()

    if liked and comment.user_id != caller_id:
        await notifier.emit(
            recipient_id=comment.user_id,
            sender=liker,
            kind=NotificationType.COMMENT_LIKE,
            content=f"{display_name(liker)} curtiu seu comentário.",
            related=RelatedComment(id=comment_id),
        )

    comment = await get_comment(db, comment_id)
    return [like.user_id for like in comment.likes], comment.like_count, liked
