"""
Notification service.

Write side: Notifier.emit() records a notification addressed to a second
user as a side effect of another action (follow, like, comment, friend
request/acceptance). The write happens inside a SAVEPOINT so a failure is
logged and swallowed without rolling back the triggering action. Push
delivery is queued until the request transaction commits, then runs in the
background and is never awaited.

Read side: recipient-scoped list / unread count / mark read / delete.
"""
import logging
from functools import partial
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.push_client import PushClient
from app.database import after_commit
from app.errors import NotFound
from app.models import Notification, NotificationType, RelatedModel, User
from app.schemas import Related, RelatedComment, RelatedPost, RelatedUser
from app.telemetry import NOTIFICATION_FAILURES_TOTAL, NOTIFICATIONS_EMITTED_TOTAL

logger = logging.getLogger(__name__)

PUSH_TITLES = {
    NotificationType.FOLLOW: "Novo seguidor",
    NotificationType.FRIEND_REQUEST: "Solicitação de amizade",
    NotificationType.FRIEND_ACCEPTED: "Solicitação aceita",
    NotificationType.POST_LIKE: "Nova curtida",
    NotificationType.POST_COMMENT: "Novo comentário",
    NotificationType.COMMENT_LIKE: "Nova curtida",
}

_MODEL_BY_KIND = {
    "user": RelatedModel.USER,
    "post": RelatedModel.POST,
    "comment": RelatedModel.COMMENT,
}

_KIND_BY_MODEL = {
    RelatedModel.USER: RelatedUser,
    RelatedModel.POST: RelatedPost,
    RelatedModel.COMMENT: RelatedComment,
}


def display_name(user: User) -> str:
    return f"{user.nome} {user.sobrenome}"


def snippet(text: str, size: int = 50) -> str:
    return text[:size] + ("..." if len(text) > size else "")


def related_ref(notification: Notification) -> Optional[Related]:
    if notification.related_model is None or notification.related_id is None:
        return None
    return _KIND_BY_MODEL[notification.related_model](id=notification.related_id)


class Notifier:
    def __init__(self, db: AsyncSession, push: Optional[PushClient] = None) -> None:
        self.db = db
        self.push = push

    async def emit(
        self,
        *,
        recipient_id: str,
        sender: User,
        kind: NotificationType,
        content: str,
        related: Optional[Related] = None,
    ) -> Optional[Notification]:
        if recipient_id == sender.user_id:
            return None

        # Flush the triggering action first so its errors are not swallowed here.
        await self.db.flush()

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender.user_id,
            type=kind,
            content=content,
            related_model=_MODEL_BY_KIND[related.kind] if related else None,
            related_id=related.id if related else None,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(notification)
        except SQLAlchemyError:
            logger.exception("Failed to store %s notification for %s", kind.value, recipient_id)
            NOTIFICATION_FAILURES_TOTAL.inc()
            return None

        NOTIFICATIONS_EMITTED_TOTAL.labels(type=kind.value).inc()
        logger.info("Notification %s: %s → %s", kind.value, sender.user_id, recipient_id)

        if self.push is not None:
            # Only announce what was actually stored
            after_commit(
                self.db, partial(self.push.schedule, PUSH_TITLES[kind], content, external_id=recipient_id)
            )
        return notification


async def list_for(db: AsyncSession, user_id: str, limit: int = 50) -> list[Notification]:
    rows = await db.scalars(
        select(Notification)
        .where(Notification.recipient_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(rows.all())


async def unread_count(db: AsyncSession, user_id: str) -> int:
    count = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user_id, Notification.read.is_(False))
    )
    return count or 0


async def _get_own(db: AsyncSession, user_id: str, notification_id: str) -> Notification:
    notification = await db.scalar(
        select(Notification).where(
            Notification.notification_id == notification_id,
            Notification.recipient_id == user_id,
        )
    )
    if notification is None:
        raise NotFound("Notificação não encontrada.")
    return notification


async def mark_read(db: AsyncSession, user_id: str, notification_id: str) -> Notification:
    notification = await _get_own(db, user_id, notification_id)
    notification.read = True
    await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    return result.rowcount


async def delete_own(db: AsyncSession, user_id: str, notification_id: str) -> None:
    result = await db.execute(
        delete(Notification).where(
            Notification.notification_id == notification_id,
            Notification.recipient_id == user_id,
        )
    )
    if result.rowcount == 0:
        raise NotFound("Notificação não encontrada.")
