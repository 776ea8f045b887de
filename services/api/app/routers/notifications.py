"""
Notification endpoints (all scoped to the caller as recipient):
  GET    /api/notifications           — newest 50
  GET    /api/notifications/unread    — unread count
  PUT    /api/notifications/read-all  — mark everything read
  PUT    /api/notifications/{id}/read — mark one read
  DELETE /api/notifications/{id}      — delete one
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.context import AppContext, get_context
from app.database import DbSession
from app.models import Notification
from app.schemas import AuthorSummary, MessageResponse, NotificationResponse, UnreadCount
from app.security import get_current_user_id
from app.services import notifications

logger = logging.getLogger(__name__)
router = APIRouter()


def _build_notification_response(notification: Notification) -> NotificationResponse:
    sender = notification.sender
    return NotificationResponse(
        notification_id=notification.notification_id,
        recipient_id=notification.recipient_id,
        sender=AuthorSummary.model_validate(sender) if sender else None,
        type=notification.type,
        content=notification.content,
        read=notification.read,
        related=notifications.related_ref(notification),
        created_at=notification.created_at,
    )


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
):
    items = await notifications.list_for(db, caller_id, ctx.settings.notifications_list_limit)
    logger.debug("%d notifications for %s", len(items), caller_id)
    return [_build_notification_response(n) for n in items]


@router.get("/unread", response_model=UnreadCount)
async def unread_count(
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    return UnreadCount(count=await notifications.unread_count(db, caller_id))


@router.put("/read-all", response_model=MessageResponse)
async def mark_all_read(
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    updated = await notifications.mark_all_read(db, caller_id)
    logger.info("Marked %d notifications read for %s", updated, caller_id)
    return MessageResponse(message="Todas as notificações foram marcadas como lidas.")


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await notifications.mark_read(db, caller_id, notification_id)
    return MessageResponse(message="Notificação marcada como lida.")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = DbSession,
):
    await notifications.delete_own(db, caller_id, notification_id)
    return MessageResponse(message="Notificação excluída com sucesso.")
