"""
Application context: every long-lived resource the request handlers need,
built explicitly at startup and torn down at shutdown.

The instance lives on app.state.ctx; dependencies read it from the request.
"""
import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.minio_client import MediaStorage
from app.clients.push_client import PushClient
from app.config import Settings
from app.database import Database, DbSession
from app.services.notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    database: Database
    storage: MediaStorage
    push: PushClient

    @classmethod
    async def open(cls, settings: Settings) -> "AppContext":
        database = Database(settings.sqlalchemy_url)
        await database.create_all()

        storage = MediaStorage(settings)
        storage.init()              # sync, boto3 is not async

        push = PushClient(settings)
        await push.start()

        return cls(settings=settings, database=database, storage=storage, push=push)

    async def close(self) -> None:
        await self.push.stop()
        await self.database.dispose()
        logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def get_notifier(
    db: AsyncSession = DbSession,
    ctx: AppContext = Depends(get_context),
) -> Notifier:
    """Request-scoped notifier sharing the request's DB session."""
    return Notifier(db, ctx.push)
