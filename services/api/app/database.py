"""
Async SQLAlchemy engine + session factory.

Production runs against TiDB (MySQL wire protocol, aiomysql driver); tests
and local runs can point DATABASE_URL at SQLite through aiosqlite.
The Database object is created once at startup and owned by the AppContext.
"""
import inspect
import logging
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.errors import ApiError, Conflict, Internal

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        if url.startswith("sqlite"):
            self.engine = create_async_engine(url, echo=echo)
            _enable_sqlite_savepoints(self.engine)
        else:
            self.engine = create_async_engine(
                url,
                pool_pre_ping=True,
                pool_size=20,
                max_overflow=10,
                echo=echo,
            )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create all tables if they don't exist (idempotent)."""
        import app.models  # noqa: F401  (registers the mappers)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    async def dispose(self) -> None:
        await self.engine.dispose()


def _enable_sqlite_savepoints(engine) -> None:
    # pysqlite/aiosqlite emit BEGIN lazily, which breaks SAVEPOINT handling.
    # Let SQLAlchemy own the transaction boundaries instead.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


AFTER_COMMIT = "after_commit"
ON_ROLLBACK = "on_rollback"


def after_commit(session: AsyncSession, callback: Callable) -> None:
    """Run `callback` once the session's transaction has committed."""
    session.info.setdefault(AFTER_COMMIT, []).append(callback)


def on_rollback(session: AsyncSession, callback: Callable) -> None:
    """Run `callback` if the session's transaction is rolled back instead."""
    session.info.setdefault(ON_ROLLBACK, []).append(callback)


async def _run_callbacks(session: AsyncSession, key: str) -> None:
    for callback in session.info.pop(key, []):
        result = callback()
        if inspect.isawaitable(result):
            await result


async def commit(session: AsyncSession) -> None:
    await session.commit()
    session.info.pop(ON_ROLLBACK, None)
    await _run_callbacks(session, AFTER_COMMIT)


async def rollback(session: AsyncSession) -> None:
    await session.rollback()
    session.info.pop(AFTER_COMMIT, None)
    await _run_callbacks(session, ON_ROLLBACK)


async def get_db(request: Request):
    """
    FastAPI dependency that yields a request-scoped async DB session.

    Always declare it through `DbSession` so the commit runs before the
    response is sent and a failed commit reaches the client as an error.
    """
    database: Database = request.app.state.ctx.database
    async with database.session_factory() as session:
        try:
            yield session
            await commit(session)
        except ApiError:
            await rollback(session)
            raise
        except IntegrityError as exc:
            await rollback(session)
            logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
            raise Conflict("Operação conflitante com o estado atual.") from exc
        except SQLAlchemyError as exc:
            await rollback(session)
            logger.exception("Database error on %s", request.url.path)
            raise Internal("Erro ao acessar o banco de dados.") from exc
        except Exception:
            await rollback(session)
            raise


DbSession = Depends(get_db, scope="function")
