"""
Social Network API — entry point.

Startup sequence (lifespan):
  1. Open the database and create tables if not present
  2. Initialise the MinIO client & bucket
  3. Start the push-notification HTTP client
  4. Publish everything on app.state.ctx

Shutdown closes the push client and disposes the engine.
Prometheus metrics are exposed at /metrics; OTel tracing is configured when
OTEL_ENABLED is true.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from app.config import Settings, settings
from app.context import AppContext
from app.errors import register_error_handlers
from app.routers import auth, comments, notifications, posts, users
from app.telemetry import instrument_app, setup_tracing

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(config: Optional[Settings] = None) -> FastAPI:
    config = config or settings

    if config.otel_enabled:
        # Before the app is built so instrumented libraries are wrapped
        setup_tracing(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown of all external connections."""
        logger.info("Starting Social Network API (env=%s)", config.environment)
        app.state.ctx = await AppContext.open(config)
        logger.info("All services connected. API ready.")
        yield

        logger.info("Shutting down...")
        await app.state.ctx.close()

    app = FastAPI(
        title="Social Network API",
        description="Accounts, posts, comments, likes, follows, friendships and notifications.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])
    app.include_router(comments.router, prefix="/api/comments", tags=["Comments"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    app.mount("/metrics", make_asgi_app())

    if config.otel_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": config.service_name}

    return app


app = create_app()
