"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from hope.campaigns.router import router as campaigns_router
from hope.config import get_settings
from hope.database import close_db, get_session_factory, init_db
from hope.health.router import router as health_router
from hope.middleware import setup_middleware
from hope.notifications.router import router as notifications_router
from hope.notifications.service import init_dispatcher
from hope.payments.router import router as payments_router
from hope.redis_client import close_redis, init_redis
from hope.wallet.router import router as wallet_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, settings.database_statement_timeout_ms)
    await init_redis(settings.redis_url)

    # Notification delivery runs beside request handling
    dispatcher = init_dispatcher(get_session_factory, maxsize=settings.notification_queue_size)
    dispatcher_task = asyncio.create_task(dispatcher.start())

    yield

    await dispatcher.stop()
    dispatcher_task.cancel()
    try:
        await dispatcher_task
    except asyncio.CancelledError:
        pass
    delivered = await dispatcher.drain()
    if delivered:
        logger.info("notifications_flushed_on_shutdown", count=delivered)

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Hope Ledger API",
        description="Campaign ledger: auctions, donations, settlement and wallets",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(campaigns_router)
    app.include_router(wallet_router)
    app.include_router(payments_router)
    app.include_router(notifications_router)

    return app


app = create_app()
