"""arq worker: scheduled payouts, campaign expiry sweeps and refund retries.

Import path for arq CLI: arq hope.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from hope.campaigns.claims import retry_pending_refunds
from hope.campaigns.lifecycle import expire_due_campaigns
from hope.config import get_settings
from hope.database import close_db, get_session_factory, init_db
from hope.notifications.service import NotificationDispatcher
from hope.payments.service import process_pending_payments
from hope.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize store, Redis and the notification sink on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url, settings.database_statement_timeout_ms)
    await init_redis(settings.redis_url)
    ctx["notifier"] = NotificationDispatcher(get_session_factory, maxsize=settings.notification_queue_size)
    logger.info("Ledger worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Deliver queued notifications and clean up."""
    notifier: NotificationDispatcher | None = ctx.get("notifier")
    if notifier is not None:
        await notifier.drain()
    await close_redis()
    await close_db()
    logger.info("Ledger worker shut down")


async def settle_pending_payments(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled arq task: daily at 02:00 UTC. Pays out every due seller payment."""
    settings = get_settings()
    async with get_session_factory()() as db:
        try:
            report = await process_pending_payments(db, batch_size=settings.payout_batch_size)
        except Exception:
            logger.exception("Payout run failed")
            raise
    logger.info("Payout run complete: %d completed, %d failed", len(report.completed), len(report.failed))
    return len(report.completed)


async def expire_campaigns(ctx: dict) -> int:  # type: ignore[type-arg]
    """Periodic task: close overdue campaigns every 5 minutes.

    Reads already close overdue campaigns lazily; this only keeps
    untouched campaigns from lingering open.
    """
    settings = get_settings()
    notifier: NotificationDispatcher = ctx["notifier"]
    async with get_session_factory()() as db:
        try:
            closed = await expire_due_campaigns(db, batch_size=settings.expiry_batch_size, notifier=notifier)
        except Exception:
            logger.exception("Campaign expiry sweep failed")
            raise
    await notifier.drain()
    if closed:
        logger.info("Expiry sweep closed %d campaigns", closed)
    return closed


async def retry_refunds(ctx: dict) -> int:  # type: ignore[type-arg]
    """Periodic task: hourly at :30. Refunds losing bids a claim could not refund."""
    settings = get_settings()
    async with get_session_factory()() as db:
        try:
            report = await retry_pending_refunds(db, batch_size=settings.refund_retry_batch_size)
        except Exception:
            logger.exception("Refund retry failed")
            raise
    if report.failed:
        logger.warning("Refund retry left %d bids unrefunded", len(report.failed))
    return len(report.refunded)


class WorkerSettings:
    """arq worker settings for the ledger scheduler."""

    functions = [settle_pending_payments, expire_campaigns, retry_refunds]
    cron_jobs = [
        cron(settle_pending_payments, hour=2, minute=0, run_at_startup=False),
        cron(expire_campaigns, minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}),
        cron(retry_refunds, minute=30),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
    job_timeout = 300
    allow_abort_jobs = True
