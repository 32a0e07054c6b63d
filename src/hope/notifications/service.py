"""Fire-and-forget notification delivery.

Callers enqueue onto an in-process queue and return immediately; a
background task started in the app lifespan drains the queue, persists
each notification in its own session and pushes it to the user's
WebSocket channel via Redis. Delivery failures are logged and dropped so
they can never fail the request that produced them.

Types: campaign_success, campaign_closed, auction_won, bid_outbid, payment
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hope.db.base import utcnow
from hope.db.models import Notification
from hope.redis_client import publish_user_event

logger = structlog.get_logger()


@dataclass(frozen=True)
class NotificationMessage:
    user_id: int
    title: str
    message: str
    type: str
    related_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)


class Notifier(Protocol):
    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type_: str,
        related_id: str | None = None,
    ) -> bool: ...


class NotificationDispatcher:
    """Queue-backed notification sink drained by a single background task."""

    def __init__(
        self,
        session_factory: Callable[[], async_sessionmaker[AsyncSession]],
        maxsize: int = 1000,
    ) -> None:
        self._session_factory = session_factory
        self._queue: asyncio.Queue[NotificationMessage] = asyncio.Queue(maxsize=maxsize)
        self._running = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type_: str,
        related_id: str | None = None,
    ) -> bool:
        """Enqueue a notification without waiting for delivery. Returns False if dropped."""
        item = NotificationMessage(
            user_id=user_id,
            title=title,
            message=message,
            type=type_,
            related_id=related_id,
        )
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning("notification_dropped", user_id=user_id, type=type_, reason="queue_full")
            return False
        return True

    async def deliver(self, item: NotificationMessage) -> None:
        """Persist and push one notification. Never raises."""
        try:
            async with self._session_factory()() as db:
                notification = Notification(
                    user_id=item.user_id,
                    type=item.type,
                    title=item.title,
                    message=item.message,
                    related_id=item.related_id,
                    created_at=item.created_at,
                )
                db.add(notification)
                await db.commit()
                await publish_user_event(item.user_id, "notification", {
                    "id": str(notification.id),
                    "type": notification.type,
                    "title": notification.title,
                    "message": notification.message,
                    "related_id": notification.related_id,
                    "timestamp": notification.created_at.isoformat(),
                    "read": False,
                })
        except Exception:
            logger.exception("notification_delivery_failed", user_id=item.user_id, type=item.type)

    async def drain(self) -> int:
        """Deliver everything currently queued. Returns the number delivered."""
        delivered = 0
        while not self._queue.empty():
            item = self._queue.get_nowait()
            await self.deliver(item)
            self._queue.task_done()
            delivered += 1
        return delivered

    async def start(self) -> None:
        """Consume the queue until stopped."""
        self._running = True
        logger.info("notification_dispatcher_started")
        try:
            while self._running:
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                await self.deliver(item)
                self._queue.task_done()
        except asyncio.CancelledError:
            pass
        finally:
            logger.info("notification_dispatcher_stopped", pending=self._queue.qsize())

    async def stop(self) -> None:
        """Signal the consumer loop to stop."""
        self._running = False


_dispatcher: NotificationDispatcher | None = None


def init_dispatcher(
    session_factory: Callable[[], async_sessionmaker[AsyncSession]],
    maxsize: int = 1000,
) -> NotificationDispatcher:
    """Create the process-wide dispatcher."""
    global _dispatcher  # noqa: PLW0603
    _dispatcher = NotificationDispatcher(session_factory, maxsize=maxsize)
    return _dispatcher


def get_notifier() -> Notifier:
    """Get the process-wide dispatcher (FastAPI dependency)."""
    if _dispatcher is None:
        msg = "Notification dispatcher not initialized. Call init_dispatcher() first."
        raise RuntimeError(msg)
    return _dispatcher


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> tuple[list[Notification], int]:
    """Recent notifications for a user plus the unread count."""
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))

    unread_result = await db.execute(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    )
    return list(result.scalars().all()), unread_result.scalar_one()


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    """Mark every unread notification as read. Returns the number updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount
