"""Notification dispatcher and endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from hope.db.models import Notification
from hope.notifications.service import NotificationDispatcher


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_notify_is_queued_until_drained(self, db, session_factory, make_user):
        user = await make_user("owner")
        dispatcher = NotificationDispatcher(lambda: session_factory)

        assert dispatcher.notify(user.id, "Funds Claimed", "16 AC added", "payment", "7") is True
        assert dispatcher.pending == 1
        assert (await db.execute(select(Notification))).scalars().all() == []
        await db.commit()

        assert await dispatcher.drain() == 1
        assert dispatcher.pending == 0
        stored = (await db.execute(select(Notification))).scalars().all()
        assert [(n.user_id, n.type, n.title, n.related_id, n.is_read) for n in stored] == [
            (user.id, "payment", "Funds Claimed", "7", False),
        ]

    @pytest.mark.asyncio
    async def test_full_queue_drops_instead_of_blocking(self, session_factory):
        dispatcher = NotificationDispatcher(lambda: session_factory, maxsize=1)
        assert dispatcher.notify(1, "a", "a", "payment") is True
        assert dispatcher.notify(1, "b", "b", "payment") is False
        assert dispatcher.pending == 1

    @pytest.mark.asyncio
    async def test_delivery_failure_is_contained(self):
        def _broken():
            raise RuntimeError("Database not initialized. Call init_db() first.")

        dispatcher = NotificationDispatcher(_broken)
        dispatcher.notify(1, "t", "m", "payment")
        # logged and dropped
        assert await dispatcher.drain() == 1


class TestNotificationsAPI:
    @pytest.mark.asyncio
    async def test_list_and_mark_read(self, client: AsyncClient, db, session_factory, make_user, headers):
        user = await make_user("owner")
        other = await make_user("other")
        dispatcher = NotificationDispatcher(lambda: session_factory)
        dispatcher.notify(user.id, "Campaign Approved", "Live now", "campaign_approved", "1")
        dispatcher.notify(user.id, "Funds Claimed", "16 AC", "payment", "1")
        dispatcher.notify(other.id, "Auction Won!", "Yours", "auction_won", "2")
        await dispatcher.drain()

        response = await client.get("/api/v1/notifications", headers=headers(user))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["unread_count"] == 2
        assert {n["type"] for n in data["notifications"]} == {"campaign_approved", "payment"}

        marked = await client.post("/api/v1/notifications/read-all", headers=headers(user))
        assert marked.json()["data"] == {"updated": 2}

        unread = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=headers(user))
        assert unread.json()["data"] == {"notifications": [], "unread_count": 0}

        untouched = await client.get("/api/v1/notifications", headers=headers(other))
        assert untouched.json()["data"]["unread_count"] == 1
