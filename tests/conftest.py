"""Shared test fixtures.

Tests run against a throwaway SQLite file through aiosqlite, with a fresh
schema per test. Redis is never initialized, so rate limiting and
WebSocket pushes are skipped.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hope.auth.jwt import create_access_token
from hope.campaigns.constants import ACTIVE, AUCTION, GOAL_FIXED, SIMPLE
from hope.config import get_settings
from hope.currency import AC
from hope.database import get_session
from hope.db.base import Base
from hope.db.models import Campaign, User
from hope.main import create_app
from hope.notifications.service import NotificationMessage, get_notifier
from hope.payments.gateway import CheckoutSession, get_gateway
from hope.wallet import service as wallet


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch):
    """Deterministic settings: no model calls, a fixed signing key."""
    monkeypatch.setenv("HOPE_AI_ENABLED", "false")
    monkeypatch.setenv("HOPE_JWT_SECRET", "test-secret-key-with-at-least-32-bytes")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        # SQLAlchemy emits BEGIN itself so SAVEPOINTs behave
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Direct session for service calls and assertions."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeNotifier:
    """Records notifications instead of queueing them."""

    sent: list[NotificationMessage] = field(default_factory=list)

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type_: str,
        related_id: str | None = None,
    ) -> bool:
        self.sent.append(NotificationMessage(
            user_id=user_id, title=title, message=message, type=type_, related_id=related_id,
        ))
        return True

    def types_for(self, user_id: int) -> list[str]:
        return [m.type for m in self.sent if m.user_id == user_id]


class FakeGateway:
    """In-memory checkout gateway. Sessions start unpaid."""

    def __init__(self) -> None:
        self.sessions: dict[str, CheckoutSession] = {}

    async def create_session(
        self,
        amount_usd: Decimal,
        description: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession:
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.example/{session_id}",
            payment_status="unpaid",
            amount_total=int(amount_usd * 100),
            metadata=dict(metadata),
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        return self.sessions[session_id]

    def mark_paid(self, session_id: str) -> None:
        self.sessions[session_id] = replace(self.sessions[session_id], payment_status="paid")


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: FakeNotifier,
    gateway: FakeGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test store and fakes."""
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def headers() -> Callable[[User], dict[str, str]]:
    return auth_headers


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make(name: str = "creator", role: str = "user", ac: Decimal | int | None = None) -> User:
        user = User(email=f"{name}@example.com", display_name=name, role=role)
        db.add(user)
        await db.flush()
        if ac:
            await wallet.credit(db, user.id, AC, Decimal(ac), "test_funding")
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_campaign(db: AsyncSession) -> Callable[..., Awaitable[Campaign]]:
    """Insert an approved campaign directly, bypassing creation rules."""

    async def _make(
        owner: User,
        campaign_type: str = SIMPLE,
        *,
        title: str = "Mural for the community garden",
        goal_type: str | None = GOAL_FIXED,
        goal_amount: Decimal | None = Decimal("100"),
        base_amount: Decimal | None = Decimal("10"),
        offer_product_id: int | None = 42,
        deadline: datetime | None = None,
        status: str = ACTIVE,
        is_approved: bool = True,
        accepted_currencies: list[str] | None = None,
    ) -> Campaign:
        auction = campaign_type == AUCTION
        campaign = Campaign(
            owner_id=owner.id,
            title=title,
            campaign_type=campaign_type,
            goal_type=None if auction else goal_type,
            goal_amount=None if auction else goal_amount,
            base_amount=base_amount if auction else None,
            offer_product_id=offer_product_id if auction else None,
            deadline=deadline or datetime.now(timezone.utc) + timedelta(days=7),
            accepted_currencies=accepted_currencies or ["AC", "AB"],
            status=status,
            is_approved=is_approved,
        )
        db.add(campaign)
        await db.commit()
        return campaign

    return _make
