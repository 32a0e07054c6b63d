"""ORM models for the campaign ledger.

Tables mirror the platform's Postgres schema (see alembic/versions). Money
columns are NUMERIC(20, 4); AC-equivalent values are stored alongside the
original amount and currency so settlement never re-derives them.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from hope.db.base import Base, BigIntPK, JSONType, utcnow


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table (profiles synced from the auth provider)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


class Campaign(Base):
    """Maps to the 'hope_campaigns' table."""

    __tablename__ = "hope_campaigns"
    __table_args__ = (
        CheckConstraint("total_donations >= 0", name="ck_campaign_total_donations_nonneg"),
        Index("ix_hope_campaigns_status_deadline", "status", "deadline"),
        Index("ix_hope_campaigns_owner", "owner_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    soul_words: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    visuals: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    verification: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    campaign_type: Mapped[str] = mapped_column(String(32), nullable=False)
    goal_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    goal_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    base_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    accepted_currencies: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=lambda: ["AC", "AB"])
    offer_product_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="pending_approval", server_default="pending_approval"
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    paused_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    paused_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Donation aggregates (simple campaigns)
    total_donations: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    total_donations_ac: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    total_donations_ab: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    donation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # Auction state, highest_bid is AC-equivalent
    highest_bid: Mapped[Decimal | None] = mapped_column(nullable=True)
    current_winner_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    winning_bid_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    bid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    is_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    claimed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


class Bid(Base):
    """Maps to the 'campaign_bids' table. Rows are never deleted."""

    __tablename__ = "campaign_bids"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_bid_amount_positive"),
        Index("ix_campaign_bids_campaign", "campaign_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("hope_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    bidder_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(4), nullable=False)
    amount_ac: Mapped[Decimal] = mapped_column(nullable=False)
    is_refunded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    refunded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


class Donation(Base):
    """Maps to the 'campaign_donations' table. One row per (campaign, donor)."""

    __tablename__ = "campaign_donations"
    __table_args__ = (
        UniqueConstraint("campaign_id", "donor_id", name="uq_campaign_donations_campaign_donor"),
        CheckConstraint("amount > 0", name="ck_donation_amount_positive"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("hope_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(4), nullable=False)
    amount_ac: Mapped[Decimal] = mapped_column(nullable=False)
    anonymously_donated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


class ProductGrant(Base):
    """Product handed to an auction winner when the auction closes."""

    __tablename__ = "product_grants"
    __table_args__ = (UniqueConstraint("campaign_id", name="uq_product_grants_campaign"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("hope_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    license_type: Mapped[str] = mapped_column(String(32), nullable=False, default="personal")
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


class WalletBalance(Base):
    """Maps to the 'wallets' table: one row per (user, currency)."""

    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("user_id", "currency", name="uq_wallets_user_currency"),
        CheckConstraint("available >= 0", name="ck_wallets_available_nonneg"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    currency: Mapped[str] = mapped_column(String(4), nullable=False)
    available: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    spent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    earned: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"), server_default="0")
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


class WalletTransaction(Base):
    """Append-only history of wallet movements."""

    __tablename__ = "wallet_transactions"
    __table_args__ = (Index("ix_wallet_transactions_user", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    currency: Mapped[str] = mapped_column(String(4), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    direction: Mapped[str] = mapped_column(String(8), nullable=False)  # debit | credit
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """Maps to the 'notifications' table."""

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class PaymentSession(Base):
    """Gateway checkout session for an AC deposit. Confirmed at most once."""

    __tablename__ = "payment_sessions"
    __table_args__ = (UniqueConstraint("external_id", name="uq_payment_sessions_external_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    amount_usd: Mapped[Decimal] = mapped_column(nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    credit_currency: Mapped[str] = mapped_column(String(4), nullable=False, default="AC")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    checkout_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)


class PendingPayment(Base):
    """Seller payout scheduled for a future date, settled by the payout worker."""

    __tablename__ = "pending_payments"
    __table_args__ = (Index("ix_pending_payments_status_date", "status", "payout_date"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    seller_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(4), nullable=False, default="AC")
    payout_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())
