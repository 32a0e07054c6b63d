"""Campaign ledger baseline.

Creates users, hope_campaigns, campaign_bids, campaign_donations,
product_grants, wallets, wallet_transactions, notifications,
payment_sessions and pending_payments.

Revision ID: 001_campaign_ledger
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_campaign_ledger"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

MONEY = sa.Numeric(20, 4)


def _ts(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False)


def upgrade() -> None:
    """Create the ledger tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("display_name", sa.String(64), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("role", sa.String(16), server_default="user", nullable=False),
        sa.Column("is_banned", sa.Boolean(), server_default="false", nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.execute("ALTER TABLE users ADD CONSTRAINT ck_users_role CHECK (role IN ('user', 'admin'))")

    # --- Campaigns ---
    op.create_table(
        "hope_campaigns",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("owner_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("soul_words", sa.Text(), nullable=True),
        sa.Column("category_type", sa.String(64), nullable=True),
        sa.Column("visuals", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("verification", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("campaign_type", sa.String(32), nullable=False),
        sa.Column("goal_type", sa.String(16), nullable=True),
        sa.Column("goal_amount", MONEY, nullable=True),
        sa.Column("base_amount", MONEY, nullable=True),
        sa.Column("accepted_currencies", postgresql.JSONB(), server_default='["AC", "AB"]', nullable=False),
        sa.Column("offer_product_id", sa.BigInteger(), nullable=True),
        _ts("deadline", nullable=True),
        sa.Column("status", sa.String(32), server_default="pending_approval", nullable=False),
        sa.Column("is_approved", sa.Boolean(), server_default="false", nullable=False),
        _ts("approved_at", nullable=True),
        sa.Column("approved_by", sa.BigInteger(), nullable=True),
        sa.Column("paused_reason", sa.Text(), nullable=True),
        _ts("paused_at", nullable=True),
        sa.Column("closed_reason", sa.Text(), nullable=True),
        _ts("closed_at", nullable=True),
        sa.Column("total_donations", MONEY, server_default="0", nullable=False),
        sa.Column("total_donations_ac", MONEY, server_default="0", nullable=False),
        sa.Column("total_donations_ab", MONEY, server_default="0", nullable=False),
        sa.Column("donation_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("highest_bid", MONEY, nullable=True),
        sa.Column("current_winner_id", sa.BigInteger(), nullable=True),
        sa.Column("winning_bid_id", sa.BigInteger(), nullable=True),
        sa.Column("bid_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_claimed", sa.Boolean(), server_default="false", nullable=False),
        _ts("claimed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("total_donations >= 0", name="ck_campaign_total_donations_nonneg"),
    )
    op.create_index("ix_hope_campaigns_status_deadline", "hope_campaigns", ["status", "deadline"])
    op.create_index("ix_hope_campaigns_owner", "hope_campaigns", ["owner_id"])
    op.execute(
        "ALTER TABLE hope_campaigns ADD CONSTRAINT ck_campaign_type "
        "CHECK (campaign_type IN ('simple_donation', 'auction_donation'))"
    )
    op.execute(
        "ALTER TABLE hope_campaigns ADD CONSTRAINT ck_campaign_status "
        "CHECK (status IN ('pending_approval', 'active', 'paused', 'closed'))"
    )

    op.create_table(
        "campaign_bids",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "campaign_id", sa.BigInteger(), sa.ForeignKey("hope_campaigns.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("bidder_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(4), nullable=False),
        sa.Column("amount_ac", MONEY, nullable=False),
        sa.Column("is_refunded", sa.Boolean(), server_default="false", nullable=False),
        _ts("refunded_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint("amount > 0", name="ck_bid_amount_positive"),
    )
    op.create_index("ix_campaign_bids_campaign", "campaign_bids", ["campaign_id", "created_at"])

    op.create_table(
        "campaign_donations",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "campaign_id", sa.BigInteger(), sa.ForeignKey("hope_campaigns.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("donor_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(4), nullable=False),
        sa.Column("amount_ac", MONEY, nullable=False),
        sa.Column("anonymously_donated", sa.Boolean(), server_default="false", nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("campaign_id", "donor_id", name="uq_campaign_donations_campaign_donor"),
        sa.CheckConstraint("amount > 0", name="ck_donation_amount_positive"),
    )

    op.create_table(
        "product_grants",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "campaign_id", sa.BigInteger(), sa.ForeignKey("hope_campaigns.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), nullable=False),
        sa.Column("license_type", sa.String(32), server_default="personal", nullable=False),
        _ts("created_at"),
        sa.UniqueConstraint("campaign_id", name="uq_product_grants_campaign"),
    )

    # --- Wallet ---
    op.create_table(
        "wallets",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("currency", sa.String(4), nullable=False),
        sa.Column("available", MONEY, server_default="0", nullable=False),
        sa.Column("total", MONEY, server_default="0", nullable=False),
        sa.Column("spent", MONEY, server_default="0", nullable=False),
        sa.Column("earned", MONEY, server_default="0", nullable=False),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "currency", name="uq_wallets_user_currency"),
        sa.CheckConstraint("available >= 0", name="ck_wallets_available_nonneg"),
    )
    op.execute("ALTER TABLE wallets ADD CONSTRAINT ck_wallets_currency CHECK (currency IN ('AC', 'AB', 'SP'))")

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("currency", sa.String(4), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("direction", sa.String(8), nullable=False),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("reference", sa.String(128), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_wallet_transactions_user", "wallet_transactions", ["user_id", "created_at"])

    # --- Notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_id", sa.String(64), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default="false", nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_notifications_user", "notifications", ["user_id", "created_at"])

    # --- Payments ---
    op.create_table(
        "payment_sessions",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount_usd", MONEY, nullable=False),
        sa.Column("credit_amount", MONEY, nullable=False),
        sa.Column("credit_currency", sa.String(4), server_default="AC", nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("checkout_url", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), server_default="{}", nullable=False),
        _ts("created_at"),
        _ts("completed_at", nullable=True),
        sa.UniqueConstraint("external_id", name="uq_payment_sessions_external_id"),
    )

    op.create_table(
        "pending_payments",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("seller_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(4), server_default="AC", nullable=False),
        _ts("payout_date"),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_pending_payments_status_date", "pending_payments", ["status", "payout_date"])
    op.execute(
        "ALTER TABLE pending_payments ADD CONSTRAINT ck_pending_payments_status "
        "CHECK (status IN ('pending', 'processing', 'completed', 'failed'))"
    )


def downgrade() -> None:
    """Drop the ledger tables."""
    for table in (
        "pending_payments",
        "payment_sessions",
        "notifications",
        "wallet_transactions",
        "wallets",
        "product_grants",
        "campaign_donations",
        "campaign_bids",
        "hope_campaigns",
        "users",
    ):
        op.drop_table(table)
