"""Campaign CRUD and lifecycle commands.

Creation rules:
- Fixed-goal simple campaigns need a goal of at least ``min_goal_amount`` AC.
- Auctions need a base amount of at least ``min_base_amount`` AC and an
  offered product.
- Auctions and open-ended simple campaigns need a deadline in the future.

New campaigns wait in ``pending_approval`` until an admin approves them.
Once approved, the financial terms are frozen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns import lifecycle
from hope.campaigns.constants import (
    ACTIVE,
    AUCTION,
    CLOSED,
    FINANCIAL_FIELDS,
    GOAL_FIXED,
    GOAL_OPEN,
    PAUSED,
    PENDING_APPROVAL,
    REASON_ADMIN,
    REASON_MANUAL,
    SIMPLE,
)
from hope.campaigns.repository import get_campaign
from hope.campaigns.schemas import CreateCampaignRequest, UpdateCampaignRequest
from hope.config import get_settings
from hope.currency import AB, AC, to_ac
from hope.db.base import utcnow
from hope.db.models import Bid, Campaign, Donation, User
from hope.errors import NotFound, Rejected, Unauthorized
from hope.notifications.service import Notifier

logger = logging.getLogger(__name__)

TERM_FIELDS = ("campaign_type", "goal_type", "goal_amount", "base_amount", "deadline", "offer_product_id")


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_terms(
    campaign_type: str,
    goal_type: str | None,
    goal_amount: Decimal | None,
    base_amount: Decimal | None,
    deadline: datetime | None,
    offer_product_id: int | None,
    now: datetime | None = None,
    require_future: bool = True,
) -> None:
    """Check a campaign's financial terms. Raises Rejected on the first violation."""
    settings = get_settings()
    now = now or utcnow()

    if campaign_type == SIMPLE:
        if goal_type is None:
            raise Rejected("Goal type is required for simple donation campaigns")
        if goal_type == GOAL_FIXED and (goal_amount is None or goal_amount < settings.min_goal_amount):
            raise Rejected(f"Goal amount must be at least {settings.min_goal_amount} AC for fixed campaigns")
    elif campaign_type == AUCTION:
        if base_amount is None or base_amount < settings.min_base_amount:
            raise Rejected(f"Base amount must be at least {settings.min_base_amount} AC for auction campaigns")
        if offer_product_id is None:
            raise Rejected("Please select a product to offer for auction")

    needs_deadline = campaign_type == AUCTION or goal_type == GOAL_OPEN
    if needs_deadline and deadline is None:
        raise Rejected("End date is required for this campaign type")
    if require_future and deadline is not None and deadline <= now:
        raise Rejected("End date must be in the future")


async def _owned_campaign(db: AsyncSession, campaign_id: int, user: User, notifier: Notifier | None) -> Campaign:
    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None:
        raise NotFound("Campaign not found")
    if campaign.owner_id != user.id:
        raise Unauthorized("You can only modify your own campaigns")
    return campaign


def can_view(campaign: Campaign, viewer: User | None) -> bool:
    """Unapproved campaigns are visible to their owner and admins only."""
    if campaign.is_approved:
        return True
    return viewer is not None and (viewer.id == campaign.owner_id or viewer.is_admin)


async def get_campaign_details(
    db: AsyncSession,
    campaign_id: int,
    viewer: User | None,
    notifier: Notifier | None = None,
) -> Campaign:
    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None or not can_view(campaign, viewer):
        raise NotFound("Campaign not found")
    return campaign


async def create_campaign(db: AsyncSession, owner_id: int, body: CreateCampaignRequest) -> Campaign:
    """Create a campaign in ``pending_approval``."""
    deadline = _aware(body.deadline)
    goal_type = body.goal_type if body.campaign_type == SIMPLE else None
    validate_terms(
        body.campaign_type,
        goal_type,
        body.goal_amount,
        body.base_amount,
        deadline,
        body.offer_product_id,
    )

    campaign = Campaign(
        owner_id=owner_id,
        title=body.title,
        description=body.description,
        soul_words=body.soul_words,
        category_type=body.category_type,
        visuals=list(body.visuals),
        verification=body.verification,
        campaign_type=body.campaign_type,
        goal_type=goal_type,
        goal_amount=body.goal_amount if body.campaign_type == SIMPLE else None,
        base_amount=body.base_amount if body.campaign_type == AUCTION else None,
        accepted_currencies=list(body.accepted_currencies),
        offer_product_id=body.offer_product_id if body.campaign_type == AUCTION else None,
        deadline=deadline,
        status=PENDING_APPROVAL,
        is_approved=False,
    )
    db.add(campaign)
    await db.flush()
    await db.refresh(campaign)

    logger.info("Campaign %d created by user %d (%s)", campaign.id, owner_id, campaign.campaign_type)
    return campaign


async def update_campaign(
    db: AsyncSession,
    campaign_id: int,
    user: User,
    body: UpdateCampaignRequest,
    notifier: Notifier | None = None,
) -> Campaign:
    """Apply a partial update. Financial fields are ignored once approved."""
    campaign = await _owned_campaign(db, campaign_id, user, notifier)
    if campaign.status == CLOSED:
        raise Rejected("Cannot update a closed campaign")

    changes = body.model_dump(exclude_unset=True)
    if "deadline" in changes:
        changes["deadline"] = _aware(changes["deadline"])

    if campaign.is_approved:
        if "goal_type" in changes and changes["goal_type"] != campaign.goal_type:
            raise Rejected("Cannot change goal type for approved campaigns")
        changes = {k: v for k, v in changes.items() if k not in FINANCIAL_FIELDS}

    if any(field in changes for field in TERM_FIELDS):
        merged = {field: changes.get(field, getattr(campaign, field)) for field in TERM_FIELDS}
        # An unchanged deadline is not held against the clock again
        validate_terms(**merged, require_future="deadline" in changes)

    for field, value in changes.items():
        setattr(campaign, field, value)
    campaign.updated_at = utcnow()
    await db.flush()

    logger.info("Campaign %d updated by user %d: %s", campaign.id, user.id, sorted(changes))
    return campaign


async def approve_campaign(
    db: AsyncSession,
    campaign_id: int,
    admin: User,
    notifier: Notifier | None = None,
) -> Campaign:
    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None:
        raise NotFound("Campaign not found")
    if campaign.is_approved:
        raise Rejected("Campaign is already approved")
    lifecycle.validate_transition(campaign.status, ACTIVE)

    now = utcnow()
    campaign.is_approved = True
    campaign.approved_at = now
    campaign.approved_by = admin.id
    campaign.status = ACTIVE
    campaign.updated_at = now
    await db.flush()

    logger.info("Campaign %d approved by admin %d", campaign.id, admin.id)
    return campaign


async def pause_campaign(
    db: AsyncSession,
    campaign_id: int,
    user: User,
    reason: str | None = None,
    notifier: Notifier | None = None,
) -> Campaign:
    campaign = await _owned_campaign(db, campaign_id, user, notifier)
    if campaign.status == CLOSED:
        raise Rejected("Cannot pause a closed campaign")
    lifecycle.validate_transition(campaign.status, PAUSED)

    now = utcnow()
    campaign.status = PAUSED
    campaign.paused_reason = reason or "Campaign paused by creator"
    campaign.paused_at = now
    campaign.updated_at = now
    await db.flush()

    logger.info("Campaign %d paused by user %d", campaign.id, user.id)
    return campaign


async def activate_campaign(
    db: AsyncSession,
    campaign_id: int,
    user: User,
    notifier: Notifier | None = None,
) -> Campaign:
    """Resume a paused campaign. A campaign past its deadline has already been closed."""
    campaign = await _owned_campaign(db, campaign_id, user, notifier)
    if campaign.status == CLOSED:
        raise Rejected("Cannot activate a closed campaign")
    lifecycle.validate_transition(campaign.status, ACTIVE)

    campaign.status = ACTIVE
    campaign.paused_reason = None
    campaign.paused_at = None
    campaign.updated_at = utcnow()
    await db.flush()

    logger.info("Campaign %d activated by user %d", campaign.id, user.id)
    return campaign


async def _close(
    db: AsyncSession,
    campaign: Campaign,
    reason: str,
    reason_text: str | None,
    notifier: Notifier | None,
) -> Campaign:
    if campaign.status == CLOSED:
        raise Rejected("Campaign is already closed")
    lifecycle.validate_transition(campaign.status, CLOSED)
    if not await lifecycle.close_campaign(db, campaign, reason, reason_text):
        raise Rejected("Campaign is already closed")
    await db.commit()
    lifecycle.announce_close(notifier, campaign)
    return campaign


async def close_campaign(
    db: AsyncSession,
    campaign_id: int,
    user: User,
    reason: str | None = None,
    notifier: Notifier | None = None,
) -> Campaign:
    campaign = await _owned_campaign(db, campaign_id, user, notifier)
    await _close(db, campaign, REASON_MANUAL, reason, notifier)
    logger.info("Campaign %d closed by user %d", campaign.id, user.id)
    return campaign


async def admin_close_campaign(
    db: AsyncSession,
    campaign_id: int,
    admin: User,
    reason: str | None = None,
    notifier: Notifier | None = None,
) -> Campaign:
    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None:
        raise NotFound("Campaign not found")
    await _close(db, campaign, REASON_ADMIN, reason, notifier)
    logger.info("Campaign %d closed by admin %d", campaign.id, admin.id)
    return campaign


@dataclass
class CurrencyTotals:
    ac: Decimal
    ab: Decimal
    count: int

    @property
    def ac_equivalent(self) -> Decimal:
        return self.ac + to_ac(self.ab, AB)


async def _totals_by_currency(db: AsyncSession, model: type[Bid] | type[Donation]) -> CurrencyTotals:
    result = await db.execute(
        select(model.currency, func.coalesce(func.sum(model.amount), 0), func.count())
        .group_by(model.currency)
    )
    sums = {AC: Decimal("0"), AB: Decimal("0")}
    count = 0
    for currency, total, n in result.all():
        if currency in sums:
            sums[currency] += Decimal(total)
        count += n
    return CurrencyTotals(ac=sums[AC], ab=sums[AB], count=count)


async def get_overall_totals(db: AsyncSession) -> tuple[CurrencyTotals, CurrencyTotals]:
    """Platform-wide (donations, bids) totals per currency."""
    donations = await _totals_by_currency(db, Donation)
    bids = await _totals_by_currency(db, Bid)
    return donations, bids
