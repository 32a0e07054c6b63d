"""Donations to simple campaigns.

Each donor may donate once per campaign (UNIQUE(campaign_id, donor_id)).
Aggregates are bumped with atomic increments so concurrent donations never
lose an update, and the donation that carries a fixed-goal campaign over
its goal closes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns import lifecycle
from hope.campaigns.constants import ACTIVE, GOAL_FIXED, REASON_GOAL_REACHED, SIMPLE
from hope.campaigns.repository import get_campaign, get_user_donation
from hope.currency import AB, AC, to_ac
from hope.db.base import utcnow
from hope.db.models import Campaign, Donation
from hope.errors import Conflict, InvalidOperation, NotFound, Rejected, UpstreamFailure
from hope.notifications.service import Notifier
from hope.wallet import service as wallet

logger = structlog.get_logger()

ALREADY_DONATED = "You have already donated to this campaign"


@dataclass
class DonationResult:
    donation: Donation
    campaign: Campaign
    goal_reached: bool
    campaign_closed: bool


def goal_reached(campaign: Campaign) -> bool:
    return (
        campaign.goal_type == GOAL_FIXED
        and campaign.goal_amount is not None
        and campaign.total_donations >= campaign.goal_amount
    )


async def create_donation(
    db: AsyncSession,
    campaign_id: int,
    donor_id: int,
    amount: Decimal,
    currency: str,
    anonymous: bool = False,
    notifier: Notifier | None = None,
) -> DonationResult:
    """Record a donation, debit the donor and commit."""
    amount = Decimal(amount)
    if amount <= 0:
        raise Rejected("Donation amount must be positive")

    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None:
        raise NotFound("Campaign not found")
    if lifecycle.deadline_passed(campaign):
        raise Rejected("Donation declined. Campaign deadline has passed and it is now closed.")
    if campaign.campaign_type != SIMPLE:
        raise InvalidOperation("This campaign does not accept donations")
    if currency not in campaign.accepted_currencies:
        raise Rejected(f"This campaign only accepts: {', '.join(campaign.accepted_currencies)}")
    if campaign.status != ACTIVE:
        raise Rejected("Campaign is not active for donations")
    if await get_user_donation(db, campaign.id, donor_id) is not None:
        raise Rejected(ALREADY_DONATED)

    amount_ac = to_ac(amount, currency)
    reference = f"campaign:{campaign.id}"
    await wallet.debit(db, donor_id, AC, amount_ac, "donation", reference)

    donation = Donation(
        campaign_id=campaign.id,
        donor_id=donor_id,
        amount=amount,
        currency=currency,
        amount_ac=amount_ac,
        anonymously_donated=anonymous,
    )
    increments = {
        "total_donations": Campaign.total_donations + amount_ac,
        "donation_count": Campaign.donation_count + 1,
        "updated_at": utcnow(),
    }
    if currency == AB:
        increments["total_donations_ab"] = Campaign.total_donations_ab + amount
    else:
        increments["total_donations_ac"] = Campaign.total_donations_ac + amount

    try:
        async with db.begin_nested():
            db.add(donation)
            await db.flush()
            result = await db.execute(
                update(Campaign)
                .where(Campaign.id == campaign.id, Campaign.status == ACTIVE)
                .values(**increments)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise Conflict("Campaign closed while the donation was being recorded")
    except (Conflict, SQLAlchemyError) as exc:
        await wallet.credit(db, donor_id, AC, amount_ac, "donation_reversal", reference, reverses_spend=True)
        await db.commit()
        if isinstance(exc, IntegrityError):
            # Lost the race against another donation from the same donor
            raise Rejected(ALREADY_DONATED) from exc
        if isinstance(exc, Conflict):
            logger.warning("donation_conflict", campaign_id=campaign.id, donor_id=donor_id)
            raise
        logger.error("donation_persist_failed", campaign_id=campaign.id, donor_id=donor_id, error=str(exc))
        raise UpstreamFailure("Failed to record donation") from exc

    await db.refresh(campaign)
    reached = goal_reached(campaign)
    closed = False
    if reached:
        closed = await lifecycle.close_campaign(db, campaign, REASON_GOAL_REACHED)
    await db.commit()

    logger.info(
        "donation_created",
        campaign_id=campaign.id,
        donation_id=donation.id,
        donor_id=donor_id,
        amount=str(amount),
        currency=currency,
        goal_reached=reached,
    )
    if closed and notifier is not None:
        notifier.notify(
            campaign.owner_id,
            "Campaign Goal Reached!",
            f'Your campaign "{campaign.title}" has reached its goal of {campaign.goal_amount} AC '
            "and has been closed. You can now claim the funds.",
            "campaign_success",
            str(campaign.id),
        )
    return DonationResult(donation=donation, campaign=campaign, goal_reached=reached, campaign_closed=closed)
