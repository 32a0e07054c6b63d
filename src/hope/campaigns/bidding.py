"""Auction bidding.

A bid is accepted only if it strictly beats the current highest bid (or
the base amount, for the first bid) once both are expressed in AC. The
bidder's AC-equivalent is held from the AC wallet immediately; losing bids
are refunded when the owner claims the auction.

Accepting a bid is a conditional campaign UPDATE:

    UPDATE hope_campaigns SET highest_bid = :new, ...
    WHERE id = :id AND status = 'active'
      AND (highest_bid IS NULL OR highest_bid < :new)

so a concurrent higher bid or a concurrent close makes it match zero rows.
The bid row is then rolled back to its savepoint and the hold is returned
with a compensating credit before the error is raised.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns import lifecycle
from hope.campaigns.constants import ACTIVE, AUCTION
from hope.campaigns.repository import get_campaign
from hope.currency import AC, minimum_next_bid, to_ac
from hope.db.base import utcnow
from hope.db.models import Bid, Campaign
from hope.errors import Conflict, InvalidOperation, NotFound, Rejected, UpstreamFailure
from hope.notifications.service import Notifier
from hope.wallet import service as wallet

logger = structlog.get_logger()


def check_bid_amount(campaign: Campaign, amount: Decimal, currency: str) -> Decimal:
    """Apply the amount rules to a bid and return its AC equivalent.

    Raises Rejected when the bid is below the base amount or does not
    strictly beat the current highest bid.
    """
    base = campaign.base_amount or Decimal("0")
    if amount < base:
        raise Rejected(f"Bid amount must be at least {base} {currency}")

    amount_ac = to_ac(amount, currency)
    if campaign.highest_bid is not None:
        if amount_ac <= campaign.highest_bid:
            raise Rejected(
                "Bid amount must be higher than current highest bid. "
                f"Minimum required: {minimum_next_bid(campaign.highest_bid, currency)} {currency}"
            )
    elif amount_ac <= base:
        raise Rejected(
            f"Bid amount must be higher than minimum bid of {base} AC. "
            f"Minimum required: {minimum_next_bid(base, currency)} {currency}"
        )
    return amount_ac


async def place_bid(
    db: AsyncSession,
    campaign_id: int,
    bidder_id: int,
    amount: Decimal,
    currency: str,
    notifier: Notifier | None = None,
) -> Bid:
    """Place a bid on an auction campaign and commit it."""
    amount = Decimal(amount)
    if amount <= 0:
        raise Rejected("Bid amount must be positive")

    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None:
        raise NotFound("Campaign not found")
    if campaign.campaign_type != AUCTION:
        raise InvalidOperation("This campaign does not accept bids")
    if currency not in campaign.accepted_currencies:
        raise Rejected(f"This campaign only accepts: {', '.join(campaign.accepted_currencies)}")
    if lifecycle.deadline_passed(campaign):
        # get_campaign has already closed and settled it
        raise Rejected("Auction has ended")
    if campaign.status != ACTIVE:
        raise Rejected("Campaign is not active for bidding")
    amount_ac = check_bid_amount(campaign, amount, currency)

    previous_winner_id = campaign.current_winner_id
    reference = f"campaign:{campaign.id}"
    await wallet.debit(db, bidder_id, AC, amount_ac, "bid_hold", reference)

    bid = Bid(
        campaign_id=campaign.id,
        bidder_id=bidder_id,
        amount=amount,
        currency=currency,
        amount_ac=amount_ac,
    )
    try:
        async with db.begin_nested():
            db.add(bid)
            await db.flush()
            result = await db.execute(
                update(Campaign)
                .where(
                    Campaign.id == campaign.id,
                    Campaign.status == ACTIVE,
                    or_(Campaign.highest_bid.is_(None), Campaign.highest_bid < amount_ac),
                )
                .values(
                    highest_bid=amount_ac,
                    current_winner_id=bidder_id,
                    winning_bid_id=bid.id,
                    bid_count=Campaign.bid_count + 1,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise Conflict("Bid was overtaken by a concurrent bid or the auction closed")
    except (Conflict, SQLAlchemyError) as exc:
        await wallet.credit(db, bidder_id, AC, amount_ac, "bid_reversal", reference, reverses_spend=True)
        await db.commit()
        if isinstance(exc, Conflict):
            logger.warning("bid_conflict", campaign_id=campaign.id, bidder_id=bidder_id, amount_ac=str(amount_ac))
            raise
        logger.error("bid_persist_failed", campaign_id=campaign.id, bidder_id=bidder_id, error=str(exc))
        raise UpstreamFailure("Failed to place bid") from exc

    await db.commit()
    await db.refresh(campaign)
    logger.info(
        "bid_placed",
        campaign_id=campaign.id,
        bid_id=bid.id,
        bidder_id=bidder_id,
        amount=str(amount),
        currency=currency,
        amount_ac=str(amount_ac),
    )

    if notifier is not None and previous_winner_id is not None and previous_winner_id != bidder_id:
        notifier.notify(
            previous_winner_id,
            "You've been outbid",
            f'A higher bid of {amount} {currency} was placed on "{campaign.title}".',
            "bid_outbid",
            str(campaign.id),
        )
    return bid
