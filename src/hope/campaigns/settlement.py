"""Auction settlement, loser refunds and payout computation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns.constants import AUCTION
from hope.currency import AB, AC, to_ac
from hope.db.base import utcnow
from hope.db.models import Bid, Campaign, ProductGrant
from hope.errors import LedgerError
from hope.notifications.service import Notifier
from hope.wallet import service as wallet

logger = structlog.get_logger()


@dataclass
class RefundReport:
    refunded: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    total_ac: Decimal = Decimal("0")


async def settle_auction(db: AsyncSession, campaign: Campaign) -> bool:
    """Hand the offered product to the current winner of a closed auction.

    Safe to call more than once: the grant is unique per campaign. Returns
    True when a grant was written by this call.
    """
    if campaign.current_winner_id is None:
        logger.info("auction_closed_without_bids", campaign_id=campaign.id)
        return False

    granted = False
    if campaign.offer_product_id is not None:
        try:
            async with db.begin_nested():
                db.add(ProductGrant(
                    campaign_id=campaign.id,
                    user_id=campaign.current_winner_id,
                    product_id=campaign.offer_product_id,
                ))
            granted = True
        except IntegrityError:
            logger.info("auction_already_settled", campaign_id=campaign.id)
            return False

    logger.info(
        "auction_settled",
        campaign_id=campaign.id,
        winner_id=campaign.current_winner_id,
        winning_bid=str(campaign.highest_bid),
        product_id=campaign.offer_product_id,
    )
    return granted


def announce_auction_result(notifier: Notifier, campaign: Campaign) -> None:
    """Tell the winner and the owner how a closed auction ended. Call after the close commits."""
    if campaign.current_winner_id is not None:
        notifier.notify(
            campaign.current_winner_id,
            "Auction Won!",
            f'You won the auction "{campaign.title}" with a bid of {campaign.highest_bid} AC.',
            "auction_won",
            str(campaign.id),
        )
        notifier.notify(
            campaign.owner_id,
            "Auction Closed",
            f'Your auction "{campaign.title}" closed with a winning bid of {campaign.highest_bid} AC.',
            "campaign_closed",
            str(campaign.id),
        )


def compute_payout(campaign: Campaign) -> Decimal:
    """AC amount the owner receives when claiming a closed campaign.

    Auctions pay the winning bid; simple campaigns pay every donation
    converted to AC.
    """
    if campaign.campaign_type == AUCTION:
        return campaign.highest_bid or Decimal("0")
    return (campaign.total_donations_ac or Decimal("0")) + to_ac(campaign.total_donations_ab or Decimal("0"), AB)


async def refund_losing_bids(db: AsyncSession, campaign: Campaign) -> RefundReport:
    """Return every non-winning bid's AC to its bidder.

    Each refund runs in its own savepoint: one failure is logged and
    reported without undoing the others or the surrounding claim.
    """
    report = RefundReport()
    query = select(Bid).where(Bid.campaign_id == campaign.id, Bid.is_refunded.is_(False))
    if campaign.winning_bid_id is not None:
        query = query.where(Bid.id != campaign.winning_bid_id)
    result = await db.execute(query.order_by(Bid.id))
    bids = list(result.scalars().all())

    for bid in bids:
        try:
            async with db.begin_nested():
                marked = await db.execute(
                    update(Bid)
                    .where(Bid.id == bid.id, Bid.is_refunded.is_(False))
                    .values(is_refunded=True, refunded_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if marked.rowcount == 1:
                    await wallet.credit(
                        db,
                        bid.bidder_id,
                        AC,
                        bid.amount_ac,
                        "bid_refund",
                        f"bid:{bid.id}",
                        reverses_spend=True,
                    )
                    report.refunded.append(bid.id)
                    report.total_ac += bid.amount_ac
        except (SQLAlchemyError, LedgerError):
            logger.exception("bid_refund_failed", campaign_id=campaign.id, bid_id=bid.id, bidder_id=bid.bidder_id)
            report.failed.append(bid.id)

    logger.info(
        "losing_bids_refunded",
        campaign_id=campaign.id,
        refunded=len(report.refunded),
        failed=len(report.failed),
        total_ac=str(report.total_ac),
    )
    return report
