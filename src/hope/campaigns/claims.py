"""Owner claim of a closed campaign's funds, and retries of failed bid refunds."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from sqlalchemy import exists, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns.constants import AUCTION, CLOSED
from hope.campaigns.repository import get_campaign_for_update
from hope.campaigns.settlement import RefundReport, compute_payout, refund_losing_bids
from hope.currency import AC
from hope.db.base import utcnow
from hope.db.models import Bid, Campaign
from hope.errors import NotFound, Rejected, Unauthorized, UpstreamFailure
from hope.notifications.service import Notifier
from hope.wallet import service as wallet

logger = structlog.get_logger()


@dataclass
class ClaimResult:
    campaign: Campaign
    amount: Decimal
    currency: str = AC
    refunds: RefundReport = field(default_factory=RefundReport)


async def claim(
    db: AsyncSession,
    campaign_id: int,
    claimant_id: int,
    notifier: Notifier | None = None,
) -> ClaimResult:
    """Pay a closed campaign's proceeds to its owner, exactly once.

    The ``is_claimed`` flag is flipped by a conditional UPDATE before any
    money moves, so a second concurrent claim matches zero rows and is
    rejected. Auction claims also refund every losing bid.
    """
    campaign = await get_campaign_for_update(db, campaign_id, notifier=notifier)
    if campaign is None:
        raise NotFound("Campaign not found")
    if campaign.status != CLOSED:
        raise Rejected("Campaign is not closed")
    if campaign.owner_id != claimant_id:
        raise Unauthorized("Only campaign creator can claim funds")
    if campaign.is_claimed:
        raise Rejected("Funds already claimed")

    payout = compute_payout(campaign)
    if payout <= 0:
        raise Rejected("No funds to claim")

    now = utcnow()
    gate = await db.execute(
        update(Campaign)
        .where(Campaign.id == campaign.id, Campaign.is_claimed.is_(False), Campaign.status == CLOSED)
        .values(is_claimed=True, claimed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if gate.rowcount != 1:
        await db.rollback()
        raise Rejected("Funds already claimed")

    refunds = RefundReport()
    if campaign.campaign_type == AUCTION:
        refunds = await refund_losing_bids(db, campaign)
    await wallet.credit(db, claimant_id, AC, payout, "campaign_claim", f"campaign:{campaign.id}", earned=True)

    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("claim_commit_failed", campaign_id=campaign.id, error=str(exc))
        raise UpstreamFailure("Failed to claim funds") from exc

    await db.refresh(campaign)
    logger.info(
        "campaign_claimed",
        campaign_id=campaign.id,
        owner_id=claimant_id,
        amount=str(payout),
        refunded_bids=len(refunds.refunded),
        failed_refunds=len(refunds.failed),
    )
    if notifier is not None:
        notifier.notify(
            claimant_id,
            "Funds Claimed",
            f'{payout} AC from "{campaign.title}" has been added to your wallet.',
            "payment",
            str(campaign.id),
        )
    return ClaimResult(campaign=campaign, amount=payout, refunds=refunds)


async def retry_pending_refunds(db: AsyncSession, batch_size: int = 50) -> RefundReport:
    """Refund losing bids left unrefunded by an earlier claim.

    Only claimed auctions are swept; unclaimed ones are refunded by their
    claim. Each campaign is committed on its own. One pass per call, so a
    refund that keeps failing is retried on the next run rather than looped.
    """
    unrefunded_loser = exists().where(
        Bid.campaign_id == Campaign.id,
        Bid.is_refunded.is_(False),
        or_(Campaign.winning_bid_id.is_(None), Bid.id != Campaign.winning_bid_id),
    )
    result = await db.execute(
        select(Campaign)
        .where(
            Campaign.campaign_type == AUCTION,
            Campaign.status == CLOSED,
            Campaign.is_claimed.is_(True),
            unrefunded_loser,
        )
        .order_by(Campaign.claimed_at.asc(), Campaign.id.asc())
        .limit(batch_size)
    )
    total = RefundReport()
    for campaign in result.scalars().all():
        report = await refund_losing_bids(db, campaign)
        await db.commit()
        total.refunded.extend(report.refunded)
        total.failed.extend(report.failed)
        total.total_ac += report.total_ac

    if total.refunded or total.failed:
        logger.info(
            "refund_retry_completed",
            refunded=len(total.refunded),
            failed=len(total.failed),
            total_ac=str(total.total_ac),
        )
    return total
