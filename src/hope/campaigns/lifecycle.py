"""Campaign lifecycle: state machine and lazy expiry.

State progression:
    pending_approval -(approve)-> active
    active -(pause)-> paused
    paused -(activate)-> active
    active | paused -(close)-> closed

``closed`` is terminal. Closing is a conditional UPDATE guarded on
``status <> 'closed'`` so exactly one caller performs the transition and
runs its side effects (auction settlement), however many race for it.

Deadlines are enforced lazily: ``materialize`` is applied to every campaign
the repository returns, closing it if its deadline has passed.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns.constants import (
    ACTIVE,
    AUCTION,
    CLOSE_REASON_TEXT,
    CLOSED,
    PAUSED,
    PENDING_APPROVAL,
    REASON_DEADLINE,
)
from hope.campaigns.settlement import announce_auction_result, settle_auction
from hope.db.base import utcnow
from hope.db.models import Campaign
from hope.errors import InvalidOperation
from hope.notifications.service import Notifier

logger = structlog.get_logger()

VALID_TRANSITIONS: dict[str, list[str]] = {
    PENDING_APPROVAL: [ACTIVE],
    ACTIVE: [PAUSED, CLOSED],
    PAUSED: [ACTIVE, CLOSED],
    CLOSED: [],
}


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises InvalidOperation if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise InvalidOperation(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def is_expired(campaign: Campaign, now: datetime | None = None) -> bool:
    """True when the deadline has passed but the campaign is not yet closed."""
    if campaign.deadline is None or campaign.status == CLOSED:
        return False
    return campaign.deadline <= (now or utcnow())


def deadline_passed(campaign: Campaign, now: datetime | None = None) -> bool:
    return campaign.deadline is not None and campaign.deadline <= (now or utcnow())


async def close_campaign(
    db: AsyncSession,
    campaign: Campaign,
    reason: str,
    reason_text: str | None = None,
) -> bool:
    """Move a campaign to ``closed``. Returns True only for the caller that closed it.

    Auction campaigns are settled (product handed to the current winner)
    as part of the same transaction. The caller commits, then calls
    ``announce_close``.
    """
    now = utcnow()
    result = await db.execute(
        update(Campaign)
        .where(Campaign.id == campaign.id, Campaign.status != CLOSED)
        .values(
            status=CLOSED,
            closed_reason=reason_text or CLOSE_REASON_TEXT.get(reason, reason),
            closed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(campaign)
    if result.rowcount != 1:
        return False

    logger.info("campaign_closed", campaign_id=campaign.id, reason=reason, campaign_type=campaign.campaign_type)
    if campaign.campaign_type == AUCTION:
        await settle_auction(db, campaign)
    return True


def announce_close(notifier: Notifier | None, campaign: Campaign) -> None:
    """Send the notifications owed for a committed close."""
    if notifier is not None and campaign.campaign_type == AUCTION:
        announce_auction_result(notifier, campaign)


async def materialize(
    db: AsyncSession,
    campaign: Campaign,
    now: datetime | None = None,
    notifier: Notifier | None = None,
) -> Campaign:
    """Apply lazy expiry to a campaign that is about to be returned.

    Idempotent: a campaign that is already closed, or whose deadline has
    not passed, is returned untouched. A transition is committed right away
    so it survives whatever the caller does next (including rejecting the
    request that triggered it).
    """
    if is_expired(campaign, now) and await close_campaign(db, campaign, REASON_DEADLINE):
        await db.commit()
        announce_close(notifier, campaign)
    return campaign


async def expire_due_campaigns(
    db: AsyncSession,
    now: datetime | None = None,
    batch_size: int = 50,
    notifier: Notifier | None = None,
) -> int:
    """Close every campaign whose deadline has passed, in bounded batches.

    Returns the number of campaigns this call closed.
    """
    now = now or utcnow()
    closed = 0
    while True:
        result = await db.execute(
            select(Campaign)
            .where(
                Campaign.deadline.is_not(None),
                Campaign.deadline <= now,
                Campaign.status != CLOSED,
            )
            .order_by(Campaign.deadline.asc())
            .limit(batch_size)
        )
        batch = list(result.scalars().all())
        if not batch:
            break
        newly_closed = [c for c in batch if await close_campaign(db, c, REASON_DEADLINE)]
        await db.commit()
        for campaign in newly_closed:
            announce_close(notifier, campaign)
        closed += len(newly_closed)
        if len(batch) < batch_size:
            break

    if closed:
        logger.info("campaigns_expired", count=closed)
    return closed
