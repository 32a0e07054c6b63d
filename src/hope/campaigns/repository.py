"""Campaign reads. Every campaign leaving this module has had lazy expiry applied."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hope.campaigns.constants import CLOSED
from hope.campaigns.lifecycle import expire_due_campaigns, materialize
from hope.config import get_settings
from hope.db.models import Bid, Campaign, Donation, User
from hope.notifications.service import Notifier


async def get_campaign(
    db: AsyncSession,
    campaign_id: int,
    notifier: Notifier | None = None,
) -> Campaign | None:
    result = await db.execute(select(Campaign).where(Campaign.id == campaign_id))
    campaign = result.scalar_one_or_none()
    if campaign is None:
        return None
    return await materialize(db, campaign, notifier=notifier)


async def get_campaign_for_update(
    db: AsyncSession,
    campaign_id: int,
    notifier: Notifier | None = None,
) -> Campaign | None:
    """Like get_campaign, but row-locks the campaign (Postgres) for the rest of the transaction."""
    campaign = await get_campaign(db, campaign_id, notifier=notifier)
    if campaign is None:
        return None
    result = await db.execute(
        select(Campaign)
        .where(Campaign.id == campaign_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def list_campaigns(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    owner_id: int | None = None,
    approved_only: bool = False,
    status: str | None = None,
    category: str | None = None,
    campaign_type: str | None = None,
    exclude_closed: bool = False,
    notifier: Notifier | None = None,
) -> tuple[list[Campaign], int]:
    """Filtered, newest-first page of campaigns plus the total match count.

    Overdue campaigns are swept closed first so status filters see the
    materialized state.
    """
    await expire_due_campaigns(db, batch_size=get_settings().expiry_batch_size, notifier=notifier)

    filters = []
    if owner_id is not None:
        filters.append(Campaign.owner_id == owner_id)
    if approved_only:
        filters.append(Campaign.is_approved.is_(True))
    if status:
        filters.append(Campaign.status == status)
    if category:
        filters.append(Campaign.category_type == category)
    if campaign_type:
        filters.append(Campaign.campaign_type == campaign_type)
    if exclude_closed:
        filters.append(Campaign.status != CLOSED)

    total_result = await db.execute(select(func.count()).select_from(Campaign).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Campaign)
        .where(*filters)
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    campaigns = [await materialize(db, c, notifier=notifier) for c in result.scalars().all()]
    return campaigns, total


async def list_bids(
    db: AsyncSession,
    campaign_id: int,
    *,
    page: int = 1,
    limit: int = 10,
    newest_first: bool = True,
) -> tuple[list[tuple[Bid, User | None]], int]:
    """Bid history for a campaign joined with bidder profiles."""
    total_result = await db.execute(
        select(func.count()).select_from(Bid).where(Bid.campaign_id == campaign_id)
    )
    total = total_result.scalar_one()

    order = (Bid.created_at.desc(), Bid.id.desc()) if newest_first else (Bid.created_at.asc(), Bid.id.asc())
    result = await db.execute(
        select(Bid, User)
        .outerjoin(User, User.id == Bid.bidder_id)
        .where(Bid.campaign_id == campaign_id)
        .order_by(*order)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(row[0], row[1]) for row in result.all()], total


async def list_donations(
    db: AsyncSession,
    campaign_id: int,
    *,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[tuple[Donation, User | None]], int]:
    """Donations for a campaign, newest first, joined with donor profiles."""
    total_result = await db.execute(
        select(func.count()).select_from(Donation).where(Donation.campaign_id == campaign_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Donation, User)
        .outerjoin(User, User.id == Donation.donor_id)
        .where(Donation.campaign_id == campaign_id)
        .order_by(Donation.created_at.desc(), Donation.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(row[0], row[1]) for row in result.all()], total


async def get_user_donation(db: AsyncSession, campaign_id: int, donor_id: int) -> Donation | None:
    result = await db.execute(
        select(Donation).where(Donation.campaign_id == campaign_id, Donation.donor_id == donor_id)
    )
    return result.scalar_one_or_none()
