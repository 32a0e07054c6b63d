"""Campaign API endpoints.

Campaign CRUD and lifecycle (11), bidding (2), donations (2), claim (1),
totals (1), description generation (1).
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hope.auth.dependencies import get_current_user, get_optional_user, require_admin
from hope.campaigns import bidding, claims, donations, repository, service
from hope.campaigns.constants import PENDING_APPROVAL
from hope.campaigns.descriptions import DescriptionRequest, generate_description
from hope.campaigns.schemas import (
    BidResponse,
    CampaignResponse,
    ClaimResponse,
    CreateCampaignRequest,
    CurrencyTotals,
    DescriptionResponse,
    DonateRequest,
    DonationResponse,
    DonationResultResponse,
    GenerateDescriptionRequest,
    OverallTotalsResponse,
    PlaceBidRequest,
    ReasonRequest,
    UpdateCampaignRequest,
)
from hope.config import get_settings
from hope.database import get_session
from hope.db.models import Bid, Campaign, Donation, User
from hope.notifications.service import Notifier, get_notifier
from hope.schemas import Envelope, Pagination

router = APIRouter(prefix="/api/v1/campaigns", tags=["Campaigns"])

DEFAULT_LIMIT = get_settings().default_page_size
MAX_LIMIT = get_settings().max_page_size


# ── Helpers ──


def _campaign_out(campaign: Campaign) -> CampaignResponse:
    return CampaignResponse.model_validate(campaign)


def _bid_out(bid: Bid, bidder: User | None, winning_bid_id: int | None) -> BidResponse:
    return BidResponse(
        id=bid.id,
        campaign_id=bid.campaign_id,
        bidder_id=bid.bidder_id,
        bidder_name=bidder.display_name if bidder else None,
        amount=bid.amount,
        currency=bid.currency,
        amount_ac=bid.amount_ac,
        is_winning=bid.id == winning_bid_id,
        is_refunded=bid.is_refunded,
        created_at=bid.created_at,
    )


def _donation_out(donation: Donation, donor: User | None) -> DonationResponse:
    anonymous = donation.anonymously_donated
    return DonationResponse(
        id=donation.id,
        campaign_id=donation.campaign_id,
        donor_id=None if anonymous else donation.donor_id,
        donor_name=None if anonymous or donor is None else donor.display_name,
        amount=donation.amount,
        currency=donation.currency,
        amount_ac=donation.amount_ac,
        anonymously_donated=anonymous,
        created_at=donation.created_at,
    )


async def _campaign_page(
    db: AsyncSession,
    page: int,
    limit: int,
    notifier: Notifier,
    **filters,
) -> Envelope[list[CampaignResponse]]:
    campaigns, total = await repository.list_campaigns(db, page=page, limit=limit, notifier=notifier, **filters)
    return Envelope(
        message="Campaigns retrieved successfully",
        data=[_campaign_out(c) for c in campaigns],
        pagination=Pagination.build(page, limit, total),
    )


# ── Create / describe ──


@router.post("", response_model=Envelope[CampaignResponse], status_code=201)
async def create_campaign_endpoint(
    body: CreateCampaignRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a campaign. It stays hidden until an admin approves it."""
    campaign = await service.create_campaign(db, user.id, body)
    await db.commit()
    return Envelope(message="Campaign created successfully and is pending approval", data=_campaign_out(campaign))


@router.post("/generate-description", response_model=Envelope[DescriptionResponse])
async def generate_description_endpoint(
    body: GenerateDescriptionRequest,
    user: User = Depends(get_current_user),
):
    """Draft a campaign description from the creator's soul words."""
    text, source = await generate_description(DescriptionRequest(
        soul_words=body.soul_words,
        category=body.category.category,
        sub_category=body.category.sub_category,
        campaign_type=body.campaign_type,
        goal_type=body.goal_type,
        goal_amount=body.goal_amount,
        base_amount=body.base_amount,
    ))
    return Envelope(message="Description generated", data=DescriptionResponse(description=text, source=source))


# ── Listing ──


@router.get("", response_model=Envelope[list[CampaignResponse]])
async def list_all_campaigns_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Every campaign, any status (admin)."""
    return await _campaign_page(db, page, limit, notifier)


@router.get("/approved", response_model=Envelope[list[CampaignResponse]])
async def list_approved_campaigns_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    category: str | None = Query(None),
    campaign_type: str | None = Query(None, alias="campaignType"),
    status: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Public, approved campaigns with optional filters."""
    return await _campaign_page(
        db, page, limit, notifier,
        approved_only=True, category=category, campaign_type=campaign_type, status=status,
    )


@router.get("/pending-approvals", response_model=Envelope[list[CampaignResponse]])
async def list_pending_approvals_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Campaigns waiting for approval (admin)."""
    return await _campaign_page(db, page, limit, notifier, status=PENDING_APPROVAL)


@router.get("/mine", response_model=Envelope[list[CampaignResponse]])
async def list_my_campaigns_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """The caller's own campaigns, any status."""
    return await _campaign_page(db, page, limit, notifier, owner_id=user.id)


@router.get("/totals", response_model=Envelope[OverallTotalsResponse])
async def overall_totals_endpoint(db: AsyncSession = Depends(get_session)):
    """Platform-wide donation and bid totals."""
    donation_totals, bid_totals = await service.get_overall_totals(db)

    def _out(t: service.CurrencyTotals) -> CurrencyTotals:
        return CurrencyTotals(ac=t.ac, ab=t.ab, ac_equivalent=t.ac_equivalent, count=t.count)

    return Envelope(
        message="Totals retrieved successfully",
        data=OverallTotalsResponse(
            donations=_out(donation_totals),
            bids=_out(bid_totals),
            total_raised_ac=donation_totals.ac_equivalent + bid_totals.ac_equivalent,
        ),
    )


# ── Bids ──


@router.post("/bids", response_model=Envelope[BidResponse], status_code=201)
async def place_bid_endpoint(
    body: PlaceBidRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Bid on an auction. The AC-equivalent is held from the caller's AC wallet."""
    bid = await bidding.place_bid(db, body.campaign_id, user.id, body.amount, body.currency, notifier=notifier)
    return Envelope(message="Bid placed successfully", data=_bid_out(bid, user, bid.id))


@router.get("/bids/{campaign_id}", response_model=Envelope[list[BidResponse]])
async def list_bids_endpoint(
    campaign_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Bid history for an auction."""
    campaign = await service.get_campaign_details(db, campaign_id, viewer, notifier=notifier)
    rows, total = await repository.list_bids(
        db, campaign.id, page=page, limit=limit, newest_first=sort_order == "desc",
    )
    return Envelope(
        message="Bids retrieved successfully",
        data=[_bid_out(bid, bidder, campaign.winning_bid_id) for bid, bidder in rows],
        pagination=Pagination.build(page, limit, total),
    )


# ── Donations ──


@router.post("/donations", response_model=Envelope[DonationResultResponse], status_code=201)
async def donate_endpoint(
    body: DonateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Donate to a simple campaign. One donation per donor per campaign."""
    result = await donations.create_donation(
        db,
        body.campaign_id,
        user.id,
        body.amount,
        body.currency,
        anonymous=body.anonymously_donated,
        notifier=notifier,
    )
    message = "Donation created successfully"
    if result.campaign_closed:
        message += ". Campaign goal reached and campaign has been closed."
    return Envelope(
        message=message,
        data=DonationResultResponse(
            donation=_donation_out(result.donation, user),
            goal_reached=result.goal_reached,
            campaign_closed=result.campaign_closed,
            total_donations=result.campaign.total_donations,
        ),
    )


@router.get("/donations/{campaign_id}", response_model=Envelope[list[DonationResponse]])
async def list_donations_endpoint(
    campaign_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Donations to a campaign, newest first. Anonymous donors are hidden."""
    campaign = await service.get_campaign_details(db, campaign_id, viewer, notifier=notifier)
    rows, total = await repository.list_donations(db, campaign.id, page=page, limit=limit)
    return Envelope(
        message="Donations retrieved successfully",
        data=[_donation_out(donation, donor) for donation, donor in rows],
        pagination=Pagination.build(page, limit, total),
    )


# ── Single campaign ──


@router.get("/{campaign_id}", response_model=Envelope[CampaignResponse])
async def get_campaign_endpoint(
    campaign_id: int,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Campaign details. Unapproved campaigns are visible to their owner and admins only."""
    campaign = await service.get_campaign_details(db, campaign_id, viewer, notifier=notifier)
    return Envelope(message="Campaign retrieved successfully", data=_campaign_out(campaign))


@router.put("/{campaign_id}", response_model=Envelope[CampaignResponse])
async def update_campaign_endpoint(
    campaign_id: int,
    body: UpdateCampaignRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    campaign = await service.update_campaign(db, campaign_id, user, body, notifier=notifier)
    await db.commit()
    return Envelope(message="Campaign updated successfully", data=_campaign_out(campaign))


@router.patch("/{campaign_id}/approve", response_model=Envelope[CampaignResponse])
async def approve_campaign_endpoint(
    campaign_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    campaign = await service.approve_campaign(db, campaign_id, admin, notifier=notifier)
    await db.commit()
    notifier.notify(
        campaign.owner_id,
        "Campaign Approved",
        f'Your campaign "{campaign.title}" has been approved and is now live.',
        "campaign_approved",
        str(campaign.id),
    )
    return Envelope(message="Campaign approved successfully", data=_campaign_out(campaign))


@router.patch("/{campaign_id}/pause", response_model=Envelope[CampaignResponse])
async def pause_campaign_endpoint(
    campaign_id: int,
    body: ReasonRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    reason = body.reason if body else None
    campaign = await service.pause_campaign(db, campaign_id, user, reason, notifier=notifier)
    await db.commit()
    return Envelope(message="Campaign paused successfully", data=_campaign_out(campaign))


@router.patch("/{campaign_id}/activate", response_model=Envelope[CampaignResponse])
async def activate_campaign_endpoint(
    campaign_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    campaign = await service.activate_campaign(db, campaign_id, user, notifier=notifier)
    await db.commit()
    return Envelope(message="Campaign activated successfully", data=_campaign_out(campaign))


@router.patch("/{campaign_id}/close", response_model=Envelope[CampaignResponse])
async def close_campaign_endpoint(
    campaign_id: int,
    body: ReasonRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    reason = body.reason if body else None
    campaign = await service.close_campaign(db, campaign_id, user, reason, notifier=notifier)
    return Envelope(message="Campaign closed successfully", data=_campaign_out(campaign))


@router.patch("/{campaign_id}/admin-close", response_model=Envelope[CampaignResponse])
async def admin_close_campaign_endpoint(
    campaign_id: int,
    body: ReasonRequest | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    reason = body.reason if body else None
    campaign = await service.admin_close_campaign(db, campaign_id, admin, reason, notifier=notifier)
    notifier.notify(
        campaign.owner_id,
        "Campaign Closed",
        f'Your campaign "{campaign.title}" was closed by an administrator.',
        "campaign_closed",
        str(campaign.id),
    )
    return Envelope(message="Campaign closed successfully", data=_campaign_out(campaign))


@router.post("/{campaign_id}/claim", response_model=Envelope[ClaimResponse])
async def claim_endpoint(
    campaign_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    """Pay a closed campaign's proceeds to its owner."""
    result = await claims.claim(db, campaign_id, user.id, notifier=notifier)
    return Envelope(
        message="Funds claimed successfully",
        data=ClaimResponse(
            campaign_id=result.campaign.id,
            amount=result.amount,
            currency=result.currency,
            refunded_bids=len(result.refunds.refunded),
            failed_refunds=len(result.refunds.failed),
        ),
    )
