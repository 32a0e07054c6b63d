"""Pydantic schemas for campaign endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hope.currency import CAMPAIGN_CURRENCIES
from hope.schemas import MoneyOut

CampaignType = Literal["simple_donation", "auction_donation"]
GoalType = Literal["fixed", "open-ended"]
Currency = Literal["AC", "AB"]


def _check_currencies(value: list[str] | None) -> list[str] | None:
    if value is None:
        return value
    if not value:
        raise ValueError("At least one currency must be accepted")
    unknown = [c for c in value if c not in CAMPAIGN_CURRENCIES]
    if unknown:
        raise ValueError(f"Unsupported currencies: {', '.join(unknown)}")
    # de-duplicate, keep order
    return list(dict.fromkeys(value))


# --- Requests ---


class CreateCampaignRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    soul_words: str | None = None
    category_type: str | None = Field(None, max_length=64)
    visuals: list[str] = []
    verification: bool = False
    campaign_type: CampaignType
    goal_type: GoalType | None = None
    goal_amount: Decimal | None = Field(None, gt=0, max_digits=18, decimal_places=2)
    base_amount: Decimal | None = Field(None, gt=0, max_digits=18, decimal_places=2)
    accepted_currencies: list[str] = ["AC", "AB"]
    offer_product_id: int | None = None
    deadline: datetime | None = None

    @field_validator("accepted_currencies")
    @classmethod
    def check_currencies(cls, value: list[str] | None) -> list[str] | None:
        return _check_currencies(value)


class UpdateCampaignRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    soul_words: str | None = None
    category_type: str | None = Field(None, max_length=64)
    visuals: list[str] | None = None
    verification: bool | None = None
    campaign_type: CampaignType | None = None
    goal_type: GoalType | None = None
    goal_amount: Decimal | None = Field(None, gt=0, max_digits=18, decimal_places=2)
    base_amount: Decimal | None = Field(None, gt=0, max_digits=18, decimal_places=2)
    accepted_currencies: list[str] | None = None
    offer_product_id: int | None = None
    deadline: datetime | None = None

    @field_validator("accepted_currencies")
    @classmethod
    def check_currencies(cls, value: list[str] | None) -> list[str] | None:
        return _check_currencies(value)

    @field_validator("title", "visuals", "verification", "campaign_type", "accepted_currencies")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if value is None:
            raise ValueError("may not be null")
        return value


class ReasonRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class PlaceBidRequest(BaseModel):
    campaign_id: int
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    currency: Currency


class DonateRequest(BaseModel):
    campaign_id: int
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    currency: Currency
    anonymously_donated: bool = False


class CategoryInput(BaseModel):
    category: str = Field(..., min_length=1)
    sub_category: str = Field(..., min_length=1, alias="subCategory")

    model_config = ConfigDict(populate_by_name=True)


class GenerateDescriptionRequest(BaseModel):
    soul_words: str = Field(..., min_length=50, alias="soulWords")
    category: CategoryInput
    campaign_type: Literal["simple", "auction"] = Field(..., alias="campaignType")
    goal_type: GoalType | None = Field(None, alias="goalType")
    goal_amount: Decimal | None = Field(None, gt=0, alias="goalAmount")
    base_amount: Decimal | None = Field(None, gt=0, alias="baseAmount")

    model_config = ConfigDict(populate_by_name=True)


# --- Responses ---


class CampaignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    title: str
    description: str | None = None
    soul_words: str | None = None
    category_type: str | None = None
    visuals: list[str] = []
    verification: bool
    campaign_type: str
    goal_type: str | None = None
    goal_amount: MoneyOut | None = None
    base_amount: MoneyOut | None = None
    accepted_currencies: list[str]
    offer_product_id: int | None = None
    deadline: datetime | None = None
    status: str
    is_approved: bool
    approved_at: datetime | None = None
    paused_reason: str | None = None
    closed_reason: str | None = None
    closed_at: datetime | None = None
    total_donations: MoneyOut
    total_donations_ac: MoneyOut
    total_donations_ab: MoneyOut
    donation_count: int
    highest_bid: MoneyOut | None = None
    current_winner_id: int | None = None
    bid_count: int
    is_claimed: bool
    claimed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class BidResponse(BaseModel):
    id: int
    campaign_id: int
    bidder_id: int
    bidder_name: str | None = None
    amount: MoneyOut
    currency: str
    amount_ac: MoneyOut
    is_winning: bool = False
    is_refunded: bool
    created_at: datetime


class DonationResponse(BaseModel):
    id: int
    campaign_id: int
    donor_id: int | None = None  # hidden for anonymous donations
    donor_name: str | None = None
    amount: MoneyOut
    currency: str
    amount_ac: MoneyOut
    anonymously_donated: bool
    created_at: datetime


class DonationResultResponse(BaseModel):
    donation: DonationResponse
    goal_reached: bool
    campaign_closed: bool
    total_donations: MoneyOut


class ClaimResponse(BaseModel):
    campaign_id: int
    amount: MoneyOut
    currency: str
    refunded_bids: int
    failed_refunds: int


class DescriptionResponse(BaseModel):
    description: str
    source: Literal["ai", "template"]


class CurrencyTotals(BaseModel):
    ac: MoneyOut
    ab: MoneyOut
    ac_equivalent: MoneyOut
    count: int


class OverallTotalsResponse(BaseModel):
    donations: CurrencyTotals
    bids: CurrencyTotals
    total_raised_ac: MoneyOut
