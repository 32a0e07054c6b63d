"""Pydantic schemas for payment endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from hope.schemas import MoneyOut


class CheckoutRequest(BaseModel):
    amount_usd: Decimal = Field(..., gt=0, le=10000, max_digits=8, decimal_places=2)


class ConfirmRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)


class PaymentSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    external_id: str
    status: str
    amount_usd: MoneyOut
    credit_amount: MoneyOut
    credit_currency: str
    checkout_url: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class ConfirmResponse(BaseModel):
    payment: PaymentSessionResponse
    credited: bool
