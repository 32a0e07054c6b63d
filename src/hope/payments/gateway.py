"""Checkout gateway client (Stripe-compatible form API over httpx)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Protocol

import httpx
import structlog

from hope.config import get_settings
from hope.errors import UpstreamFailure

logger = structlog.get_logger()


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str | None
    payment_status: str  # paid | unpaid | no_payment_required
    amount_total: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class CheckoutGateway(Protocol):
    async def create_session(
        self,
        amount_usd: Decimal,
        description: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession: ...

    async def retrieve_session(self, session_id: str) -> CheckoutSession: ...


def _session_from(body: dict[str, Any]) -> CheckoutSession:
    return CheckoutSession(
        id=body["id"],
        url=body.get("url"),
        payment_status=body.get("payment_status") or "unpaid",
        amount_total=body.get("amount_total"),
        metadata=dict(body.get("metadata") or {}),
    )


class StripeGateway:
    """Hosted checkout sessions via the gateway's REST API."""

    def __init__(self, api_key: str, api_base: str, timeout: float = 10.0, frontend_url: str = "") -> None:
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.frontend_url = frontend_url.rstrip("/")

    async def _request(self, method: str, path: str, data: dict[str, str] | None = None) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(base_url=self.api_base, auth=(self.api_key, "")) as client:
                response = await client.request(method, path, data=data, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("payment_gateway_error", path=path, status=exc.response.status_code)
            raise UpstreamFailure("Payment gateway rejected the request") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("payment_gateway_unreachable", path=path, error=str(exc))
            raise UpstreamFailure("Payment gateway unavailable") from exc

    async def create_session(
        self,
        amount_usd: Decimal,
        description: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession:
        settings = get_settings()
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.checkout_expiry_minutes)
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": "usd",
            "line_items[0][price_data][unit_amount]": str(int((amount_usd * 100).to_integral_value())),
            "line_items[0][price_data][product_data][name]": description,
            "success_url": f"{self.frontend_url}/user/vault?tab=vault&session_id={{CHECKOUT_SESSION_ID}}&success=true",
            "cancel_url": f"{self.frontend_url}/user/vault?tab=vault&canceled=true",
            "expires_at": str(int(expires_at.timestamp())),
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = value
        if customer_email:
            data["customer_email"] = customer_email

        body = await self._request("POST", "/checkout/sessions", data)
        return _session_from(body)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        body = await self._request("GET", f"/checkout/sessions/{session_id}")
        return _session_from(body)


def get_gateway() -> CheckoutGateway:
    """Build the configured gateway (FastAPI dependency)."""
    settings = get_settings()
    return StripeGateway(
        api_key=settings.stripe_api_key,
        api_base=settings.stripe_api_base,
        timeout=settings.payment_timeout_seconds,
        frontend_url=settings.frontend_base_url,
    )
