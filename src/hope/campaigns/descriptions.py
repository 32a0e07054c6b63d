"""Campaign description generation.

Asks an OpenAI-compatible chat-completions endpoint for a description and
falls back to a deterministic template whenever the model is disabled,
slow, failing or returns nothing usable.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import httpx
import structlog

from hope.config import get_settings

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You write short, warm fundraising campaign descriptions for a creative "
    "community. Use the creator's own words as the emotional core. Write two "
    "or three paragraphs, no headings, no hashtags."
)


@dataclass(frozen=True)
class DescriptionRequest:
    soul_words: str
    category: str
    sub_category: str
    campaign_type: str  # simple | auction
    goal_type: str | None = None
    goal_amount: Decimal | None = None
    base_amount: Decimal | None = None


def build_prompt(req: DescriptionRequest) -> str:
    lines = [
        f"Category: {req.category} / {req.sub_category}",
        f"Campaign type: {'auction' if req.campaign_type == 'auction' else 'donation'}",
    ]
    if req.campaign_type == "auction" and req.base_amount is not None:
        lines.append(f"Starting bid: {req.base_amount} AC")
    elif req.goal_type == "fixed" and req.goal_amount is not None:
        lines.append(f"Fundraising goal: {req.goal_amount} AC")
    elif req.goal_type == "open-ended":
        lines.append("Fundraising goal: open-ended")
    lines.append(f"Creator's words: {req.soul_words}")
    return "\n".join(lines)


def template_description(req: DescriptionRequest) -> str:
    """Deterministic description used when the model is unavailable."""
    topic = f"{req.category} ({req.sub_category})"
    if req.campaign_type == "auction":
        ask = "Place a bid to support this work"
        if req.base_amount is not None:
            ask += f". Bidding starts at {req.base_amount} AC"
        ask += ", and the highest bidder takes the offered piece home."
    elif req.goal_type == "fixed" and req.goal_amount is not None:
        ask = f"Help us reach our goal of {req.goal_amount} AC. Every donation brings this project closer to life."
    else:
        ask = "Every donation, large or small, keeps this project moving forward."

    return (
        f"A {topic} project, in the creator's own words:\n\n"
        f"\"{req.soul_words.strip()}\"\n\n"
        f"{ask}"
    )


async def _ask_model(req: DescriptionRequest) -> str | None:
    settings = get_settings()
    async with httpx.AsyncClient(base_url=settings.openai_base_url) as client:
        response = await client.post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {settings.openai_api_key}"},
            json={
                "model": settings.openai_model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(req)},
                ],
                "max_tokens": 400,
                "temperature": 0.8,
            },
            timeout=settings.ai_timeout_seconds,
        )
        response.raise_for_status()
        body = response.json()
    choices = (body.get("choices") if isinstance(body, dict) else None) or []
    if not choices:
        return None
    content = (choices[0].get("message") or {}).get("content")
    return content.strip() if content else None


async def generate_description(req: DescriptionRequest) -> tuple[str, str]:
    """Return ``(description, source)`` where source is ``ai`` or ``template``."""
    settings = get_settings()
    if not settings.ai_enabled or not settings.openai_api_key:
        return template_description(req), "template"

    try:
        text = await _ask_model(req)
    except (httpx.HTTPError, ValueError):
        logger.warning("description_generation_failed", category=req.category, exc_info=True)
        text = None

    if not text:
        return template_description(req), "template"
    return text, "ai"
