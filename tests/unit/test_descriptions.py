"""Unit tests for campaign description generation."""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from hope.campaigns import descriptions
from hope.campaigns.descriptions import DescriptionRequest, build_prompt, generate_description, template_description
from hope.config import get_settings

WORDS = "We are painting a mural that tells the story of the river and the people who live along it."


def _request(**overrides) -> DescriptionRequest:
    values = {
        "soul_words": WORDS,
        "category": "Art",
        "sub_category": "Murals",
        "campaign_type": "simple",
        "goal_type": "fixed",
        "goal_amount": Decimal("500"),
    }
    values.update(overrides)
    return DescriptionRequest(**values)


class TestTemplate:
    def test_fixed_goal_mentions_goal(self):
        text = template_description(_request())
        assert WORDS in text
        assert "500 AC" in text

    def test_auction_mentions_starting_bid(self):
        text = template_description(_request(campaign_type="auction", goal_type=None, base_amount=Decimal("25")))
        assert "Bidding starts at 25 AC" in text

    def test_prompt_carries_category_and_words(self):
        prompt = build_prompt(_request(goal_type="open-ended", goal_amount=None))
        assert "Category: Art / Murals" in prompt
        assert "open-ended" in prompt
        assert WORDS in prompt


class TestGenerate:
    @pytest.mark.asyncio
    async def test_disabled_uses_template(self):
        text, source = await generate_description(_request())
        assert source == "template"
        assert text == template_description(_request())

    @pytest.mark.asyncio
    async def test_missing_key_uses_template(self, monkeypatch):
        monkeypatch.setenv("HOPE_AI_ENABLED", "true")
        monkeypatch.setenv("HOPE_OPENAI_API_KEY", "")
        get_settings.cache_clear()
        _, source = await generate_description(_request())
        assert source == "template"

    @pytest.mark.asyncio
    async def test_model_failure_falls_back(self, monkeypatch):
        monkeypatch.setenv("HOPE_AI_ENABLED", "true")
        monkeypatch.setenv("HOPE_OPENAI_API_KEY", "sk-test")
        get_settings.cache_clear()

        async def _boom(req):
            raise httpx.ConnectTimeout("timed out")

        monkeypatch.setattr(descriptions, "_ask_model", _boom)
        text, source = await generate_description(_request())
        assert source == "template"
        assert WORDS in text

    @pytest.mark.asyncio
    async def test_model_text_is_used(self, monkeypatch):
        monkeypatch.setenv("HOPE_AI_ENABLED", "true")
        monkeypatch.setenv("HOPE_OPENAI_API_KEY", "sk-test")
        get_settings.cache_clear()

        async def _reply(req):
            return "A river of colour."

        monkeypatch.setattr(descriptions, "_ask_model", _reply)
        assert await generate_description(_request()) == ("A river of colour.", "ai")

    @pytest.mark.asyncio
    async def test_empty_model_reply_falls_back(self, monkeypatch):
        monkeypatch.setenv("HOPE_AI_ENABLED", "true")
        monkeypatch.setenv("HOPE_OPENAI_API_KEY", "sk-test")
        get_settings.cache_clear()

        async def _empty(req):
            return None

        monkeypatch.setattr(descriptions, "_ask_model", _empty)
        _, source = await generate_description(_request())
        assert source == "template"
