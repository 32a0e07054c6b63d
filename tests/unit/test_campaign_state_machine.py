"""Unit tests for the campaign state machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hope.campaigns.constants import ACTIVE, CLOSED, PAUSED, PENDING_APPROVAL
from hope.campaigns.lifecycle import VALID_TRANSITIONS, deadline_passed, is_expired, validate_transition
from hope.db.models import Campaign
from hope.errors import InvalidOperation

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _campaign(status: str, deadline: datetime | None) -> Campaign:
    return Campaign(status=status, deadline=deadline, campaign_type="simple_donation")


class TestCampaignStateMachine:
    """Test campaign status transitions."""

    def test_valid_transitions_structure(self):
        """All states have defined transitions."""
        assert set(VALID_TRANSITIONS.keys()) == {PENDING_APPROVAL, ACTIVE, PAUSED, CLOSED}

    def test_pending_to_active(self):
        validate_transition(PENDING_APPROVAL, ACTIVE)

    def test_active_to_paused_and_back(self):
        validate_transition(ACTIVE, PAUSED)
        validate_transition(PAUSED, ACTIVE)

    def test_active_and_paused_can_close(self):
        validate_transition(ACTIVE, CLOSED)
        validate_transition(PAUSED, CLOSED)

    def test_closed_is_terminal(self):
        assert VALID_TRANSITIONS[CLOSED] == []
        for target in (PENDING_APPROVAL, ACTIVE, PAUSED):
            with pytest.raises(InvalidOperation):
                validate_transition(CLOSED, target)

    def test_pending_cannot_pause(self):
        with pytest.raises(InvalidOperation, match="Invalid transition: pending_approval -> paused"):
            validate_transition(PENDING_APPROVAL, PAUSED)


class TestExpiry:
    def test_past_deadline_is_expired(self):
        assert is_expired(_campaign(ACTIVE, NOW - timedelta(seconds=1)), NOW)

    def test_deadline_equal_to_now_is_expired(self):
        assert is_expired(_campaign(ACTIVE, NOW), NOW)

    def test_future_deadline_is_not_expired(self):
        assert not is_expired(_campaign(ACTIVE, NOW + timedelta(minutes=1)), NOW)

    def test_no_deadline_never_expires(self):
        assert not is_expired(_campaign(ACTIVE, None), NOW)

    def test_paused_campaign_expires_too(self):
        assert is_expired(_campaign(PAUSED, NOW - timedelta(days=1)), NOW)

    def test_closed_campaign_is_not_expired_again(self):
        campaign = _campaign(CLOSED, NOW - timedelta(days=1))
        assert not is_expired(campaign, NOW)
        assert deadline_passed(campaign, NOW)
