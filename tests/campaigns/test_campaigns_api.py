"""HTTP tests for the campaign endpoints: envelope, auth and end-to-end flows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from hope.campaigns.constants import AUCTION, PENDING_APPROVAL

SOUL_WORDS = "Clay, fire and patience: a shared kiln so every potter on the street can finish their work."


class TestCreateCampaign:
    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.post("/api/v1/campaigns", json={"title": "x", "campaign_type": "simple_donation"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Not authenticated", "error": "http_error"}

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, client: AsyncClient):
        response = await client.get("/api/v1/campaigns/mine", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_create_pending_campaign(self, client: AsyncClient, make_user, headers):
        owner = await make_user("owner")
        response = await client.post(
            "/api/v1/campaigns",
            json={
                "title": "Shared kiln",
                "campaign_type": "simple_donation",
                "goal_type": "fixed",
                "goal_amount": 250,
            },
            headers=headers(owner),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Campaign created successfully and is pending approval"
        assert body["data"]["status"] == PENDING_APPROVAL
        assert body["data"]["goal_amount"] == 250.0
        assert body["data"]["owner_id"] == owner.id

    @pytest.mark.asyncio
    async def test_business_rule_failure_envelope(self, client: AsyncClient, make_user, headers):
        owner = await make_user("owner")
        response = await client.post(
            "/api/v1/campaigns",
            json={"title": "Tiny", "campaign_type": "simple_donation", "goal_type": "fixed", "goal_amount": 20},
            headers=headers(owner),
        )
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Goal amount must be at least 100 AC for fixed campaigns",
            "error": "rejected",
        }

    @pytest.mark.asyncio
    async def test_validation_error_envelope(self, client: AsyncClient, make_user, headers):
        owner = await make_user("owner")
        response = await client.post(
            "/api/v1/campaigns",
            json={"title": "Bad", "campaign_type": "raffle"},
            headers=headers(owner),
        )
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"].startswith("campaign_type:")


class TestVisibility:
    @pytest.mark.asyncio
    async def test_unapproved_hidden_from_strangers(self, client: AsyncClient, make_user, make_campaign, headers):
        owner = await make_user("owner")
        stranger = await make_user("stranger")
        campaign = await make_campaign(owner, status=PENDING_APPROVAL, is_approved=False)

        hidden = await client.get(f"/api/v1/campaigns/{campaign.id}", headers=headers(stranger))
        assert hidden.status_code == 404
        assert hidden.json()["error"] == "not_found"

        anonymous = await client.get(f"/api/v1/campaigns/{campaign.id}")
        assert anonymous.status_code == 404

        visible = await client.get(f"/api/v1/campaigns/{campaign.id}", headers=headers(owner))
        assert visible.status_code == 200
        assert visible.json()["data"]["id"] == campaign.id

    @pytest.mark.asyncio
    async def test_admin_approval_flow(self, client: AsyncClient, make_user, make_campaign, headers, notifier):
        owner = await make_user("owner")
        admin = await make_user("admin", role="admin")
        campaign = await make_campaign(owner, status=PENDING_APPROVAL, is_approved=False)

        queue = await client.get("/api/v1/campaigns/pending-approvals", headers=headers(admin))
        assert [c["id"] for c in queue.json()["data"]] == [campaign.id]

        forbidden = await client.patch(f"/api/v1/campaigns/{campaign.id}/approve", headers=headers(owner))
        assert forbidden.status_code == 403
        assert forbidden.json()["message"] == "Admin access required"

        approved = await client.patch(f"/api/v1/campaigns/{campaign.id}/approve", headers=headers(admin))
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "active"
        assert notifier.types_for(owner.id) == ["campaign_approved"]

        public = await client.get("/api/v1/campaigns/approved")
        body = public.json()
        assert [c["id"] for c in body["data"]] == [campaign.id]
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}

    @pytest.mark.asyncio
    async def test_approved_listing_filters_and_paginates(self, client: AsyncClient, make_user, make_campaign):
        owner = await make_user("owner")
        for i in range(3):
            await make_campaign(owner, title=f"Donation {i}")
        await make_campaign(owner, AUCTION, title="Auction")

        response = await client.get(
            "/api/v1/campaigns/approved", params={"campaignType": "simple_donation", "limit": 2, "page": 2},
        )
        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}


class TestAuctionFlow:
    @pytest.mark.asyncio
    async def test_bid_close_claim(self, client: AsyncClient, make_user, make_campaign, headers, notifier):
        owner = await make_user("owner")
        a = await make_user("a", ac=100)
        b = await make_user("b", ac=100)
        c = await make_user("c", ac=100)
        auction = await make_campaign(owner, AUCTION)

        first = await client.post(
            "/api/v1/campaigns/bids", json={"campaign_id": auction.id, "amount": 15, "currency": "AC"}, headers=headers(a),
        )
        assert first.status_code == 201
        assert first.json()["data"]["is_winning"] is True

        low = await client.post(
            "/api/v1/campaigns/bids", json={"campaign_id": auction.id, "amount": 12, "currency": "AC"}, headers=headers(b),
        )
        assert low.status_code == 400
        assert low.json()["message"] == (
            "Bid amount must be higher than current highest bid. Minimum required: 15.01 AC"
        )

        top = await client.post(
            "/api/v1/campaigns/bids", json={"campaign_id": auction.id, "amount": 16, "currency": "AC"}, headers=headers(c),
        )
        assert top.status_code == 201

        history = await client.get(f"/api/v1/campaigns/bids/{auction.id}", params={"sortOrder": "asc"})
        bids = history.json()["data"]
        assert [(x["bidder_id"], x["amount"], x["is_winning"]) for x in bids] == [(a.id, 15.0, False), (c.id, 16.0, True)]

        closed = await client.patch(f"/api/v1/campaigns/{auction.id}/close", headers=headers(owner))
        assert closed.status_code == 200
        assert closed.json()["data"]["status"] == "closed"

        stranger_claim = await client.post(f"/api/v1/campaigns/{auction.id}/claim", headers=headers(a))
        assert stranger_claim.status_code == 403

        claim = await client.post(f"/api/v1/campaigns/{auction.id}/claim", headers=headers(owner))
        assert claim.status_code == 200
        assert claim.json()["data"] == {
            "campaign_id": auction.id,
            "amount": 16.0,
            "currency": "AC",
            "refunded_bids": 1,
            "failed_refunds": 0,
        }

        again = await client.post(f"/api/v1/campaigns/{auction.id}/claim", headers=headers(owner))
        assert again.status_code == 400
        assert again.json()["message"] == "Funds already claimed"

        wallet_a = await client.get("/api/v1/wallet", headers=headers(a))
        assert wallet_a.json()["data"][0]["available"] == 100.0
        wallet_owner = await client.get("/api/v1/wallet", headers=headers(owner))
        assert wallet_owner.json()["data"][0]["available"] == 16.0
        assert "bid_outbid" in notifier.types_for(a.id)
        assert "auction_won" in notifier.types_for(c.id)

    @pytest.mark.asyncio
    async def test_bid_without_funds(self, client: AsyncClient, make_user, make_campaign, headers):
        owner = await make_user("owner")
        poor = await make_user("poor", ac=1)
        auction = await make_campaign(owner, AUCTION)

        response = await client.post(
            "/api/v1/campaigns/bids",
            json={"campaign_id": auction.id, "amount": 15, "currency": "AC"},
            headers=headers(poor),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient balance. Required: 15 AC"


class TestDonationFlow:
    @pytest.mark.asyncio
    async def test_goal_reached_message_and_anonymity(
        self, client: AsyncClient, make_user, make_campaign, headers, notifier,
    ):
        owner = await make_user("owner")
        first = await make_user("first", ac=100)
        second = await make_user("second", ac=100)
        campaign = await make_campaign(owner, goal_amount=100)

        one = await client.post(
            "/api/v1/campaigns/donations",
            json={"campaign_id": campaign.id, "amount": 60, "currency": "AC", "anonymously_donated": True},
            headers=headers(first),
        )
        assert one.status_code == 201
        assert one.json()["message"] == "Donation created successfully"

        two = await client.post(
            "/api/v1/campaigns/donations",
            json={"campaign_id": campaign.id, "amount": 45, "currency": "AC"},
            headers=headers(second),
        )
        assert two.status_code == 201
        body = two.json()
        assert body["message"] == "Donation created successfully. Campaign goal reached and campaign has been closed."
        assert body["data"]["campaign_closed"] is True
        assert body["data"]["total_donations"] == 105.0
        assert notifier.types_for(owner.id) == ["campaign_success"]

        listing = await client.get(f"/api/v1/campaigns/donations/{campaign.id}")
        donors = {d["amount"]: d["donor_id"] for d in listing.json()["data"]}
        assert donors == {60.0: None, 45.0: second.id}

        duplicate = await client.post(
            "/api/v1/campaigns/donations",
            json={"campaign_id": campaign.id, "amount": 5, "currency": "AC"},
            headers=headers(second),
        )
        assert duplicate.status_code == 400

    @pytest.mark.asyncio
    async def test_totals(self, client: AsyncClient, make_user, make_campaign, headers):
        owner = await make_user("owner")
        donor = await make_user("donor", ac=100)
        bidder = await make_user("bidder", ac=100)
        simple = await make_campaign(owner)
        auction = await make_campaign(owner, AUCTION)

        await client.post(
            "/api/v1/campaigns/donations",
            json={"campaign_id": simple.id, "amount": 40, "currency": "AB"},
            headers=headers(donor),
        )
        await client.post(
            "/api/v1/campaigns/bids",
            json={"campaign_id": auction.id, "amount": 12, "currency": "AC"},
            headers=headers(bidder),
        )

        response = await client.get("/api/v1/campaigns/totals")
        data = response.json()["data"]
        assert data["donations"] == {"ac": 0.0, "ab": 40.0, "ac_equivalent": 20.0, "count": 1}
        assert data["bids"] == {"ac": 12.0, "ab": 0.0, "ac_equivalent": 12.0, "count": 1}
        assert data["total_raised_ac"] == 32.0


class TestLifecycleEndpoints:
    @pytest.mark.asyncio
    async def test_pause_activate_and_overdue_read(self, client: AsyncClient, make_user, make_campaign, headers):
        owner = await make_user("owner")
        campaign = await make_campaign(owner)

        paused = await client.patch(
            f"/api/v1/campaigns/{campaign.id}/pause", json={"reason": "Restocking clay"}, headers=headers(owner),
        )
        assert paused.json()["data"]["paused_reason"] == "Restocking clay"

        activated = await client.patch(f"/api/v1/campaigns/{campaign.id}/activate", headers=headers(owner))
        assert activated.json()["data"]["status"] == "active"

        overdue = await make_campaign(owner, deadline=datetime.now(timezone.utc) - timedelta(minutes=1))
        read = await client.get(f"/api/v1/campaigns/{overdue.id}")
        assert read.json()["data"]["status"] == "closed"
        assert read.json()["data"]["closed_reason"] == "Campaign deadline has passed"

    @pytest.mark.asyncio
    async def test_update_refuses_null_for_required_fields(
        self, client: AsyncClient, make_user, make_campaign, headers,
    ):
        owner = await make_user("owner")
        campaign = await make_campaign(owner)

        for field in ("accepted_currencies", "title"):
            response = await client.put(
                f"/api/v1/campaigns/{campaign.id}", json={field: None}, headers=headers(owner),
            )
            assert response.status_code == 422
            body = response.json()
            assert body["success"] is False
            assert body["message"].startswith(f"{field}:")

        read = await client.get(f"/api/v1/campaigns/{campaign.id}")
        data = read.json()["data"]
        assert data["accepted_currencies"] == ["AC", "AB"]
        assert data["title"] == "Mural for the community garden"

        cleared = await client.put(
            f"/api/v1/campaigns/{campaign.id}", json={"description": None}, headers=headers(owner),
        )
        assert cleared.status_code == 200
        assert cleared.json()["data"]["description"] is None

    @pytest.mark.asyncio
    async def test_admin_close_notifies_owner(self, client: AsyncClient, make_user, make_campaign, headers, notifier):
        owner = await make_user("owner")
        admin = await make_user("admin", role="admin")
        campaign = await make_campaign(owner)

        response = await client.patch(
            f"/api/v1/campaigns/{campaign.id}/admin-close", json={"reason": "Terms violation"}, headers=headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["data"]["closed_reason"] == "Terms violation"
        assert notifier.types_for(owner.id) == ["campaign_closed"]

    @pytest.mark.asyncio
    async def test_generate_description_falls_back_to_template(self, client: AsyncClient, make_user, headers):
        owner = await make_user("owner")
        response = await client.post(
            "/api/v1/campaigns/generate-description",
            json={
                "soulWords": SOUL_WORDS,
                "category": {"category": "Craft", "subCategory": "Ceramics"},
                "campaignType": "simple",
                "goalType": "fixed",
                "goalAmount": 300,
            },
            headers=headers(owner),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["source"] == "template"
        assert SOUL_WORDS in data["description"]
        assert "300 AC" in data["description"]
