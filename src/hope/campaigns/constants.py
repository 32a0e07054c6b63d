"""Campaign types, statuses and close reasons."""

SIMPLE = "simple_donation"
AUCTION = "auction_donation"
CAMPAIGN_TYPES = (SIMPLE, AUCTION)

GOAL_FIXED = "fixed"
GOAL_OPEN = "open-ended"
GOAL_TYPES = (GOAL_FIXED, GOAL_OPEN)

PENDING_APPROVAL = "pending_approval"
ACTIVE = "active"
PAUSED = "paused"
CLOSED = "closed"
STATUSES = (PENDING_APPROVAL, ACTIVE, PAUSED, CLOSED)

REASON_MANUAL = "manual"
REASON_ADMIN = "admin"
REASON_DEADLINE = "deadline"
REASON_GOAL_REACHED = "goal_reached"

CLOSE_REASON_TEXT: dict[str, str] = {
    REASON_MANUAL: "Campaign closed by creator",
    REASON_ADMIN: "Campaign closed by administrator",
    REASON_DEADLINE: "Campaign deadline has passed",
    REASON_GOAL_REACHED: "Campaign goal has been reached",
}

# Fields frozen once a campaign has been approved
FINANCIAL_FIELDS = frozenset({
    "campaign_type",
    "goal_type",
    "goal_amount",
    "base_amount",
    "accepted_currencies",
    "offer_product_id",
})
