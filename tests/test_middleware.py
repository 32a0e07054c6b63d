"""Middleware tests: request ID, rate limiting, CORS, error envelopes."""

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from hope.middleware import rate_limit


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 32


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


class _FakePipeline:
    def __init__(self, counters: dict[str, int]) -> None:
        self.counters = counters
        self.key = ""

    def incr(self, key: str) -> None:
        # drop the window suffix so a minute boundary cannot reset the count
        self.key = key.rsplit(":", 1)[0]

    def expire(self, key: str, seconds: int) -> None:
        pass

    async def execute(self) -> list[int]:
        self.counters[self.key] = self.counters.get(self.key, 0) + 1
        return [self.counters[self.key], True]


class _FakeRedis:
    def __init__(self) -> None:
        self.counters: dict[str, int] = {}

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self.counters)


class _DownRedis:
    def pipeline(self):
        raise RedisConnectionError("connection refused")


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, monkeypatch) -> None:
    """Requests past the window limit get 429 with Retry-After."""
    fake = _FakeRedis()
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: fake)

    for _ in range(100):
        ok = await client.get("/api/v1/campaigns/approved")
        assert ok.status_code == 200
    assert ok.headers["x-ratelimit-remaining"] == "0"
    assert ok.headers["x-ratelimit-limit"] == "100"

    response = await client.get("/api/v1/campaigns/approved")
    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"
    assert response.json() == {
        "success": False,
        "message": "Too many requests. Please try again later.",
        "error": "rate_limited",
    }


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, monkeypatch) -> None:
    """Health endpoint is never counted."""
    fake = _FakeRedis()
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: fake)
    for _ in range(150):
        response = await client.get("/health")
        assert response.status_code == 200
    assert fake.counters == {}


@pytest.mark.asyncio
async def test_unreachable_redis_fails_open(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: _DownRedis())
    response = await client.get("/api/v1/campaigns/approved")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/api/v1/campaigns/approved",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_returns_envelope(client: AsyncClient) -> None:
    """Unknown paths return the failure envelope."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found", "error": "http_error"}
