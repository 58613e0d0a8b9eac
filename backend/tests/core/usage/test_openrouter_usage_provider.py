from datetime import datetime, timezone

import httpx
import pytest

from cloud_poller.core.usage.base import PollError
from cloud_poller.core.usage.providers.openrouter import OpenRouterUsageProvider
from cloud_poller.core.usage.schemas import CostSource, ProviderType

NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)


def _provider(handler) -> OpenRouterUsageProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenRouterUsageProvider(client=client, base_url="https://openrouter.test")


@pytest.mark.asyncio
async def test_poll_reads_key_and_credits():
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        assert request.headers["Authorization"] == "Bearer sk-or-test"
        if request.url.path == "/api/v1/key":
            return httpx.Response(200, json={"data": {"label": "main", "limit_remaining": 12.5}})
        return httpx.Response(200, json={"used_credits": 7.5, "remaining_credits": 42.5})

    snapshot = await _provider(handler).poll("sk-or-test", NOW)

    assert paths == ["/api/v1/key", "/api/v1/credits"]
    assert snapshot.provider_type == ProviderType.OPENROUTER
    assert snapshot.today_tokens == 0
    assert snapshot.today_cost == 0
    assert snapshot.mtd_tokens == 0
    assert snapshot.mtd_cost == pytest.approx(7.5)
    assert snapshot.balance == pytest.approx(12.5)
    assert snapshot.credits == pytest.approx(42.5)
    assert snapshot.cost_source == CostSource.CREDITS


@pytest.mark.asyncio
async def test_poll_accepts_nested_credit_totals():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/key":
            return httpx.Response(200, json={"data": {"limit_remaining": None}})
        return httpx.Response(200, json={"data": {"total_credits": 50, "total_usage": 7.5}})

    snapshot = await _provider(handler).poll("sk-or-test", NOW)

    assert snapshot.balance is None
    assert snapshot.credits == pytest.approx(42.5)
    assert snapshot.mtd_cost == pytest.approx(7.5)
    assert "balance" not in snapshot.to_payload()


@pytest.mark.asyncio
async def test_credits_failure_raises_poll_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/key":
            return httpx.Response(200, json={"data": {"limit_remaining": 3}})
        return httpx.Response(500, text="boom")

    with pytest.raises(PollError) as excinfo:
        await _provider(handler).poll("sk-or-test", NOW)

    assert excinfo.value.status_code == 500
    assert excinfo.value.provider == "openrouter"


@pytest.mark.asyncio
async def test_key_payload_without_data_is_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/key":
            return httpx.Response(200, json={"label": "main"})
        return httpx.Response(200, json={"used_credits": 1, "remaining_credits": 2})

    with pytest.raises(PollError, match="malformed"):
        await _provider(handler).poll("sk-or-test", NOW)
