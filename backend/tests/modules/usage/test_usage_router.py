from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from cloud_poller.core.config import settings
from cloud_poller.core.usage.base import PollError
from cloud_poller.core.usage.providers.openai import OpenAIUsageProvider
from cloud_poller.core.usage.schemas import CostSource, ProviderType, UsageSnapshot
from cloud_poller.modules.store.repository import (
    KeyValueStore,
    PushTokenRepository,
    SnapshotStore,
)


def _fake_adapter(result=None, error=None):
    adapter = MagicMock()
    adapter.poll = AsyncMock(return_value=result, side_effect=error)
    return adapter


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.text == "OK"


def test_list_providers(client):
    res = client.get("/api/providers")

    assert res.status_code == 200
    assert res.json() == {"providers": ["openai", "anthropic", "openrouter"]}


def test_poll_requires_api_key(client):
    assert client.post("/api/poll/openai").json() == {"detail": "API key required"}
    res = client.post("/api/poll/openai", json={"apiKey": "   "})

    assert res.status_code == 400
    assert res.json() == {"detail": "API key required"}


def test_poll_unknown_provider(client):
    res = client.post("/api/poll/gemini", json={"apiKey": "sk-test"})

    assert res.status_code == 400
    assert res.json() == {"detail": "Unknown provider: gemini"}


def test_poll_failure_returns_error_body(client):
    adapter = _fake_adapter(error=PollError("OpenAI API error: 401", status_code=401, provider="openai"))
    with patch("cloud_poller.modules.usage.service.create_usage_provider", return_value=adapter):
        res = client.post("/api/poll/openai", json={"apiKey": "sk-bad"})

    assert res.status_code == 500
    assert res.json() == {"error": "OpenAI API error: 401"}


def test_poll_with_negative_cost_returns_error_body(client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"data": [], "daily_costs": [{"timestamp": 1760000000, "line_items": [{"cost": -2.0}]}]},
        )

    adapter = OpenAIUsageProvider(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        base_url="https://api.openai.test",
    )
    with patch("cloud_poller.modules.usage.service.create_usage_provider", return_value=adapter):
        res = client.post("/api/poll/openai", json={"apiKey": "sk-test"})

    assert res.status_code == 500
    assert "malformed payload" in res.json()["error"]


def test_poll_success_returns_snapshot_without_persisting(client, db):
    snapshot = UsageSnapshot(
        provider_type=ProviderType.OPENAI,
        today_tokens=150,
        today_cost=0.25,
        mtd_tokens=1650,
        mtd_cost=2.25,
    )
    adapter = _fake_adapter(result=snapshot)
    with patch("cloud_poller.modules.usage.service.create_usage_provider", return_value=adapter) as factory:
        res = client.post("/api/poll/openai", json={"apiKey": "sk-test"})

    assert res.status_code == 200
    assert res.json() == {
        "providerType": "openai",
        "todayTokens": 150,
        "todayCost": 0.25,
        "mtdTokens": 1650,
        "mtdCost": 2.25,
        "costSource": "reported",
    }
    factory.assert_called_once_with("openai")
    assert adapter.poll.await_args.args[0] == "sk-test"
    assert KeyValueStore(db).list_prefix("usage:") == {}


def test_usage_for_unknown_user_is_empty(client):
    res = client.get("/api/usage/nobody")

    assert res.status_code == 200
    assert res.json() == {}


def test_usage_lists_stored_snapshots(client, db):
    store = SnapshotStore(KeyValueStore(db))
    store.put(
        "user-1",
        "p-or",
        UsageSnapshot(
            provider_type=ProviderType.OPENROUTER,
            mtd_cost=7.5,
            credits=42.5,
            cost_source=CostSource.CREDITS,
        ),
    )

    res = client.get("/api/usage/user-1")

    assert res.status_code == 200
    body = res.json()
    assert list(body) == ["p-or"]
    assert body["p-or"]["credits"] == 42.5
    assert body["p-or"]["costSource"] == "credits"


def test_register_push_tokens(client, db):
    res = client.put("/api/push-tokens/user-1", json={"apns": "apns-device", "fcm": ""})

    assert res.status_code == 200
    assert res.json() == {"status": "updated", "channels": ["apns"]}
    assert PushTokenRepository(KeyValueStore(db)).get("user-1").apns == "apns-device"


def test_trigger_cycle_without_configs(client):
    res = client.post("/api/cycle")

    assert res.status_code == 200
    body = res.json()
    assert body["succeeded"] == 0
    assert body["failed"] == 0
    assert body["failures"] == []


def test_trigger_cycle_reports_failures(client, db):
    KeyValueStore(db).put_json(
        "provider_configs",
        [{"userId": "user-1", "providerId": "p1", "providerType": "gemini", "apiKey": "k"}],
    )

    res = client.post("/api/cycle")

    assert res.status_code == 200
    body = res.json()
    assert body["failed"] == 1
    assert body["failures"] == [
        {"user_id": "user-1", "provider_id": "p1", "message": "Unknown provider type: gemini"}
    ]


def test_api_token_required_when_configured(client):
    with patch.object(settings, "POLLER_API_TOKEN", "s3cret"):
        assert client.get("/api/providers").status_code == 401
        assert client.get("/api/providers", headers={"Authorization": "Bearer wrong"}).status_code == 401
        ok = client.get("/api/providers", headers={"Authorization": "Bearer s3cret"})
        health = client.get("/health")

    assert ok.status_code == 200
    assert health.status_code == 200


def test_non_ascii_bearer_token_is_rejected(client):
    with patch.object(settings, "POLLER_API_TOKEN", "s3cret"):
        res = client.get("/api/providers", headers={"Authorization": "Bearer caf\xe9".encode("latin-1")})

    assert res.status_code == 401
    assert res.json() == {"detail": "Invalid token"}
