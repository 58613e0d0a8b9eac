from __future__ import annotations

from datetime import datetime

from cloud_poller.core.usage.base import BaseUsageProvider
from cloud_poller.core.usage.schemas import CostSource, ProviderType, UsageSnapshot


def _optional_float(value) -> float | None:
    if value is None:
        return None
    return float(value)


class OpenRouterUsageProvider(BaseUsageProvider):
    """Credits-based provider.

    OpenRouter exposes no itemized token or cost records, so the daily and token
    figures are explicit zeros. ``mtd_cost`` carries the credits consumed since
    the account was created, which is not bounded to the calendar month.
    """

    provider_type = ProviderType.OPENROUTER
    label = "OpenRouter"

    def _headers(self, credential: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {credential}"}

    @staticmethod
    def _credit_figures(body: dict) -> tuple[float, float | None]:
        if "used_credits" in body or "remaining_credits" in body:
            used = float(body.get("used_credits") or 0)
            return used, _optional_float(body.get("remaining_credits"))

        data = body["data"]
        total = float(data["total_credits"])
        used = float(data["total_usage"])
        return used, total - used

    async def poll(self, credential: str, now: datetime) -> UsageSnapshot:
        headers = self._headers(credential)

        async with self._client_scope() as client:
            key_body = await self._get_json(client, "/api/v1/key", headers=headers)
            credits_body = await self._get_json(client, "/api/v1/credits", headers=headers)

        try:
            balance = _optional_float(key_body["data"].get("limit_remaining"))
            used_credits, remaining_credits = self._credit_figures(credits_body)
            snapshot = UsageSnapshot(
                provider_type=self.provider_type,
                today_tokens=0,
                today_cost=0.0,
                mtd_tokens=0,
                mtd_cost=max(0.0, used_credits),
                balance=balance,
                credits=remaining_credits,
                cost_source=CostSource.CREDITS,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise self._error(f"OpenRouter API returned malformed payload: {exc}") from exc

        return snapshot
