from __future__ import annotations

from datetime import datetime

import httpx

from cloud_poller.core.config import settings
from cloud_poller.core.usage.base import (
    BaseUsageProvider,
    CostFigure,
    is_same_day,
    start_of_month,
)
from cloud_poller.core.usage.schemas import ProviderType, UsageSnapshot


class AnthropicUsageProvider(BaseUsageProvider):
    """Usage from the Anthropic admin reports.

    Token counts and costs come from two separate reports. The cost report is
    only requested once the usage report succeeded, and its failure fails the
    whole poll.
    """

    provider_type = ProviderType.ANTHROPIC
    label = "Anthropic"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        api_version: str | None = None,
    ):
        super().__init__(client=client, base_url=base_url, timeout=timeout)
        self._api_version = api_version or settings.ANTHROPIC_API_VERSION

    def _headers(self, credential: str) -> dict[str, str]:
        return {
            "x-api-key": credential,
            "anthropic-version": self._api_version,
        }

    @staticmethod
    def _window(now: datetime) -> dict[str, str]:
        return {
            "start_date": start_of_month(now).isoformat(),
            "end_date": now.date().isoformat(),
        }

    @staticmethod
    def _record_tokens(item: dict) -> int:
        return int(item["input_tokens"]) + int(item["output_tokens"])

    def _cost_figures(self, body: dict, now: datetime) -> tuple[CostFigure, CostFigure]:
        costs = self._records(body, "costs")
        today = sum(float(item["amount"]) for item in costs if is_same_day(item["timestamp"], now))
        month = sum(float(item["amount"]) for item in costs)
        return CostFigure.reported(today), CostFigure.reported(month)

    async def poll(self, credential: str, now: datetime) -> UsageSnapshot:
        headers = self._headers(credential)
        params = self._window(now)

        async with self._client_scope() as client:
            usage_body = await self._get_json(
                client,
                "/v1/organizations/usage_report/messages",
                headers=headers,
                params=params,
            )
            usage = self._records(usage_body, "usage")

            cost_body = await self._get_json(
                client,
                "/v1/organizations/cost_report",
                headers=headers,
                params=params,
            )

        try:
            today_tokens = sum(
                self._record_tokens(item) for item in usage if is_same_day(item["timestamp"], now)
            )
            mtd_tokens = sum(self._record_tokens(item) for item in usage)
            today_cost, mtd_cost = self._cost_figures(cost_body, now)
            snapshot = UsageSnapshot(
                provider_type=self.provider_type,
                today_tokens=today_tokens,
                today_cost=today_cost.amount,
                mtd_tokens=mtd_tokens,
                mtd_cost=mtd_cost.amount,
                cost_source=mtd_cost.source,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise self._error(f"Anthropic API returned malformed payload: {exc}") from exc

        return snapshot
