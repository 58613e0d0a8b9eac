from __future__ import annotations

from datetime import datetime

from cloud_poller.core.usage.base import (
    BaseUsageProvider,
    CostFigure,
    is_same_day,
    start_of_month,
)
from cloud_poller.core.usage.schemas import ProviderType, UsageSnapshot


class OpenAIUsageProvider(BaseUsageProvider):
    provider_type = ProviderType.OPENAI
    label = "OpenAI"

    def _headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _record_tokens(item: dict) -> int:
        return int(item["n_context_tokens_total"]) + int(item["n_generated_tokens_total"])

    @staticmethod
    def _day_cost(day: dict) -> float:
        return sum(float(line["cost"]) for line in day.get("line_items") or [])

    def _cost_figures(self, body: dict, now: datetime) -> tuple[CostFigure, CostFigure]:
        if body.get("daily_costs") is None:
            return CostFigure.no_cost_model(), CostFigure.no_cost_model()

        days = self._records(body, "daily_costs")
        today = sum(self._day_cost(day) for day in days if is_same_day(day["timestamp"], now))
        month = sum(self._day_cost(day) for day in days)
        return CostFigure.reported(today), CostFigure.reported(month)

    async def poll(self, credential: str, now: datetime) -> UsageSnapshot:
        async with self._client_scope() as client:
            body = await self._get_json(
                client,
                "/v1/usage",
                headers=self._headers(credential),
                params={
                    "start_date": start_of_month(now).isoformat(),
                    "end_date": now.date().isoformat(),
                },
            )

        records = self._records(body, "data")
        try:
            today_tokens = sum(
                self._record_tokens(item)
                for item in records
                if is_same_day(item["aggregation_timestamp"], now)
            )
            mtd_tokens = sum(self._record_tokens(item) for item in records)
            today_cost, mtd_cost = self._cost_figures(body, now)
            # Negative totals (refund lines) fail snapshot validation here.
            snapshot = UsageSnapshot(
                provider_type=self.provider_type,
                today_tokens=today_tokens,
                today_cost=today_cost.amount,
                mtd_tokens=mtd_tokens,
                mtd_cost=mtd_cost.amount,
                cost_source=mtd_cost.source,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise self._error(f"OpenAI API returned malformed payload: {exc}") from exc

        return snapshot
