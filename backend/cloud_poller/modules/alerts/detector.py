"""Budget threshold crossing detection.

An alert fires when month-to-date spend moves from below a limit to at or
above it between the previous stored snapshot and the current one. Staying
above a limit does not re-alert. A missing previous snapshot counts as below
every limit.

Hard and soft are mutually exclusive per evaluation and hard wins, so a jump
from below soft straight past hard yields a single hard alert.
"""

from cloud_poller.core.usage.schemas import UsageSnapshot
from cloud_poller.modules.alerts.schemas import AlertEvent, AlertSeverity
from cloud_poller.modules.store.schemas import ProviderConfig


def _format_limit(limit: float) -> str:
    return f"{limit:g}"


def _crossed(limit: float | None, spend: float, previous: UsageSnapshot | None) -> bool:
    if limit is None:
        return False
    if spend < limit:
        return False
    return previous is None or previous.mtd_cost < limit


def detect(
    config: ProviderConfig,
    current: UsageSnapshot,
    previous: UsageSnapshot | None,
) -> AlertEvent | None:
    soft_limit = config.soft_limit
    hard_limit = config.hard_limit
    if soft_limit is None and hard_limit is None:
        return None

    spend = current.mtd_cost
    provider = config.provider_type

    if _crossed(hard_limit, spend, previous):
        return AlertEvent(
            user_id=config.user_id,
            provider_type=provider,
            severity=AlertSeverity.HARD,
            current_spend=spend,
            limit=hard_limit,
            title="Critical: Budget Exceeded",
            body=f"{provider} has exceeded hard limit: ${spend:.2f} / ${_format_limit(hard_limit)}",
        )

    if _crossed(soft_limit, spend, previous):
        return AlertEvent(
            user_id=config.user_id,
            provider_type=provider,
            severity=AlertSeverity.SOFT,
            current_spend=spend,
            limit=soft_limit,
            title="Warning: Budget Alert",
            body=f"{provider} approaching limit: ${spend:.2f} / ${_format_limit(soft_limit)}",
        )

    return None
