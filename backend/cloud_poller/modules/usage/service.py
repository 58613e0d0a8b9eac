from datetime import datetime

from cloud_poller.core.usage.base import local_now
from cloud_poller.core.usage.schemas import UsageSnapshot
from cloud_poller.core.usage.service import create_usage_provider
from cloud_poller.modules.poller.service import run_scheduled_cycle
from cloud_poller.modules.store.repository import PushTokenRepository, SnapshotStore
from cloud_poller.modules.store.schemas import PushTokens


async def poll_provider(provider: str, credential: str, now: datetime | None = None) -> UsageSnapshot:
    adapter = create_usage_provider(provider)
    return await adapter.poll(credential, now or local_now())


def get_user_usage(user_id: str) -> dict[str, dict]:
    return SnapshotStore().list_for_user(user_id)


def register_push_tokens(user_id: str, tokens: PushTokens) -> list[str]:
    PushTokenRepository().put(user_id, tokens)
    return sorted(tokens.registered().keys())


async def trigger_cycle() -> dict:
    report = await run_scheduled_cycle()
    return report.to_dict()
