from typing import Dict

import httpx

from cloud_poller.core.push.base import BasePushChannel
from cloud_poller.core.push.providers.apns import APNSPushChannel
from cloud_poller.core.push.providers.fcm import FCMPushChannel

PUSH_CHANNEL_REGISTRY: Dict[str, type[BasePushChannel]] = {
    "apns": APNSPushChannel,
    "fcm": FCMPushChannel,
}


def create_push_channel(name: str, client: httpx.AsyncClient | None = None) -> BasePushChannel:
    key = str(name or "").strip().lower()
    if key not in PUSH_CHANNEL_REGISTRY:
        raise ValueError(f"Unsupported push channel: {name}")
    return PUSH_CHANNEL_REGISTRY[key](client=client)


def create_push_channels(client: httpx.AsyncClient | None = None) -> dict[str, BasePushChannel]:
    return {name: create_push_channel(name, client=client) for name in PUSH_CHANNEL_REGISTRY}
