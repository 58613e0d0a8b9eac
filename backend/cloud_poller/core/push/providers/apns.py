import logging

import httpx

from cloud_poller.core.config import settings
from cloud_poller.core.push.base import BasePushChannel, PushMessage

logger = logging.getLogger(__name__)

_APNS_PRIORITY = {
    "high": "10",
    "normal": "5",
}


class APNSPushChannel(BasePushChannel):
    name = "apns"
    # The APNs gateway only speaks HTTP/2.
    http2 = True

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        auth_token: str | None = None,
        topic: str | None = None,
        api_url: str | None = None,
    ):
        super().__init__(client=client, timeout=timeout)
        self._auth_token = (auth_token if auth_token is not None else settings.APNS_AUTH_TOKEN).strip()
        self._topic = (topic if topic is not None else settings.APNS_TOPIC).strip()
        self._api_url = (api_url or settings.APNS_API_URL).rstrip("/")

    async def send(self, token: str, message: PushMessage) -> bool:
        if not self._auth_token or not self._topic:
            logger.warning(
                "APNS credentials are incomplete (APNS_AUTH_TOKEN/APNS_TOPIC), skip APNS push for user %s",
                message.user_id,
            )
            return False

        payload = {
            "aps": {
                "alert": {
                    "title": message.title,
                    "body": message.body,
                },
                "sound": "default",
            },
            "userId": message.user_id,
            "timestamp": message.timestamp.isoformat(),
        }
        await self._post(
            f"{self._api_url}/3/device/{token}",
            headers={
                "authorization": f"bearer {self._auth_token}",
                "apns-topic": self._topic,
                "apns-push-type": "alert",
                "apns-priority": _APNS_PRIORITY.get(message.priority, "5"),
            },
            payload=payload,
        )
        return True
