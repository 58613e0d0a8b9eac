import logging

import httpx

from cloud_poller.core.config import settings
from cloud_poller.core.push.base import BasePushChannel, PushMessage

logger = logging.getLogger(__name__)


class FCMPushChannel(BasePushChannel):
    name = "fcm"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        server_key: str | None = None,
        api_url: str | None = None,
    ):
        super().__init__(client=client, timeout=timeout)
        self._server_key = (server_key if server_key is not None else settings.FCM_SERVER_KEY).strip()
        self._api_url = api_url or settings.FCM_API_URL

    async def send(self, token: str, message: PushMessage) -> bool:
        if not self._server_key:
            logger.warning("FCM_SERVER_KEY is empty, skip FCM push for user %s", message.user_id)
            return False

        payload = {
            "to": token,
            "notification": {
                "title": message.title,
                "body": message.body,
                "priority": message.priority,
            },
            "data": {
                "userId": message.user_id,
                "timestamp": message.timestamp.isoformat(),
            },
        }
        await self._post(
            self._api_url,
            headers={
                "Authorization": f"key={self._server_key}",
                "Content-Type": "application/json",
            },
            payload=payload,
        )
        return True
