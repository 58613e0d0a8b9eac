from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

import httpx

from cloud_poller.core.config import settings


class NotificationChannelFailure(RuntimeError):
    """Delivery to a single push channel failed."""

    def __init__(self, channel: str, message: str, status_code: int | None = None):
        super().__init__(f"{channel}: {message}")
        self.channel = channel
        self.status_code = status_code


@dataclass(frozen=True)
class PushMessage:
    title: str
    body: str
    priority: str
    user_id: str
    timestamp: datetime


class BasePushChannel(ABC):
    name: str
    http2: bool = False

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self._client = client
        self._timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT_SECONDS

    @abstractmethod
    async def send(self, token: str, message: PushMessage) -> bool:
        """Deliver ``message`` to the device ``token``.

        Returns False when the channel is not configured and nothing was sent.
        Raises ``NotificationChannelFailure`` when delivery was attempted and failed.
        """
        pass

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(http2=self.http2, timeout=self._timeout) as client:
            yield client

    async def _post(self, url: str, headers: dict[str, str], payload: dict) -> None:
        async with self._client_scope() as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as exc:
                raise NotificationChannelFailure(self.name, f"request failed: {exc}") from exc

        if not response.is_success:
            raise NotificationChannelFailure(
                self.name,
                f"gateway returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
