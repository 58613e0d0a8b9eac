import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from cloud_poller.core.push.base import BasePushChannel, NotificationChannelFailure, PushMessage
from cloud_poller.core.push.service import create_push_channels
from cloud_poller.modules.alerts.schemas import AlertEvent
from cloud_poller.modules.store.repository import PushTokenRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationDispatcher:
    """Fans one alert out to every push channel a user registered.

    Channels are sent to concurrently and settle independently; a failing
    channel is logged and never affects the others or the caller.
    """

    def __init__(
        self,
        token_repository: PushTokenRepository | None = None,
        channels: dict[str, BasePushChannel] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.token_repository = token_repository or PushTokenRepository()
        self.channels = channels if channels is not None else create_push_channels()
        self._clock = clock

    def _resolve_targets(self, user_id: str) -> list[tuple[BasePushChannel, str]]:
        tokens = self.token_repository.get(user_id)
        if tokens is None:
            return []

        targets = []
        for name, token in tokens.registered().items():
            channel = self.channels.get(name)
            if channel is None:
                logger.warning("No %s channel configured, skip push for user %s", name, user_id)
                continue
            targets.append((channel, token))
        return targets

    async def dispatch(self, user_id: str, alert: AlertEvent) -> list[str]:
        """Send ``alert`` to the user's channels and return the ones that accepted it."""
        try:
            targets = self._resolve_targets(user_id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to resolve push channels for user %s", user_id)
            return []

        if not targets:
            logger.info("No push tokens found for user %s", user_id)
            return []

        message = PushMessage(
            title=alert.title,
            body=alert.body,
            priority=alert.priority,
            user_id=user_id,
            timestamp=self._clock(),
        )
        results = await asyncio.gather(
            *(channel.send(token, message) for channel, token in targets),
            return_exceptions=True,
        )

        delivered: list[str] = []
        for (channel, _token), result in zip(targets, results):
            if isinstance(result, NotificationChannelFailure):
                logger.warning("Push delivery failed for user %s: %s", user_id, result)
            elif isinstance(result, BaseException):
                logger.error(
                    "Unexpected %s push error for user %s",
                    channel.name,
                    user_id,
                    exc_info=result,
                )
            elif result:
                delivered.append(channel.name)

        logger.info(
            "Dispatched %s alert for user %s to %d/%d channels",
            alert.severity.value,
            user_id,
            len(delivered),
            len(targets),
        )
        return delivered
