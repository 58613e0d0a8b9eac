"""Polling cycle: poll every provider config, persist, detect, notify.

Each config is processed in isolation. A failing provider is logged and
counted, the stale snapshot stays in place, and the remaining configs carry
on. Configs sharing a (user, provider) key are serialized so the previous
snapshot is always read before the new one is written; distinct keys may run
concurrently up to the configured limit.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from cloud_poller.core.config import settings
from cloud_poller.core.usage.base import BaseUsageProvider, PollError, local_now
from cloud_poller.core.usage.service import UnknownProviderType, create_usage_provider
from cloud_poller.modules.alerts.detector import detect
from cloud_poller.modules.alerts.schemas import AlertEvent
from cloud_poller.modules.notifications.service import NotificationDispatcher
from cloud_poller.modules.store.repository import ProviderConfigRepository, SnapshotStore
from cloud_poller.modules.store.schemas import ProviderConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigFailure:
    user_id: str
    provider_id: str
    message: str


@dataclass
class CycleReport:
    started_at: datetime
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    alerts: int = 0
    failures: list[ConfigFailure] = field(default_factory=list)

    def record_failure(self, config: ProviderConfig, message: str) -> None:
        self.failed += 1
        self.failures.append(
            ConfigFailure(user_id=config.user_id, provider_id=config.provider_id, message=message)
        )

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "alerts": self.alerts,
            "failures": [
                {
                    "user_id": failure.user_id,
                    "provider_id": failure.provider_id,
                    "message": failure.message,
                }
                for failure in self.failures
            ],
        }


class PollingOrchestrator:
    def __init__(
        self,
        snapshot_store: SnapshotStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        provider_factory: Callable[[str], BaseUsageProvider] = create_usage_provider,
        concurrency: int | None = None,
    ):
        self.snapshot_store = snapshot_store or SnapshotStore()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.provider_factory = provider_factory
        self.concurrency = max(1, concurrency or settings.poll_concurrency)
        self._key_locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    async def _poll_and_persist(self, config: ProviderConfig, now: datetime) -> AlertEvent | None:
        provider = self.provider_factory(config.provider_type)
        if not config.credential:
            raise PollError("No credential configured", provider=config.provider_type)

        current = await provider.poll(config.credential, now)
        previous = self.snapshot_store.get(config.user_id, config.provider_id)

        current = current.model_copy(update={"last_updated": now})
        self.snapshot_store.put(config.user_id, config.provider_id, current)
        logger.info(
            "Polled %s/%s (%s): %d tokens today, $%.2f MTD",
            config.user_id,
            config.provider_id,
            config.provider_type,
            current.today_tokens,
            current.mtd_cost,
        )
        return detect(config, current, previous)

    async def _notify(self, config: ProviderConfig, alert: AlertEvent) -> None:
        try:
            await self.dispatcher.dispatch(config.user_id, alert)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Notification fan-out failed for %s/%s", config.user_id, config.provider_id
            )

    async def process_config(self, config: ProviderConfig, now: datetime, report: CycleReport) -> None:
        if not config.enabled:
            report.skipped += 1
            return

        try:
            async with self._lock_for(config.key):
                alert = await self._poll_and_persist(config, now)
        except (PollError, UnknownProviderType) as exc:
            report.record_failure(config, str(exc))
            logger.warning(
                "Failed to poll provider %s/%s (%s): %s",
                config.user_id,
                config.provider_id,
                config.provider_type,
                exc,
            )
            return
        except Exception as exc:  # noqa: BLE001
            report.record_failure(config, f"Unexpected error: {exc}")
            logger.exception(
                "Unexpected error polling provider %s/%s (%s)",
                config.user_id,
                config.provider_id,
                config.provider_type,
            )
            return

        report.succeeded += 1
        if alert is not None:
            report.alerts += 1
            await self._notify(config, alert)

    async def run_cycle(self, configs: list[ProviderConfig], now: datetime) -> CycleReport:
        report = CycleReport(started_at=now)
        if not configs:
            logger.info("No provider configs found")
            return report

        logger.info("Starting polling cycle for %d provider configs", len(configs))
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(config: ProviderConfig) -> None:
            async with semaphore:
                await self.process_config(config, now, report)

        await asyncio.gather(*(_bounded(config) for config in configs))

        logger.info(
            "Polling cycle complete: %d ok, %d failed, %d skipped, %d alerts",
            report.succeeded,
            report.failed,
            report.skipped,
            report.alerts,
        )
        return report


_cycle_lock = asyncio.Lock()


async def run_scheduled_cycle(
    now: datetime | None = None,
    repository: ProviderConfigRepository | None = None,
    orchestrator: PollingOrchestrator | None = None,
) -> CycleReport:
    """Run one full cycle over the stored provider configs.

    Cycles are serialized; a second call waits for the running one to finish.
    """
    async with _cycle_lock:
        now = now or local_now()
        repository = repository or ProviderConfigRepository()
        configs = repository.load_all()
        if not configs:
            logger.info("No provider configs found")
            return CycleReport(started_at=now)

        orchestrator = orchestrator or PollingOrchestrator()
        return await orchestrator.run_cycle(configs, now)
