from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone

import httpx

from cloud_poller.core.config import settings
from cloud_poller.core.usage.schemas import CostSource, ProviderType, UsageSnapshot


class PollError(Exception):
    """A provider could not produce a usage snapshot."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        provider: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


@dataclass(frozen=True)
class CostFigure:
    """A cost total together with where it came from.

    A failed fetch is never represented here; it raises ``PollError``.
    """

    amount: float
    source: CostSource

    @classmethod
    def reported(cls, amount: float) -> CostFigure:
        return cls(amount=float(amount), source=CostSource.REPORTED)

    @classmethod
    def no_cost_model(cls) -> CostFigure:
        return cls(amount=0.0, source=CostSource.NO_COST_MODEL)


def local_now() -> datetime:
    return datetime.now().astimezone()


def start_of_month(now: datetime) -> date:
    return now.date().replace(day=1)


def to_local_time(value, now: datetime) -> datetime:
    """Convert a provider timestamp (unix seconds or ISO-8601) to ``now``'s clock."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if now.tzinfo is None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.astimezone(now.tzinfo)


def is_same_day(value, now: datetime) -> bool:
    return to_local_time(value, now).date() == now.date()


class BaseUsageProvider(ABC):
    provider_type: ProviderType
    label: str = "Provider"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self._client = client
        self._base_url = (base_url or "").rstrip("/")
        self._timeout = timeout if timeout is not None else settings.POLL_TIMEOUT_SECONDS

    @abstractmethod
    async def poll(self, credential: str, now: datetime) -> UsageSnapshot:
        """Fetch month-to-date usage for ``credential`` as seen at ``now``."""
        pass

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def _error(self, message: str, status_code: int | None = None) -> PollError:
        return PollError(message, status_code=status_code, provider=self.provider_type.value)

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        path: str,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> dict:
        url = f"{self._base_url}{path}"
        try:
            response = await client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as exc:
            raise self._error(f"{self.label} API timed out on {path}") from exc
        except httpx.HTTPError as exc:
            raise self._error(f"{self.label} API request to {path} failed: {exc}") from exc

        if not response.is_success:
            raise self._error(
                f"{self.label} API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise self._error(
                f"{self.label} API returned malformed payload on {path}",
                status_code=response.status_code,
            ) from exc

        if not isinstance(body, dict):
            raise self._error(
                f"{self.label} API returned malformed payload on {path}",
                status_code=response.status_code,
            )
        return body

    def _records(self, body: dict, key: str) -> list[dict]:
        records = body.get(key)
        if not isinstance(records, list) or not all(isinstance(item, dict) for item in records):
            raise self._error(f"{self.label} API returned malformed payload: '{key}' is not a list")
        return records
