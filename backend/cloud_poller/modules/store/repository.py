"""Key-value persistence for snapshots, provider configs and push tokens.

Every value is a JSON document under a string key; writes are last-write-wins
per key and nothing spans more than one key transactionally.
"""

import json
import logging
import time

from pydantic import ValidationError
from sqlmodel import Session, col, select

from cloud_poller.core.database import app_engine
from cloud_poller.core.usage.schemas import UsageSnapshot
from cloud_poller.modules.store.models import KeyValueEntry
from cloud_poller.modules.store.schemas import ProviderConfig, PushTokens

logger = logging.getLogger(__name__)

PROVIDER_CONFIGS_KEY = "provider_configs"


class KeyValueStore:
    def __init__(self, engine=app_engine):
        self.engine = engine

    def get_json(self, key: str):
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                return None
            return json.loads(entry.value)

    def put_json(self, key: str, value) -> None:
        encoded = json.dumps(value)
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                entry = KeyValueEntry(key=key, value=encoded)
            else:
                entry.value = encoded
                entry.updated_at = time.time()
            session.add(entry)
            session.commit()

    def delete(self, key: str) -> bool:
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                return False
            session.delete(entry)
            session.commit()
            return True

    def list_prefix(self, prefix: str) -> dict[str, object]:
        with Session(self.engine) as session:
            entries = session.exec(
                select(KeyValueEntry)
                .where(col(KeyValueEntry.key).startswith(prefix))
                .order_by(KeyValueEntry.key)
            ).all()
            # LIKE treats "_" as a wildcard, so re-check the prefix literally.
            return {
                entry.key: json.loads(entry.value)
                for entry in entries
                if entry.key.startswith(prefix)
            }


class SnapshotStore:
    def __init__(self, kv: KeyValueStore | None = None):
        self.kv = kv or KeyValueStore()

    @staticmethod
    def key_for(user_id: str, provider_id: str) -> str:
        return f"usage:{user_id}:{provider_id}"

    def get(self, user_id: str, provider_id: str) -> UsageSnapshot | None:
        key = self.key_for(user_id, provider_id)
        payload = self.kv.get_json(key)
        if payload is None:
            return None
        try:
            return UsageSnapshot.from_payload(payload)
        except (ValidationError, TypeError) as exc:
            logger.warning("Stored snapshot %s is unreadable, treating as absent: %s", key, exc)
            return None

    def put(self, user_id: str, provider_id: str, snapshot: UsageSnapshot) -> None:
        self.kv.put_json(self.key_for(user_id, provider_id), snapshot.to_payload())

    def list_for_user(self, user_id: str) -> dict[str, dict]:
        prefix = f"usage:{user_id}:"
        return {
            key[len(prefix):]: payload
            for key, payload in self.kv.list_prefix(prefix).items()
        }


class ProviderConfigRepository:
    def __init__(self, kv: KeyValueStore | None = None):
        self.kv = kv or KeyValueStore()

    def load_all(self) -> list[ProviderConfig]:
        payload = self.kv.get_json(PROVIDER_CONFIGS_KEY)
        if not payload:
            return []
        if not isinstance(payload, list):
            logger.error("'%s' is not a list, ignoring stored provider configs", PROVIDER_CONFIGS_KEY)
            return []

        configs: list[ProviderConfig] = []
        for index, item in enumerate(payload):
            try:
                configs.append(ProviderConfig.model_validate(item))
            except ValidationError as exc:
                # The error text embeds input values, credentials included.
                fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
                logger.warning("Skipping invalid provider config #%d (fields: %s)", index, fields)
        return configs

    def save_all(self, configs: list[ProviderConfig]) -> None:
        self.kv.put_json(
            PROVIDER_CONFIGS_KEY,
            [config.model_dump(mode="json", by_alias=True) for config in configs],
        )


class PushTokenRepository:
    def __init__(self, kv: KeyValueStore | None = None):
        self.kv = kv or KeyValueStore()

    @staticmethod
    def key_for(user_id: str) -> str:
        return f"push_tokens:{user_id}"

    def get(self, user_id: str) -> PushTokens | None:
        payload = self.kv.get_json(self.key_for(user_id))
        if not payload:
            return None
        return PushTokens.model_validate(payload)

    def put(self, user_id: str, tokens: PushTokens) -> None:
        self.kv.put_json(self.key_for(user_id), tokens.model_dump(exclude_none=True))
