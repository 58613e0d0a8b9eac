import os
import tempfile
from pathlib import Path

_TEST_DB_DIR = tempfile.mkdtemp(prefix="cloud_poller_tests_")
os.environ["APP_DATABASE_URL"] = f"sqlite:///{Path(_TEST_DB_DIR) / 'test.db'}"
os.environ["POLL_INTERVAL_SECONDS"] = "0"
os.environ["POLLER_API_TOKEN"] = ""
os.environ["FCM_SERVER_KEY"] = ""
os.environ["APNS_AUTH_TOKEN"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from cloud_poller.core.database import app_engine  # noqa: E402
from cloud_poller.main import app  # noqa: E402
from cloud_poller.modules.store.models import KeyValueEntry  # noqa: E402,F401
from cloud_poller.modules.store.repository import KeyValueStore  # noqa: E402


@pytest.fixture()
def db():
    SQLModel.metadata.create_all(app_engine)
    yield app_engine
    SQLModel.metadata.drop_all(app_engine)


@pytest.fixture()
def kv(db):
    return KeyValueStore(db)


@pytest.fixture()
def client(db):
    with TestClient(app) as c:
        yield c
