import logging
import time

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, text

from cloud_poller.core.config import settings

logger = logging.getLogger(__name__)
DB_CONNECT_MAX_ATTEMPTS = 30
DB_CONNECT_RETRY_DELAY_SECONDS = 1.0
SUPPORTED_BACKENDS = ("sqlite", "postgresql")


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Scheduler jobs and request handlers share the engine across threads.
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


app_engine = build_engine(settings.app_database_url)


def _redacted(engine: Engine) -> str:
    return engine.url.render_as_string(hide_password=True)


def wait_for_database(engine: Engine = app_engine) -> None:
    """Block until ``engine`` accepts connections, re-raising the last error on give-up."""
    backend = engine.url.get_backend_name()
    if backend not in SUPPORTED_BACKENDS:
        raise RuntimeError(f"Unsupported snapshot store backend '{backend}'. Use SQLite or PostgreSQL.")

    for attempt in range(1, DB_CONNECT_MAX_ATTEMPTS + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except Exception as exc:  # noqa: BLE001
            if attempt == DB_CONNECT_MAX_ATTEMPTS:
                raise
            logger.info(
                "Snapshot store not reachable yet (attempt %d/%d): %s",
                attempt,
                DB_CONNECT_MAX_ATTEMPTS,
                exc,
            )
            time.sleep(DB_CONNECT_RETRY_DELAY_SECONDS)


def init_app_database() -> None:
    logger.info("Initializing snapshot store on %s", _redacted(app_engine))
    wait_for_database(app_engine)

    from cloud_poller.modules.store.models import KeyValueEntry

    _ = (KeyValueEntry,)
    SQLModel.metadata.create_all(app_engine)
    logger.info("Table '%s' is ready", KeyValueEntry.__tablename__)


def close_app_database() -> None:
    app_engine.dispose()
    logger.info("Database engine disposed.")
