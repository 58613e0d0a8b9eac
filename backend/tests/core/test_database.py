from sqlalchemy import inspect

from cloud_poller.core.database import app_engine, build_engine, init_app_database, wait_for_database


def test_wait_for_database_on_sqlite():
    engine = build_engine("sqlite:///:memory:")

    wait_for_database(engine)
    assert engine.url.get_backend_name() == "sqlite"
    engine.dispose()


def test_init_creates_key_value_table(db):
    init_app_database()

    assert "kv_entries" in inspect(app_engine).get_table_names()
