from __future__ import annotations

import importlib

import pytest

from conftest import InMemoryAttendanceStore
from tuition_ledger.attendance.mysql_store import MySQLAttendanceStore
from tuition_ledger.config import get_settings_module
from tuition_ledger.container import build_container


@pytest.mark.parametrize(
    "env, expected",
    [
        ("production", "tuition_ledger.config.production"),
        ("prod", "tuition_ledger.config.production"),
        ("testing", "tuition_ledger.config.testing"),
        ("anything", "tuition_ledger.config.development"),
    ],
)
def test_settings_module_follows_app_env(monkeypatch, env, expected):
    monkeypatch.setenv("APP_ENV", env)

    assert get_settings_module() == expected


def test_container_applies_settings_to_the_fetcher():
    settings = importlib.import_module("tuition_ledger.config.testing")
    store = InMemoryAttendanceStore()

    container = build_container(settings=settings, store=store)

    assert container.conn is None
    assert container.attendance_store is store
    assert container.historical_fetcher.page_size == 3
    assert container.historical_fetcher.max_records == 10
    assert container.attendance_engine.scope_idle_seconds == 60.0


def test_container_builds_mysql_store_from_db_config():
    container = build_container(db_config={"host": "db", "user": "app", "password": "x", "database": "ledger"})

    assert isinstance(container.attendance_store, MySQLAttendanceStore)
    assert container.conn.config.host == "db"
    assert container.conn.config.port == 3306
    assert container.historical_fetcher.page_size == 1000


def test_container_needs_a_store_or_db_config():
    with pytest.raises(ValueError):
        build_container()


def test_build_from_environment_uses_app_env(monkeypatch):
    from tuition_ledger.main import build_from_environment

    monkeypatch.setenv("APP_ENV", "testing")

    container = build_from_environment()

    assert isinstance(container.attendance_store, MySQLAttendanceStore)
    assert container.historical_fetcher.max_records == 10
