from __future__ import annotations

import sqlite3

import pytest

from fleeting.db import migrate
from fleeting.engine import TaskEngine
from fleeting.repository import Repository
from fleeting.settings import SettingsStore

from .fakes import FakeClock, FakeTimers, make_settings


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def conn():
    """Fresh in-memory database with the real schema and default settings."""
    c = sqlite3.connect(":memory:")
    c.row_factory = sqlite3.Row
    migrate(c)
    yield c
    c.close()


@pytest.fixture()
def repo(conn) -> Repository:
    return Repository(conn)


@pytest.fixture()
def settings_store(repo, monkeypatch) -> SettingsStore:
    monkeypatch.setenv("TZ", "UTC")
    return SettingsStore(repo)


@pytest.fixture()
def engine(repo, clock) -> TaskEngine:
    return TaskEngine(repo, make_settings, clock=clock)


@pytest.fixture()
def timers() -> FakeTimers:
    return FakeTimers()
