import json
import sqlite3
from datetime import datetime, time, timedelta, timezone

import pytest

from fleeting.engine import TaskEngine
from fleeting.models import ResetFrequency, Task
from fleeting.repository import Repository, task_from_record, task_to_record

from .fakes import make_settings

NOW = datetime(2026, 2, 18, 8, 0, tzinfo=timezone.utc)


def _task(**kw):
    base = dict(id="abc", title="Call back", created_at=NOW, expires_at=NOW + timedelta(hours=2))
    base.update(kw)
    return Task(**base)


def test_record_uses_documented_keys():
    rec = task_to_record(_task(location="Desk", link="https://example.com"))
    assert rec == {
        "id": "abc",
        "title": "Call back",
        "createdAt": "2026-02-18T08:00:00+00:00",
        "expiresAt": "2026-02-18T10:00:00+00:00",
        "location": "Desk",
        "link": "https://example.com",
        "isCompleted": False,
    }


def test_optional_fields_are_omitted():
    rec = task_to_record(_task())
    assert "location" not in rec
    assert "link" not in rec


def test_record_accepts_naive_and_offset_timestamps():
    t = task_from_record(
        {
            "id": "x",
            "title": "t",
            "createdAt": "2026-02-18T08:00:00",
            "expiresAt": "2026-02-18T10:00:00+01:00",
        }
    )
    assert t.created_at == NOW
    assert t.expires_at == NOW + timedelta(hours=1)
    assert t.is_completed is False


def test_save_and_load_state(repo):
    tasks = [_task(), _task(id="def", is_completed=True)]
    repo.save_state(tasks, completed_count=4, expired_count=2)

    state = repo.load_state()

    assert state.tasks == tasks
    assert state.completed_count == 4
    assert state.expired_count == 2


def test_missing_state_is_empty(repo):
    state = repo.load_state()
    assert state.tasks == []
    assert state.completed_count == 0
    assert state.expired_count == 0


def test_bad_records_discard_everything(repo, conn):
    bad = [task_to_record(_task()), {"id": "no-title"}]
    conn.execute("INSERT INTO state(key,value) VALUES('tasks',?)", (json.dumps(bad),))
    conn.commit()

    assert repo.load_state().tasks == []


def test_task_expiring_before_creation_is_corrupt(repo, conn):
    rec = task_to_record(_task())
    rec["expiresAt"] = rec["createdAt"]
    conn.execute("INSERT INTO state(key,value) VALUES('tasks',?)", (json.dumps([rec]),))
    conn.commit()

    assert repo.load_state().tasks == []


def test_out_of_range_timestamp_is_corrupt(repo, conn):
    rec = task_to_record(_task())
    rec["createdAt"] = "0001-01-01T00:00:00+01:00"
    conn.execute("INSERT INTO state(key,value) VALUES('tasks',?)", (json.dumps([rec]),))
    conn.commit()

    assert repo.load_state().tasks == []


def test_out_of_range_timestamp_does_not_block_engine_start(repo, conn, clock):
    rec = task_to_record(_task())
    rec["createdAt"] = "0001-01-01T00:00:00+01:00"
    conn.execute("INSERT INTO state(key,value) VALUES('tasks',?)", (json.dumps([rec]),))
    conn.commit()

    engine = TaskEngine(repo, make_settings, clock=clock)

    assert engine.tasks == ()


@pytest.mark.parametrize("flag", ["false", "true", 0, 1, None])
def test_completion_flag_must_be_boolean(flag):
    rec = task_to_record(_task())
    rec["isCompleted"] = flag

    with pytest.raises(ValueError):
        task_from_record(rec)


def test_string_completion_flag_discards_state(repo, conn):
    rec = task_to_record(_task())
    rec["isCompleted"] = "false"
    conn.execute("INSERT INTO state(key,value) VALUES('tasks',?)", (json.dumps([rec]),))
    conn.commit()

    assert repo.load_state().tasks == []


def test_save_failure_is_swallowed(conn, caplog):
    repo = Repository(conn)
    conn.execute("DROP TABLE state")

    repo.save_state([_task()], 1, 1)

    assert "Could not save state" in caplog.text


def test_load_failure_is_swallowed(conn):
    repo = Repository(conn)
    conn.execute("DROP TABLE state")
    assert repo.load_state().tasks == []


def test_settings_keys(repo, conn):
    repo.set_max_allowed_days(5)
    repo.set_default_duration_hours(2)
    repo.set_reset_frequency(ResetFrequency.SPECIFIC_DAYS)
    repo.set_reset_hhmm("06:15")
    repo.set_selected_weekdays([6, 2, 2])
    repo.set_time_zone("Asia/Tokyo")

    rows = {r["key"]: r["value"] for r in conn.execute("SELECT key, value FROM settings")}
    assert rows["maxAllowedDays"] == "5"
    assert rows["defaultDurationHours"] == "2"
    assert rows["resetFrequency"] == "specificDays"
    assert rows["resetTime"] == "06:15"
    assert rows["selectedWeekdays"] == "2,6"
    assert rows["timeZone"] == "Asia/Tokyo"

    s = repo.get_settings()
    assert s.rule.weekdays == frozenset({2, 6})
    assert s.rule.time_of_day == time(6, 15)


def test_garbage_settings_fall_back_to_defaults(repo, monkeypatch):
    monkeypatch.setenv("TZ", "UTC")
    repo._set_setting("maxAllowedDays", "lots")
    repo._set_setting("defaultDurationHours", "99")
    repo._set_setting("resetFrequency", "hourly")
    repo._set_setting("resetTime", "25:99")
    repo._set_setting("selectedWeekdays", "x,y")
    repo._set_setting("timeZone", "Nope/Nowhere")

    s = repo.get_settings()

    assert s.max_allowed_days == 3
    assert s.default_duration_hours == 24
    assert s.rule.frequency is ResetFrequency.DAILY
    assert s.rule.time_of_day == time(0, 0)
    assert s.rule.weekdays == frozenset({1})
    assert s.rule.time_zone == "UTC"


def test_migrate_is_repeatable(conn):
    from fleeting.db import migrate

    Repository(conn).set_max_allowed_days(6)
    migrate(conn)
    assert Repository(conn).get_settings().max_allowed_days == 6


def test_connect_uses_data_dir_override(tmp_path, monkeypatch):
    from fleeting import db

    monkeypatch.setenv(db.DATA_DIR_ENV, str(tmp_path / "data"))
    assert db.db_path() == tmp_path / "data" / db.DB_NAME

    conn = db.connect()
    try:
        db.migrate(conn)
        assert isinstance(conn, sqlite3.Connection)
    finally:
        conn.close()
    assert (tmp_path / "data" / db.DB_NAME).exists()
