from __future__ import annotations
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Iterable, List

from .models import (
    AppSettings,
    DEFAULT_DURATION_HOURS,
    DEFAULT_MAX_ALLOWED_DAYS,
    DEFAULT_WEEKDAYS,
    RecurrenceRule,
    ResetFrequency,
    Task,
    clamp_allowed_days,
    clamp_default_hours,
)
from .periods import is_valid_zone, local_zone_name

logger = logging.getLogger(__name__)


def _weekdays_from_csv(s: str) -> List[int]:
    if not s.strip():
        return []
    return [int(x) for x in s.split(",")]


def _weekdays_to_csv(days: Iterable[int]) -> str:
    return ",".join(str(d) for d in sorted(set(days)))


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat()


def _parse_instant(s: str) -> datetime:
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def task_to_record(task: Task) -> dict:
    rec = {
        "id": task.id,
        "title": task.title,
        "createdAt": _iso(task.created_at),
        "expiresAt": _iso(task.expires_at),
        "isCompleted": task.is_completed,
    }
    if task.location is not None:
        rec["location"] = task.location
    if task.link is not None:
        rec["link"] = task.link
    return rec


def task_from_record(rec: dict) -> Task:
    task = Task(
        id=str(rec["id"]),
        title=str(rec["title"]),
        created_at=_parse_instant(rec["createdAt"]),
        expires_at=_parse_instant(rec["expiresAt"]),
        location=rec.get("location"),
        link=rec.get("link"),
        is_completed=_parse_flag(rec.get("isCompleted", False)),
    )
    if task.expires_at <= task.created_at:
        raise ValueError(f"task {task.id} expires before it was created")
    return task


@dataclass(frozen=True)
class StoredState:
    tasks: List[Task] = field(default_factory=list)
    completed_count: int = 0
    expired_count: int = 0


class Repository:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Settings ----------
    def get_settings(self) -> AppSettings:
        days = clamp_allowed_days(self._get_int_setting("maxAllowedDays", DEFAULT_MAX_ALLOWED_DAYS))
        hours = clamp_default_hours(self._get_int_setting("defaultDurationHours", DEFAULT_DURATION_HOURS))

        try:
            frequency = ResetFrequency(self._get_setting("resetFrequency", ResetFrequency.DAILY.value))
        except ValueError:
            frequency = ResetFrequency.DAILY

        reset_time = self._parse_hhmm(self._get_setting("resetTime", "00:00"), time(0, 0))

        try:
            weekdays = frozenset(d for d in _weekdays_from_csv(self._get_setting("selectedWeekdays", "1")) if 1 <= d <= 7)
        except ValueError:
            weekdays = frozenset()
        if not weekdays:
            weekdays = DEFAULT_WEEKDAYS

        zone = self._get_setting("timeZone", "")
        if not is_valid_zone(zone):
            zone = local_zone_name()

        rule = RecurrenceRule(frequency=frequency, time_of_day=reset_time, time_zone=zone, weekdays=weekdays)
        return AppSettings(max_allowed_days=days, default_duration_hours=hours, rule=rule)

    def set_max_allowed_days(self, days: int) -> None:
        self._set_setting("maxAllowedDays", str(days))

    def set_default_duration_hours(self, hours: int) -> None:
        self._set_setting("defaultDurationHours", str(hours))

    def set_reset_frequency(self, frequency: ResetFrequency) -> None:
        self._set_setting("resetFrequency", frequency.value)

    def set_reset_hhmm(self, hhmm: str) -> None:
        self._set_setting("resetTime", hhmm)

    def set_selected_weekdays(self, days: Iterable[int]) -> None:
        self._set_setting("selectedWeekdays", _weekdays_to_csv(days))

    def set_time_zone(self, name: str) -> None:
        self._set_setting("timeZone", name)

    def _get_setting(self, key: str, default: str) -> str:
        row = self.conn.execute("SELECT value FROM settings WHERE key=?", (key,)).fetchone()
        return row["value"] if row else default

    def _get_int_setting(self, key: str, default: int) -> int:
        try:
            return int(self._get_setting(key, str(default)))
        except ValueError:
            return default

    def _set_setting(self, key: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO settings(key,value) VALUES(?,?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )
        self.conn.commit()

    def _parse_hhmm(self, s: str, default: time) -> time:
        try:
            hh, mm = s.split(":")
            return time(int(hh), int(mm))
        except ValueError:
            return default

    # ---------- Tasks / counters ----------
    def load_state(self) -> StoredState:
        """
        Read persisted tasks and counters. Anything unreadable is treated as
        "no prior state" so the app always starts.
        """
        try:
            rows = self.conn.execute("SELECT key, value FROM state").fetchall()
            values = {r["key"]: r["value"] for r in rows}

            raw_tasks = json.loads(values.get("tasks", "[]"))
            if not isinstance(raw_tasks, list):
                raise ValueError("tasks is not a list")
            tasks = [task_from_record(rec) for rec in raw_tasks]

            completed = max(0, int(values.get("completedCount", "0")))
            expired = max(0, int(values.get("expiredCount", "0")))
        except (sqlite3.Error, KeyError, TypeError, ValueError, OverflowError) as e:
            # json.JSONDecodeError is a ValueError; OverflowError comes from out-of-range dates
            logger.warning("Discarding unreadable saved state: %s", e)
            return StoredState()

        return StoredState(tasks=tasks, completed_count=completed, expired_count=expired)

    def save_state(self, tasks: Iterable[Task], completed_count: int, expired_count: int) -> None:
        payload = json.dumps([task_to_record(t) for t in tasks])
        try:
            self.conn.executemany(
                "INSERT INTO state(key,value) VALUES(?,?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                [
                    ("tasks", payload),
                    ("completedCount", str(completed_count)),
                    ("expiredCount", str(expired_count)),
                ],
            )
            self.conn.commit()
        except sqlite3.Error as e:
            # no retry
            logger.warning("Could not save state: %s", e)
