from __future__ import annotations
import os
from datetime import datetime, timedelta, time, date, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones
from typing import List, Optional

from .models import RecurrenceRule, ResetFrequency

# Weekday numbers used throughout: 1=Sun, 2=Mon ... 7=Sat
WEEKDAY_LABELS = {1: "Sun", 2: "Mon", 3: "Tue", 4: "Wed", 5: "Thu", 6: "Fri", 7: "Sat"}
SCAN_DAYS = 7


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_zone(name: Optional[str]) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def zone_for(name: Optional[str]) -> tzinfo:
    if is_valid_zone(name):
        return ZoneInfo(name)  # type: ignore[arg-type]
    return timezone.utc


def local_zone_name() -> str:
    """Best-effort IANA name of the system time zone ("UTC" when unknown)."""
    env = os.environ.get("TZ", "").lstrip(":")
    if is_valid_zone(env):
        return env

    try:
        target = os.path.realpath("/etc/localtime")
    except OSError:
        target = ""
    marker = "zoneinfo" + os.sep
    if marker in target:
        candidate = target.split(marker, 1)[1]
        if is_valid_zone(candidate):
            return candidate

    return "UTC"


def available_zone_names() -> List[str]:
    names = [n for n in available_timezones() if "/" in n and not n.startswith(("Etc/", "SystemV/"))]
    return ["UTC"] + sorted(names)


def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("dt must be timezone-aware")
    return dt.astimezone(timezone.utc)


def to_local(dt_utc: datetime, zone_name: Optional[str] = None) -> datetime:
    if dt_utc.tzinfo is None:
        dt_utc = dt_utc.replace(tzinfo=timezone.utc)
    return dt_utc.astimezone(zone_for(zone_name or local_zone_name()))


def zone_label(zone_name: str, at: Optional[datetime] = None) -> str:
    """e.g. "New York (EST, -05:00)"."""
    local = to_local(at or now_utc(), zone_name)
    offset = local.utcoffset() or timedelta(0)
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    hh, mm = divmod(abs(minutes), 60)
    city = zone_name.split("/")[-1].replace("_", " ")
    return f"{city} ({local.tzname()}, {sign}{hh:02d}:{mm:02d})"


def weekday_number(d: date) -> int:
    """Gregorian weekday with Sunday=1 ... Saturday=7."""
    return d.isoweekday() % 7 + 1


def _at(day: date, at_time: time, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(at_time.hour, at_time.minute), tzinfo=tz)


def next_reset(rule: RecurrenceRule, now: datetime) -> Optional[datetime]:
    """
    Next instant (UTC) at which the statistics reset should happen, strictly
    after `now`. None when the rule cannot produce one (no weekdays selected).
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    tz = zone_for(rule.time_zone)
    today = now.astimezone(tz).date()

    if rule.frequency == ResetFrequency.DAILY:
        candidate = _at(today, rule.time_of_day, tz)
        if candidate <= now:
            candidate = _at(today + timedelta(days=1), rule.time_of_day, tz)
        return to_utc(candidate)

    if not rule.weekdays:
        return None

    if weekday_number(today) in rule.weekdays:
        candidate = _at(today, rule.time_of_day, tz)
        if candidate > now:
            return to_utc(candidate)

    best: Optional[datetime] = None
    for weekday in sorted(rule.weekdays):
        for offset in range(1, SCAN_DAYS + 1):
            day = today + timedelta(days=offset)
            if weekday_number(day) != weekday:
                continue
            candidate = _at(day, rule.time_of_day, tz)
            if best is None or candidate < best:
                best = candidate
            break

    return to_utc(best) if best is not None else None
