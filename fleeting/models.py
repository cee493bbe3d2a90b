from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import FrozenSet, Optional

HARD_UPPER_BOUND_SECONDS = 7 * 24 * 3600

CRITICAL_SECONDS = 3600      # 1 hour
URGENT_SECONDS = 6 * 3600    # 6 hours

MIN_ALLOWED_DAYS, MAX_ALLOWED_DAYS = 1, 7
MIN_DEFAULT_HOURS, MAX_DEFAULT_HOURS = 1, 24

DEFAULT_MAX_ALLOWED_DAYS = 3
DEFAULT_DURATION_HOURS = 1
DEFAULT_WEEKDAYS = frozenset({1})  # Sunday


class UrgencyLevel(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    CRITICAL = "critical"
    EXPIRED = "expired"


class ResetFrequency(str, Enum):
    DAILY = "daily"
    SPECIFIC_DAYS = "specificDays"

    @property
    def display_name(self) -> str:
        if self is ResetFrequency.DAILY:
            return "Daily"
        return "Specific Day(s) of Week"


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    created_at: datetime  # aware, UTC
    expires_at: datetime  # aware, UTC
    location: Optional[str] = None
    link: Optional[str] = None
    is_completed: bool = False

    @property
    def duration(self) -> float:
        return (self.expires_at - self.created_at).total_seconds()

    def time_remaining(self, now: datetime) -> float:
        return max(0.0, (self.expires_at - now).total_seconds())

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def progress(self, now: datetime) -> float:
        """Fraction of the lifetime still left, 1.0 when fresh and 0.0 when expired."""
        total = self.duration
        if total <= 0:
            return 0.0
        return max(0.0, min(1.0, self.time_remaining(now) / total))

    def urgency_level(self, now: datetime) -> UrgencyLevel:
        return urgency_for_remaining(self.time_remaining(now))


def urgency_for_remaining(remaining: float) -> UrgencyLevel:
    if remaining <= 0:
        return UrgencyLevel.EXPIRED
    if remaining <= CRITICAL_SECONDS:
        return UrgencyLevel.CRITICAL
    if remaining <= URGENT_SECONDS:
        return UrgencyLevel.URGENT
    return UrgencyLevel.NORMAL


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: ResetFrequency
    time_of_day: time
    time_zone: str  # IANA identifier
    # 1=Sun ... 7=Sat
    weekdays: FrozenSet[int] = field(default_factory=lambda: DEFAULT_WEEKDAYS)


@dataclass(frozen=True)
class AppSettings:
    max_allowed_days: int
    default_duration_hours: int
    rule: RecurrenceRule

    @property
    def max_allowed_duration(self) -> float:
        return float(self.max_allowed_days * 24 * 3600)

    @property
    def default_duration(self) -> float:
        return float(self.default_duration_hours * 3600)


def clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(int(value), hi))


def clamp_allowed_days(days: int) -> int:
    return clamp(days, MIN_ALLOWED_DAYS, MAX_ALLOWED_DAYS)


def clamp_default_hours(hours: int) -> int:
    return clamp(hours, MIN_DEFAULT_HOURS, MAX_DEFAULT_HOURS)
