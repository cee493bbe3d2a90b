from __future__ import annotations
import logging
from dataclasses import replace
from datetime import time
from typing import Callable, Iterable, List

from .models import AppSettings, RecurrenceRule, ResetFrequency, clamp_allowed_days, clamp_default_hours
from .periods import is_valid_zone
from .repository import Repository

logger = logging.getLogger(__name__)

RuleListener = Callable[[RecurrenceRule], None]


class SettingsStore:
    """
    Current user settings, persisted through the repository on every change.

    The engine only reads `current()`. Anything that depends on the reset rule
    registers with `on_rule_changed` and is told about every new rule.
    """

    def __init__(self, repo: Repository):
        self.repo = repo
        self._settings = repo.get_settings()
        self._rule_listeners: List[RuleListener] = []

    def current(self) -> AppSettings:
        return self._settings

    def rule(self) -> RecurrenceRule:
        return self._settings.rule

    def on_rule_changed(self, listener: RuleListener) -> Callable[[], None]:
        self._rule_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._rule_listeners:
                self._rule_listeners.remove(listener)

        return unsubscribe

    # ---------- Duration caps ----------
    def set_max_allowed_days(self, days: int) -> int:
        days = clamp_allowed_days(days)
        if days != self._settings.max_allowed_days:
            self.repo.set_max_allowed_days(days)
            self._settings = replace(self._settings, max_allowed_days=days)
        return days

    def set_default_duration_hours(self, hours: int) -> int:
        hours = clamp_default_hours(hours)
        if hours != self._settings.default_duration_hours:
            self.repo.set_default_duration_hours(hours)
            self._settings = replace(self._settings, default_duration_hours=hours)
        return hours

    # ---------- Reset rule ----------
    def set_reset_frequency(self, frequency: ResetFrequency) -> None:
        frequency = ResetFrequency(frequency)
        if frequency == self.rule().frequency:
            return
        self.repo.set_reset_frequency(frequency)
        self._update_rule(frequency=frequency)

    def set_reset_time(self, at: time) -> None:
        at = time(at.hour, at.minute)
        if at == self.rule().time_of_day:
            return
        self.repo.set_reset_hhmm(f"{at.hour:02d}:{at.minute:02d}")
        self._update_rule(time_of_day=at)

    def set_selected_weekdays(self, days: Iterable[int]) -> bool:
        """Returns False (and changes nothing) for an empty or out-of-range set."""
        selected = frozenset(int(d) for d in days)
        if not selected or not all(1 <= d <= 7 for d in selected):
            logger.debug("Rejected weekday selection %s", sorted(selected))
            return False
        if selected != self.rule().weekdays:
            self.repo.set_selected_weekdays(selected)
            self._update_rule(weekdays=selected)
        return True

    def toggle_weekday(self, day: int) -> bool:
        current = self.rule().weekdays
        if day in current:
            if len(current) == 1:
                # the last selected day cannot be removed
                return False
            return self.set_selected_weekdays(current - {day})
        return self.set_selected_weekdays(current | {day})

    def set_time_zone(self, name: str) -> None:
        if not is_valid_zone(name):
            raise ValueError(f"Unknown time zone: {name!r}")
        if name == self.rule().time_zone:
            return
        self.repo.set_time_zone(name)
        self._update_rule(time_zone=name)

    def _update_rule(self, **changes) -> None:
        rule = replace(self.rule(), **changes)
        self._settings = replace(self._settings, rule=rule)
        logger.info("Reset rule changed: %s", rule)
        for listener in list(self._rule_listeners):
            listener(rule)
