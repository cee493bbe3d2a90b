from __future__ import annotations
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from .models import RecurrenceRule
from .periods import next_reset, now_utc

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerFactory(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle: ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


class ResetScheduler:
    """
    Keeps exactly one pending wake-up for the next statistics reset.

    arm() always replaces the pending timer. Each arm bumps a generation
    number and a timer only acts if its generation is still current, so a
    timer racing with a re-arm is ignored.
    """

    def __init__(
        self,
        reset: Callable[[], None],
        rule_provider: Callable[[], RecurrenceRule],
        timers: TimerFactory,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._reset = reset
        self._rule_provider = rule_provider
        self._timers = timers
        self._clock = clock

        self._lock = threading.RLock()
        self._generation = 0
        self._handle: Optional[TimerHandle] = None
        self._next_fire_at: Optional[datetime] = None
        self._state = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def next_fire_at(self) -> Optional[datetime]:
        return self._next_fire_at

    @property
    def generation(self) -> int:
        return self._generation

    def arm(self, rule: Optional[RecurrenceRule] = None, now: Optional[datetime] = None) -> Optional[datetime]:
        with self._lock:
            self._cancel_pending()

            rule = rule if rule is not None else self._rule_provider()
            now = now if now is not None else self._clock()
            target = next_reset(rule, now)

            if target is None or target <= now:
                logger.info("No upcoming reset for %s; scheduler idle", rule)
                return None

            self._schedule(target, now)
            logger.info("Next statistics reset at %s", target.isoformat())
            return target

    def cancel(self) -> None:
        with self._lock:
            self._cancel_pending()

    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._next_fire_at = None
        self._state = SchedulerState.IDLE

    def _schedule(self, target: datetime, now: datetime) -> None:
        generation = self._generation
        delay = max(0.0, (target - now).total_seconds())
        self._next_fire_at = target
        self._state = SchedulerState.ARMED
        self._handle = self._timers.call_later(delay, lambda: self._fire(generation))

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not SchedulerState.ARMED:
                logger.debug("Ignoring stale reset timer (generation %d)", generation)
                return

            target = self._next_fire_at
            now = self._clock()
            self._handle = None

            if target is not None and now < target:
                # OS timer woke us early; wait out the rest
                self._generation += 1
                self._schedule(target, now)
                return

            try:
                self._reset()
            except Exception:
                logger.exception("Statistics reset failed")
            self.arm(now=self._clock())
