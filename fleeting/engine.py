from __future__ import annotations

import logging
import math
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from .links import valid_url
from .models import AppSettings, HARD_UPPER_BOUND_SECONDS, Task, UrgencyLevel
from .periods import now_utc
from .repository import Repository

logger = logging.getLogger(__name__)

INITIAL_FIRE_INTENSITY = 0.7
NEUTRAL_FIRE_INTENSITY = 0.5
FIRE_SMOOTHING = 0.02
MIN_FIRE_TARGET, MAX_FIRE_TARGET = 0.1, 1.0

Observer = Callable[[], None]


class TaskEngine:
    """
    Owns the task list and the completed/expired counters.

    Every mutating call persists through the repository (when one is given)
    and then notifies subscribers. All calls are expected on one thread.
    """

    def __init__(
        self,
        repo: Optional[Repository],
        settings: Callable[[], AppSettings],
        clock: Callable[[], datetime] = now_utc,
    ):
        self.repo = repo
        self._settings = settings
        self._clock = clock
        self._observers: List[Observer] = []
        self._fire_intensity = INITIAL_FIRE_INTENSITY

        self._tasks: List[Task] = []
        self._completed_count = 0
        self._expired_count = 0
        if repo is not None:
            state = repo.load_state()
            self._tasks = list(state.tasks)
            self._completed_count = state.completed_count
            self._expired_count = state.expired_count
            logger.info(
                "Loaded %d task(s), %d completed, %d expired",
                len(self._tasks), self._completed_count, self._expired_count,
            )

    # ---------- Observers ----------
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer()

    def _persist(self) -> None:
        if self.repo is not None:
            self.repo.save_state(self._tasks, self._completed_count, self._expired_count)

    # ---------- Views ----------
    @property
    def tasks(self) -> Tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def completed_count(self) -> int:
        return self._completed_count

    @property
    def expired_count(self) -> int:
        return self._expired_count

    @property
    def active_tasks(self) -> List[Task]:
        now = self._clock()
        return [t for t in self._tasks if not t.is_expired(now) and not t.is_completed]

    @property
    def sorted_by_expiry(self) -> List[Task]:
        # sorted() is stable: equal expiries keep insertion order
        return sorted(self.active_tasks, key=lambda t: t.expires_at)

    def get(self, task_id: str) -> Optional[Task]:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def urgency_level(self, task: Task) -> UrgencyLevel:
        return task.urgency_level(self._clock())

    @property
    def fire_intensity(self) -> float:
        """
        Smoothed completion ratio. Each read moves the value 2% of the way
        toward completed / (completed + expired + active), so it drifts
        instead of jumping.
        """
        total = self._completed_count + self._expired_count + len(self.active_tasks)
        if total == 0:
            return NEUTRAL_FIRE_INTENSITY

        ratio = self._completed_count / total
        target = max(MIN_FIRE_TARGET, min(MAX_FIRE_TARGET, ratio))
        self._fire_intensity = self._fire_intensity * (1 - FIRE_SMOOTHING) + target * FIRE_SMOOTHING
        return self._fire_intensity

    # ---------- Mutations ----------
    def add(
        self,
        title: str,
        duration: float,
        location: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Optional[Task]:
        """
        Create a task expiring `duration` seconds from now.

        Declines (returns None) on an empty title, a non-positive duration or
        a link that is not a usable URL. The duration is capped by the hard
        upper bound and by the configured maximum.
        """
        title = (title or "").strip()
        if not title:
            logger.debug("Declined task: empty title")
            return None

        try:
            seconds = float(duration)
        except (TypeError, ValueError):
            logger.debug("Declined task %r: duration %r is not a number", title, duration)
            return None
        if not math.isfinite(seconds) or seconds <= 0:
            logger.debug("Declined task %r: duration %r", title, duration)
            return None

        link_value: Optional[str] = None
        if link is not None and link.strip():
            link_value = valid_url(link)
            if link_value is None:
                logger.debug("Declined task %r: malformed link %r", title, link)
                return None

        location_value = (location or "").strip() or None

        cap = min(float(HARD_UPPER_BOUND_SECONDS), self._settings().max_allowed_duration)
        seconds = min(seconds, cap)

        now = self._clock()
        task = Task(
            id=uuid.uuid4().hex,
            title=title,
            created_at=now,
            expires_at=now + timedelta(seconds=seconds),
            location=location_value,
            link=link_value,
        )
        self._tasks.append(task)
        logger.info("Added task %s expiring at %s", task.id, task.expires_at.isoformat())

        self._persist()
        self._notify()
        return task

    def add_until(
        self,
        title: str,
        expires_at: datetime,
        location: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Optional[Task]:
        """Same as add(), with an absolute expiry instead of a duration."""
        if expires_at.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware")
        duration = (expires_at - self._clock()).total_seconds()
        return self.add(title, duration, location=location, link=link)

    def complete(self, task_id: str) -> bool:
        for i, t in enumerate(self._tasks):
            if t.id == task_id and not t.is_completed:
                break
        else:
            return False

        self._tasks[i] = replace(t, is_completed=True)
        self._completed_count += 1
        logger.info("Completed task %s", task_id)

        self._persist()
        self._notify()
        return True

    def purge_expired(self) -> int:
        """
        Count newly expired tasks, then drop everything expired or completed.
        Returns how many tasks expired in this pass.
        """
        expired, removed = self._drop_finished()
        if removed:
            self._notify()
        return expired

    def _drop_finished(self) -> Tuple[int, int]:
        """Purge and persist without notifying. Returns (expired, removed)."""
        now = self._clock()
        expired = [t for t in self._tasks if t.is_expired(now) and not t.is_completed]
        remaining = [t for t in self._tasks if not (t.is_expired(now) or t.is_completed)]

        self._expired_count += len(expired)
        removed = len(self._tasks) - len(remaining)
        self._tasks = remaining

        if removed:
            if expired:
                logger.info("%d task(s) expired", len(expired))
            self._persist()
        return len(expired), removed

    def purge_completed(self) -> int:
        remaining = [t for t in self._tasks if not t.is_completed]
        removed = len(self._tasks) - len(remaining)
        if removed:
            self._tasks = remaining
            self._persist()
            self._notify()
        return removed

    def reset_statistics(self) -> None:
        self._completed_count = 0
        self._expired_count = 0
        logger.info("Statistics reset")

        self._persist()
        self._notify()

    def tick(self) -> None:
        """Periodic housekeeping: purge, then notify exactly once so countdowns refresh."""
        self._drop_finished()
        self._notify()
