from __future__ import annotations
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Qt, Signal

from .engine import TaskEngine

TICK_INTERVAL_MS = 1_000


class QtTimerHandle:
    def __init__(self, timer: QTimer):
        self._timer: Optional[QTimer] = timer

    def cancel(self) -> None:
        if self._timer is None:
            return
        self._timer.stop()
        self._release()

    def _release(self) -> None:
        if self._timer is not None:
            self._timer.deleteLater()
            self._timer = None


class QtTimerFactory:
    """Single-shot QTimers on the GUI thread, for ResetScheduler."""

    def __init__(self, parent: Optional[QObject] = None):
        self.parent = parent

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> QtTimerHandle:
        timer = QTimer(self.parent)
        timer.setSingleShot(True)
        # CoarseTimer allows 5% slack, hours on a multi-day wait
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        timer.setInterval(max(0, int(delay_seconds * 1000)))
        handle = QtTimerHandle(timer)
        timer.timeout.connect(callback)
        timer.timeout.connect(handle._release)
        timer.start()
        return handle


class PurgeTicker(QObject):
    ticked = Signal()

    def __init__(self, engine: TaskEngine, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.engine = engine
        self.timer = QTimer(self)
        self.timer.setInterval(TICK_INTERVAL_MS)
        self.timer.timeout.connect(self.tick)

    def start(self) -> None:
        self.engine.purge_expired()
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def tick(self) -> None:
        self.engine.tick()
        self.ticked.emit()
