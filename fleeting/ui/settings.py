from __future__ import annotations
from datetime import time
from typing import Dict, Optional

from PySide6.QtCore import QTime
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QLabel, QCheckBox, QHBoxLayout, QPushButton, QSpinBox, QTimeEdit, QComboBox
)

from ..models import ResetFrequency, MIN_ALLOWED_DAYS, MAX_ALLOWED_DAYS, MIN_DEFAULT_HOURS, MAX_DEFAULT_HOURS
from ..periods import WEEKDAY_LABELS, available_zone_names, local_zone_name, to_local, zone_label
from ..scheduler import ResetScheduler
from ..settings import SettingsStore


class SettingsDialog(QDialog):
    def __init__(self, settings: SettingsStore, scheduler: Optional[ResetScheduler] = None, parent=None):
        super().__init__(parent)
        self.settings = settings
        self.scheduler = scheduler
        self.setWindowTitle("Settings")
        self.setMinimumWidth(380)

        current = settings.current()
        rule = current.rule

        layout = QVBoxLayout(self)

        layout.addWidget(QLabel("Maximum task duration (days)"))
        self.max_days = QSpinBox()
        self.max_days.setRange(MIN_ALLOWED_DAYS, MAX_ALLOWED_DAYS)
        self.max_days.setValue(current.max_allowed_days)
        layout.addWidget(self.max_days)

        layout.addWidget(QLabel("Default task duration (hours)"))
        self.default_hours = QSpinBox()
        self.default_hours.setRange(MIN_DEFAULT_HOURS, MAX_DEFAULT_HOURS)
        self.default_hours.setValue(current.default_duration_hours)
        layout.addWidget(self.default_hours)

        layout.addWidget(QLabel("Reset statistics"))
        self.frequency = QComboBox()
        for f in ResetFrequency:
            self.frequency.addItem(f.display_name, f.value)
        self.frequency.setCurrentIndex(self.frequency.findData(rule.frequency.value))
        self.frequency.currentIndexChanged.connect(self._toggle_fields)
        layout.addWidget(self.frequency)

        wd_row = QHBoxLayout()
        self.weekday_checks: Dict[int, QCheckBox] = {}
        for day, label in WEEKDAY_LABELS.items():
            cb = QCheckBox(label)
            cb.setChecked(day in rule.weekdays)
            cb.toggled.connect(lambda checked, d=day: self._weekday_toggled(d, checked))
            self.weekday_checks[day] = cb
            wd_row.addWidget(cb)
        layout.addLayout(wd_row)

        layout.addWidget(QLabel("Reset time"))
        self.reset_time = QTimeEdit()
        self.reset_time.setDisplayFormat("HH:mm")
        self.reset_time.setTime(QTime(rule.time_of_day.hour, rule.time_of_day.minute))
        layout.addWidget(self.reset_time)

        layout.addWidget(QLabel("Time zone"))
        self.time_zone = QComboBox()
        local = local_zone_name()
        self.time_zone.addItem(f"Local: {zone_label(local)}", local)
        for name in available_zone_names():
            if name != local:
                self.time_zone.addItem(zone_label(name), name)
        idx = self.time_zone.findData(rule.time_zone)
        self.time_zone.setCurrentIndex(idx if idx >= 0 else 0)
        layout.addWidget(self.time_zone)

        self.next_reset = QLabel("")
        layout.addWidget(self.next_reset)
        self._show_next_reset()

        btns = QHBoxLayout()
        save = QPushButton("Save")
        save.clicked.connect(self.save)
        btns.addWidget(save)

        cancel = QPushButton("Cancel")
        cancel.clicked.connect(self.reject)
        btns.addWidget(cancel)

        layout.addLayout(btns)
        self._toggle_fields()

    def _selected_days(self):
        return {d for d, cb in self.weekday_checks.items() if cb.isChecked()}

    def _weekday_toggled(self, day: int, checked: bool) -> None:
        # keep at least one day selected
        if not checked and not self._selected_days():
            cb = self.weekday_checks[day]
            cb.blockSignals(True)
            cb.setChecked(True)
            cb.blockSignals(False)

    def _toggle_fields(self) -> None:
        specific = self.frequency.currentData() == ResetFrequency.SPECIFIC_DAYS.value
        for cb in self.weekday_checks.values():
            cb.setEnabled(specific)

    def _show_next_reset(self) -> None:
        at = self.scheduler.next_fire_at if self.scheduler is not None else None
        if at is None:
            self.next_reset.setText("No reset scheduled")
            return
        local = to_local(at, self.settings.rule().time_zone)
        self.next_reset.setText(f"Next reset: {local.strftime('%a %Y-%m-%d %H:%M %Z')}")

    def save(self) -> None:
        self.settings.set_max_allowed_days(int(self.max_days.value()))
        self.settings.set_default_duration_hours(int(self.default_hours.value()))

        self.settings.set_selected_weekdays(self._selected_days())
        self.settings.set_reset_frequency(ResetFrequency(self.frequency.currentData()))

        t = self.reset_time.time()
        self.settings.set_reset_time(time(t.hour(), t.minute()))
        self.settings.set_time_zone(str(self.time_zone.currentData()))

        self.accept()
