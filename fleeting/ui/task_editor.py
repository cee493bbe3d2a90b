from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from PySide6.QtCore import QDateTime
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton,
    QSpinBox, QDateTimeEdit, QRadioButton, QButtonGroup
)

from ..engine import TaskEngine
from ..links import is_valid_url_format
from ..periods import now_utc
from ..settings import SettingsStore
from ..timefmt import format_remaining

PRESET_DURATIONS = [("1h", 3600), ("6h", 6 * 3600), ("1d", 24 * 3600), ("3d", 3 * 24 * 3600)]


class TaskEditor(QDialog):
    """New-task form. Tasks can't be edited once created."""

    def __init__(self, engine: TaskEngine, settings: SettingsStore, parent=None):
        super().__init__(parent)
        self.engine = engine
        self.settings = settings
        self.setWindowTitle("New Task")
        self.setMinimumWidth(420)

        layout = QVBoxLayout(self)

        self.title = QLineEdit()
        self.title.setPlaceholderText("What is this about?")
        self.title.textChanged.connect(self._validate)
        layout.addWidget(self.title)

        row = QHBoxLayout()
        self.location = QLineEdit()
        self.location.setPlaceholderText("Location")
        row.addWidget(self.location)
        self.link = QLineEdit()
        self.link.setPlaceholderText("URL")
        self.link.textChanged.connect(self._validate)
        row.addWidget(self.link)
        self.link_status = QLabel("")
        row.addWidget(self.link_status)
        layout.addLayout(row)

        # --- Fades in: duration or date & time ---
        mode_row = QHBoxLayout()
        mode_row.addWidget(QLabel("Fades in"))
        self.mode_relative = QRadioButton("Duration")
        self.mode_absolute = QRadioButton("Date && Time")
        self.mode_relative.setChecked(True)
        self._modes = QButtonGroup(self)
        self._modes.addButton(self.mode_relative)
        self._modes.addButton(self.mode_absolute)
        self.mode_relative.toggled.connect(self._toggle_fields)
        mode_row.addWidget(self.mode_relative)
        mode_row.addWidget(self.mode_absolute)
        mode_row.addStretch(1)
        layout.addLayout(mode_row)

        dur_row = QHBoxLayout()
        self.hours = QSpinBox()
        self.hours.setRange(0, 24 * 7)
        self.hours.setSuffix(" h")
        self.hours.valueChanged.connect(self._validate)
        dur_row.addWidget(self.hours)
        self.minutes = QSpinBox()
        self.minutes.setRange(0, 59)
        self.minutes.setSuffix(" m")
        self.minutes.valueChanged.connect(self._validate)
        dur_row.addWidget(self.minutes)
        for label, seconds in PRESET_DURATIONS:
            btn = QPushButton(label)
            btn.setEnabled(seconds <= self._max_duration())
            btn.clicked.connect(lambda _=False, s=seconds: self._apply_preset(s))
            dur_row.addWidget(btn)
        layout.addLayout(dur_row)

        self.expires_at = QDateTimeEdit()
        self.expires_at.setCalendarPopup(True)
        self.expires_at.setDisplayFormat("yyyy-MM-dd HH:mm")
        self.expires_at.dateTimeChanged.connect(self._validate)
        layout.addWidget(self.expires_at)

        self.hint = QLabel("")
        layout.addWidget(self.hint)

        btns = QHBoxLayout()
        self.btn_cancel = QPushButton("Cancel")
        self.btn_cancel.clicked.connect(self.reject)
        btns.addWidget(self.btn_cancel)

        self.btn_save = QPushButton("Save")
        self.btn_save.clicked.connect(self.save)
        btns.addWidget(self.btn_save)
        layout.addLayout(btns)

        self._reset_form()

    def _max_duration(self) -> float:
        return self.settings.current().max_allowed_duration

    def _reset_form(self) -> None:
        default = int(self.settings.current().default_duration)
        self.hours.setValue(default // 3600)
        self.minutes.setValue((default % 3600) // 60)
        now = QDateTime.currentDateTime()
        self.expires_at.setMinimumDateTime(now)
        self.expires_at.setMaximumDateTime(now.addSecs(int(self._max_duration())))
        self.expires_at.setDateTime(now.addSecs(3600))
        self._toggle_fields()

    def _apply_preset(self, seconds: int) -> None:
        capped = int(min(seconds, self._max_duration()))
        self.hours.setValue(capped // 3600)
        self.minutes.setValue((capped % 3600) // 60)

    def _toggle_fields(self) -> None:
        relative = self.mode_relative.isChecked()
        self.hours.setEnabled(relative)
        self.minutes.setEnabled(relative)
        self.expires_at.setEnabled(not relative)
        self._validate()

    def _absolute_expiry(self) -> datetime:
        secs = self.expires_at.dateTime().toSecsSinceEpoch()
        return datetime.fromtimestamp(secs, tz=timezone.utc)

    def _duration(self) -> float:
        if self.mode_relative.isChecked():
            return float(self.hours.value() * 3600 + self.minutes.value() * 60)
        return max(0.0, (self._absolute_expiry() - now_utc()).total_seconds())

    def _validate(self) -> None:
        link = self.link.text()
        if link.strip():
            self.link_status.setText("✓" if is_valid_url_format(link) else "!")
        else:
            self.link_status.setText("")

        duration = self._duration()
        too_long = duration > self._max_duration()
        if too_long:
            self.hint.setText(f"Max: {format_remaining(self._max_duration())}")
        elif duration > 0:
            self.hint.setText(f"Duration: {format_remaining(duration)}")
        else:
            self.hint.setText("")

        self.btn_save.setEnabled(bool(self.title.text().strip()) and 0 < duration and not too_long)

    def save(self) -> None:
        location: Optional[str] = self.location.text()
        link: Optional[str] = self.link.text()
        if self.mode_relative.isChecked():
            task = self.engine.add(self.title.text(), self._duration(), location=location, link=link)
        else:
            task = self.engine.add_until(self.title.text(), self._absolute_expiry(), location=location, link=link)

        if task is None:
            self.hint.setText("Check the title, duration and URL.")
            return
        self.accept()
