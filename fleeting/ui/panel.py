from __future__ import annotations
from typing import Callable, Optional

from PySide6.QtCore import Qt, QTimer, QUrl
from PySide6.QtGui import QBrush, QColor, QDesktopServices
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QListWidget, QListWidgetItem, QMenu, QMessageBox
)

from ..engine import TaskEngine
from ..models import UrgencyLevel
from ..periods import now_utc
from ..settings import SettingsStore
from ..timefmt import format_compact, format_remaining
from .task_editor import TaskEditor

# how long a completed task stays visible before it is purged
COMPLETION_GRACE_MS = 600

URGENCY_COLORS = {
    UrgencyLevel.NORMAL: None,
    UrgencyLevel.URGENT: "#e0a000",
    UrgencyLevel.CRITICAL: "#cb1b45",
    UrgencyLevel.EXPIRED: "#888888",
}


class TrayPanel(QDialog):
    def __init__(self, engine: TaskEngine, settings: SettingsStore, open_settings: Callable[[], None], parent=None):
        super().__init__(parent)
        self.engine = engine
        self.settings = settings
        self.open_settings = open_settings
        self.setWindowTitle("Fleeting")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setMinimumWidth(420)
        self.setAttribute(Qt.WA_DeleteOnClose, False)

        self.layout = QVBoxLayout(self)
        self.header = QLabel("Tasks")
        self.layout.addWidget(self.header)

        self.list = QListWidget()
        self.list.setContextMenuPolicy(Qt.CustomContextMenu)
        self.list.customContextMenuRequested.connect(self._show_task_menu_at)
        self.list.itemDoubleClicked.connect(self._complete_item)
        self.layout.addWidget(self.list)

        manage_row = QHBoxLayout()
        self.btn_add_task = QPushButton("New task…")
        self.btn_add_task.clicked.connect(self.add_task)
        manage_row.addWidget(self.btn_add_task)

        self.btn_settings = QPushButton("Settings…")
        self.btn_settings.clicked.connect(self.open_settings)
        manage_row.addWidget(self.btn_settings)

        self.btn_reset = QPushButton("Reset stats…")
        self.btn_reset.clicked.connect(self.confirm_reset)
        manage_row.addWidget(self.btn_reset)
        self.layout.addLayout(manage_row)

        self.footer = QLabel("")
        self.footer.setStyleSheet("""
            QLabel {
                color: #888;
                font-size: 11px;
                padding-top: 6px;
            }
        """)
        self.footer.setAlignment(Qt.AlignCenter)
        self.layout.addWidget(self.footer)

        self.engine.subscribe(self._on_engine_changed)
        self.refresh()

    def selected_task_id(self) -> Optional[str]:
        item = self.list.currentItem()
        if not item:
            return None
        return str(item.data(Qt.UserRole))

    def _on_engine_changed(self) -> None:
        if self.isVisible():
            self.refresh()

    def refresh(self) -> None:
        selected_id = self.selected_task_id()
        now = now_utc()
        tasks = self.engine.sorted_by_expiry

        self.list.blockSignals(True)
        try:
            self.list.clear()
            selected_row = None

            for idx, t in enumerate(tasks):
                text = f"{format_compact(t.time_remaining(now)):>7}  {t.title}"
                extras = [x for x in (t.location, t.link) if x]
                if extras:
                    text += " [" + ", ".join(extras) + "]"

                it = QListWidgetItem(text)
                it.setData(Qt.UserRole, t.id)
                it.setToolTip(f"Expires in {format_remaining(t.time_remaining(now))}")
                color = URGENCY_COLORS[t.urgency_level(now)]
                if color:
                    it.setForeground(QBrush(QColor(color)))
                self.list.addItem(it)

                if selected_id is not None and t.id == selected_id:
                    selected_row = idx

            if selected_row is not None:
                self.list.setCurrentRow(selected_row)
        finally:
            self.list.blockSignals(False)

        self.header.setText("Nothing fading. Enjoy the quiet." if not tasks else f"{len(tasks)} task(s)")
        self.footer.setText(
            f"Done {self.engine.completed_count} · Faded {self.engine.expired_count}"
            f" · Fire {self.engine.fire_intensity:.0%}"
        )

    def _show_task_menu_at(self, pos) -> None:
        item = self.list.itemAt(pos)
        if item is None:
            return

        self.list.setCurrentItem(item)
        tid = str(item.data(Qt.UserRole))
        task = self.engine.get(tid)
        if task is None:
            return

        menu = QMenu(self)
        menu.addAction("Mark as complete").triggered.connect(lambda: self.complete(tid))
        if task.link:
            menu.addAction("Open link").triggered.connect(lambda: QDesktopServices.openUrl(QUrl(task.link)))
        menu.exec(self.list.mapToGlobal(pos))

    def _complete_item(self, item: QListWidgetItem) -> None:
        self.complete(str(item.data(Qt.UserRole)))

    def complete(self, task_id: str) -> None:
        if self.engine.complete(task_id):
            QTimer.singleShot(COMPLETION_GRACE_MS, self.engine.purge_completed)

    def add_task(self) -> None:
        dlg = TaskEditor(self.engine, self.settings, parent=self)
        if dlg.exec():
            self.refresh()

    def confirm_reset(self) -> None:
        confirm = QMessageBox.question(
            self,
            "Reset statistics",
            "Reset the completed and faded counters now?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if confirm == QMessageBox.StandardButton.Yes:
            self.engine.reset_statistics()

    def closeEvent(self, event):
        event.ignore()
        self.hide()

    def showEvent(self, event) -> None:
        super().showEvent(event)
        self.refresh()  # immediate refresh on open
