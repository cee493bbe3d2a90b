from __future__ import annotations
import logging
import signal
import sys

from PySide6.QtWidgets import QApplication, QSystemTrayIcon, QMenu
from PySide6.QtGui import QAction, QCursor
from PySide6.QtCore import QTimer

from .db import connect, data_dir, migrate
from .engine import TaskEngine
from .logging_setup import setup_logging
from .qt_timers import PurgeTicker, QtTimerFactory
from .repository import Repository
from .resources import tray_icon
from .scheduler import ResetScheduler
from .settings import SettingsStore
from .ui.panel import TrayPanel
from .ui.settings import SettingsDialog

logger = logging.getLogger(__name__)


def main() -> int:
    setup_logging(data_dir() / "logs")

    app = QApplication(sys.argv)
    app.setWindowIcon(tray_icon())
    app.setQuitOnLastWindowClosed(False)

    # Qt's event loop eats SIGINT unless we pump it. This makes Ctrl-C behave.
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    _sig_timer = QTimer()
    _sig_timer.start(250)
    _sig_timer.timeout.connect(lambda: None)

    conn = connect()
    migrate(conn)
    repo = Repository(conn)
    settings = SettingsStore(repo)
    engine = TaskEngine(repo, settings.current)

    scheduler = ResetScheduler(engine.reset_statistics, settings.rule, QtTimerFactory(app))
    settings.on_rule_changed(lambda rule: scheduler.arm(rule))
    scheduler.arm()

    ticker = PurgeTicker(engine, app)
    ticker.start()

    tray = QSystemTrayIcon()
    tray.setIcon(tray_icon())
    tray.setToolTip("Fleeting")

    panel = TrayPanel(engine, settings, open_settings=lambda: _open_settings(settings, scheduler, panel))

    menu = QMenu()

    act_open = QAction("Open")
    act_open.triggered.connect(lambda: _show_panel(panel))
    menu.addAction(act_open)

    act_new = QAction("New task…")
    act_new.triggered.connect(lambda: _new_task(panel))
    menu.addAction(act_new)

    menu.addSeparator()

    act_settings = QAction("Settings…")
    act_settings.triggered.connect(lambda: _open_settings(settings, scheduler, panel))
    menu.addAction(act_settings)

    menu.addSeparator()

    def quit_cleanly():
        # Ensure tray icon disappears immediately; avoids some Qt shutdown warnings.
        ticker.stop()
        scheduler.cancel()
        tray.hide()
        panel.close()
        app.quit()

    act_quit = QAction("Quit")
    act_quit.triggered.connect(quit_cleanly)
    menu.addAction(act_quit)

    tray.setContextMenu(menu)

    def _on_activated(reason: QSystemTrayIcon.ActivationReason):
        if reason != QSystemTrayIcon.ActivationReason.Trigger:
            return
        if sys.platform.startswith("win"):
            cm = tray.contextMenu()
            if cm is not None:
                cm.popup(QCursor.pos())
        else:
            _show_panel(panel)

    tray.activated.connect(_on_activated)

    tray.show()
    logger.info("Fleeting started")
    return app.exec()


def _show_panel(panel: TrayPanel) -> None:
    panel.refresh()
    panel.show()
    panel.raise_()
    panel.activateWindow()


def _new_task(panel: TrayPanel) -> None:
    _show_panel(panel)
    panel.add_task()


def _open_settings(settings: SettingsStore, scheduler: ResetScheduler, panel: TrayPanel) -> None:
    dlg = SettingsDialog(settings, scheduler, parent=panel)
    if dlg.exec():
        panel.refresh()


if __name__ == "__main__":
    sys.exit(main())
