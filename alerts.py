"""Banner and full-screen overlay reminders."""
from __future__ import annotations

import threading
from typing import Callable, Dict, List

from PySide6 import QtCore, QtGui, QtWidgets

from signals import get_idle_seconds


BANNER = "banner"
OVERLAY = "overlay"


class _ClickableWidget(QtWidgets.QWidget):
    clicked = QtCore.Signal()

    def mousePressEvent(self, event):
        self.clicked.emit()
        super().mousePressEvent(event)


def _create_banner_widget(text: str, config: dict) -> _ClickableWidget:
    widget = _ClickableWidget()
    widget.setWindowFlags(
        QtCore.Qt.Tool
        | QtCore.Qt.FramelessWindowHint
        | QtCore.Qt.WindowStaysOnTopHint
        | QtCore.Qt.NoDropShadowWindowHint
    )
    widget.setAttribute(QtCore.Qt.WA_ShowWithoutActivating)
    widget.setStyleSheet("background-color: #111827; color: #E5E7EB; border-radius: 10px;")

    layout = QtWidgets.QVBoxLayout(widget)
    layout.setContentsMargins(14, 10, 14, 10)
    layout.setSpacing(4)

    title = QtWidgets.QLabel((config.get("alerts") or {}).get("banner_title", "Pomodoro"))
    title.setStyleSheet("font-weight: bold;")
    layout.addWidget(title)

    label = QtWidgets.QLabel(text)
    label.setWordWrap(True)
    layout.addWidget(label)

    widget.adjustSize()
    # position bottom-right
    screen = QtGui.QGuiApplication.primaryScreen()
    geometry = screen.availableGeometry()
    x = geometry.right() - widget.sizeHint().width() - 20
    y = geometry.bottom() - widget.sizeHint().height() - 40
    widget.move(x, y)
    return widget


def _is_dark() -> bool:
    palette = QtGui.QGuiApplication.palette()
    return palette.color(QtGui.QPalette.Window).lightness() < 128


def _create_overlay_widget(text: str, screen: QtGui.QScreen) -> _ClickableWidget:
    widget = _ClickableWidget()
    widget.setWindowFlags(
        QtCore.Qt.Tool
        | QtCore.Qt.FramelessWindowHint
        | QtCore.Qt.WindowStaysOnTopHint
    )
    widget.setAttribute(QtCore.Qt.WA_TranslucentBackground)
    widget.setGeometry(screen.geometry())

    panel_bg, text_color = ("rgba(38, 38, 38, 242)", "#FFFFFF") if _is_dark() else ("rgba(255, 255, 255, 242)", "#000000")

    outer = QtWidgets.QVBoxLayout(widget)
    outer.setContentsMargins(0, 0, 0, 0)
    shade = QtWidgets.QFrame()
    shade.setStyleSheet("background-color: rgba(0, 0, 0, 102);")
    outer.addWidget(shade)

    shade_layout = QtWidgets.QVBoxLayout(shade)
    shade_layout.setAlignment(QtCore.Qt.AlignCenter)
    panel = QtWidgets.QLabel(text)
    panel.setWordWrap(True)
    panel.setAlignment(QtCore.Qt.AlignCenter)
    panel.setFixedSize(int(screen.geometry().width() * 0.6), int(screen.geometry().height() * 0.3))
    panel.setStyleSheet(
        f"background-color: {panel_bg}; color: {text_color}; font-size: 36px; border-radius: 10px;"
    )
    shade_layout.addWidget(panel)
    return widget


class AlertSurface(QtCore.QObject):
    """Shows reminders on the GUI thread; safe to call from any thread.

    Handles are plain integers handed out immediately. ``on_acknowledge``
    fires at most once per handle and never for a programmatic ``dismiss``.
    """

    _show_requested = QtCore.Signal(int, str, str)
    _dismiss_requested = QtCore.Signal(int)

    def __init__(self, config: dict | None = None, idle_source: Callable[[], float] = get_idle_seconds):
        super().__init__()
        self.config = config or {}
        self.idle_source = idle_source
        alerts_cfg = self.config.get("alerts") or {}
        self.overlay_idle_dismiss = float(alerts_cfg.get("overlay_idle_dismiss_seconds", 60))

        self._lock = threading.Lock()
        self._next_handle = 0
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._widgets: Dict[int, List[QtWidgets.QWidget]] = {}
        self._timers: Dict[int, QtCore.QTimer] = {}

        self._show_requested.connect(self._show, QtCore.Qt.QueuedConnection)
        self._dismiss_requested.connect(self._dismiss, QtCore.Qt.QueuedConnection)

    def raise_banner(self, message: str, on_acknowledge: Callable[[], None]) -> int:
        return self._request(BANNER, message, on_acknowledge)

    def raise_overlay(self, message: str, on_acknowledge: Callable[[], None]) -> int:
        return self._request(OVERLAY, message, on_acknowledge)

    def dismiss(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)
        self._dismiss_requested.emit(handle)

    def _request(self, kind: str, message: str, on_acknowledge: Callable[[], None]) -> int:
        if QtWidgets.QApplication.instance() is None:
            raise RuntimeError("no Qt application is running")
        with self._lock:
            self._next_handle += 1
            handle = self._next_handle
            self._callbacks[handle] = on_acknowledge
        self._show_requested.emit(handle, kind, message)
        return handle

    @QtCore.Slot(int, str, str)
    def _show(self, handle: int, kind: str, message: str) -> None:
        with self._lock:
            if handle not in self._callbacks:
                # dismissed before it ever reached the screen
                return
        if kind == BANNER:
            widgets = [_create_banner_widget(message, self.config)]
        else:
            widgets = [_create_overlay_widget(message, s) for s in QtGui.QGuiApplication.screens()]
            timer = QtCore.QTimer(self)
            timer.setInterval(5000)
            timer.timeout.connect(lambda: self._check_idle(handle))
            timer.start()
            self._timers[handle] = timer

        for widget in widgets:
            widget.clicked.connect(lambda: self._acknowledge(handle))
            widget.show()
        self._widgets[handle] = widgets

    def _check_idle(self, handle: int) -> None:
        try:
            idle = self.idle_source()
        except Exception as exc:
            print(f"[alerts] Idle check failed: {exc}")
            return
        if idle >= self.overlay_idle_dismiss:
            self._acknowledge(handle)

    def _acknowledge(self, handle: int) -> None:
        with self._lock:
            callback = self._callbacks.pop(handle, None)
        self._dismiss(handle)
        if callback is not None:
            callback()

    @QtCore.Slot(int)
    def _dismiss(self, handle: int) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()
        for widget in self._widgets.pop(handle, []):
            widget.close()
            widget.deleteLater()
