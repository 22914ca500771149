"""Background loop for the pomodoro presence tracker."""
from __future__ import annotations

import json
import os
import queue
import signal
import sys
import threading
from typing import Dict, List

from escalation import EscalationController
from persistence import DEFAULT_KEY, JsonSettingsStore, load_session, save_session
from session import ActivityState, Intent, Session
from signals import Clock
from tracker import ActivityTracker, check_invariants


CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.json")

_ACK = "ack"
_MESSAGE = "message"


def load_config(path: str = CONFIG_PATH) -> Dict[str, object]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception as exc:
        print(f"[main] Failed to load config: {exc}")
        return {}


def format_status(session: Session) -> str:
    if session.state == ActivityState.WORKING:
        seconds = session.work_seconds
        return f"work {seconds}s" if seconds < 60 else f"work: {seconds // 60}m"
    if session.state == ActivityState.IDLE:
        seconds = session.idle_seconds
        return f"idle {seconds}s" if seconds < 60 else f"idle: {seconds // 60}m"
    return "fresh"


class Runner:
    """Owns the session and is the only code that mutates it.

    Alert acknowledgments and generated messages arrive on other threads;
    they are queued and applied at the start of the next tick.
    """

    def __init__(self, config: Dict[str, object], alerts, generator, store, clock=None):
        self.config = config
        self.alerts = alerts
        self.generator = generator
        self.store = store
        self.clock = clock or Clock()
        self.tracker = ActivityTracker(config)
        self.escalation = EscalationController(config)
        self.persistence_key = (config.get("persistence") or {}).get("key", DEFAULT_KEY)
        self.events: "queue.Queue[tuple]" = queue.Queue()
        self.session = Session(now=self.clock.now())
        self.last_status = ""
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            now = self.clock.now()
            self.session = load_session(self.store, now, self.config, key=self.persistence_key)

    def tick(self) -> List[Intent]:
        with self._lock:
            self._drain_events()

            now = self.clock.now()
            idle_sample = max(0.0, self.clock.seconds_since_last_input())
            elapsed = max(0, now - self.session.last_update)
            self.session.last_update = now

            intents = self.tracker.step(self.session, idle_sample, elapsed)
            intents.extend(self.escalation.step(self.session, now))
            self._execute(intents, now)
            check_invariants(self.session)

            status = format_status(self.session)
            if status != self.last_status:
                print(f"[main] {status}")
                self.last_status = status
            return intents

    def reset(self) -> None:
        with self._lock:
            print("[main] Timer reset")
            now = self.clock.now()
            intents = self.session.reset()
            intents.append(Intent(Intent.PERSIST))
            self._execute(intents, now)

    def test_alert(self) -> None:
        minutes = self.escalation.work_threshold // 60
        try:
            self.alerts.raise_banner(f"You've been working for {minutes} minutes", lambda: None)
        except Exception as exc:
            print(f"[main] Test alert failed: {exc}")

    def shutdown(self) -> None:
        with self._lock:
            save_session(self.store, self.session, self.clock.now(), key=self.persistence_key)

    def _drain_events(self) -> None:
        while True:
            try:
                kind, token, payload = self.events.get_nowait()
            except queue.Empty:
                return
            if kind == _ACK:
                self._execute(self.escalation.acknowledge(self.session, token, payload), self.clock.now())
            elif kind == _MESSAGE:
                self.escalation.accept_message(self.session, token, payload)

    def _execute(self, intents: List[Intent], now: int) -> None:
        for intent in intents:
            if intent.kind in (Intent.RAISE_BANNER, Intent.RAISE_OVERLAY):
                self._raise(intent)
            elif intent.kind == Intent.DISMISS:
                try:
                    self.alerts.dismiss(intent.handle)
                except Exception as exc:
                    print(f"[main] Failed to dismiss alert: {exc}")
            elif intent.kind == Intent.GENERATE:
                self._request_message(intent)
            elif intent.kind == Intent.PERSIST:
                save_session(self.store, self.session, now, key=self.persistence_key)

    def _raise(self, intent: Intent) -> None:
        token = intent.token

        def on_acknowledge():
            self.events.put((_ACK, token, self.clock.now()))

        try:
            if intent.kind == Intent.RAISE_BANNER:
                handle = self.alerts.raise_banner(intent.message, on_acknowledge)
            else:
                handle = self.alerts.raise_overlay(intent.message, on_acknowledge)
        except Exception as exc:
            print(f"[main] Failed to raise alert: {exc}")
            self.escalation.raise_failed(self.session, intent)
            return
        self.session.escalation.handle = handle

    def _request_message(self, intent: Intent) -> None:
        epoch = intent.epoch

        def on_message(text: str):
            self.events.put((_MESSAGE, epoch, text))

        try:
            self.generator.generate(intent.minutes, intent.token, list(self.session.message_history), on_message)
        except Exception as exc:
            print(f"[main] Message generation request failed: {exc}")
            self.session.generation_in_flight = False


class StatusTray:
    """Tray icon showing the current status, with the manual timer actions."""

    def __init__(self, app, runner: Runner, title: str = "Pomodoro"):
        from PySide6 import QtCore, QtWidgets

        self.runner = runner
        self.title = title
        self.tray = QtWidgets.QSystemTrayIcon(app.style().standardIcon(QtWidgets.QStyle.SP_ComputerIcon), app)
        self.tray.setToolTip(title)

        self.menu = QtWidgets.QMenu()
        self.status_action = self.menu.addAction("fresh")
        self.status_action.setEnabled(False)
        self.menu.addSeparator()
        self.actions = {}
        for text, slot in (
            ("Reset Timer", runner.reset),
            ("Test Notification", runner.test_alert),
            ("Quit", app.quit),
        ):
            action = self.menu.addAction(text)
            action.triggered.connect(lambda checked=False, slot=slot: slot())
            self.actions[text] = action
        self.tray.setContextMenu(self.menu)

        self.timer = QtCore.QTimer(self.tray)
        self.timer.timeout.connect(self.refresh)
        self.timer.start(1000)
        self.refresh()
        self.tray.show()

    def refresh(self) -> None:
        status = format_status(self.runner.session)
        self.status_action.setText(status)
        self.tray.setToolTip(f"{self.title}: {status}")


def run_loop(runner: Runner, stop: threading.Event) -> None:
    interval = float((runner.config.get("activity") or {}).get("tick_interval_seconds", 1))
    while not stop.is_set():
        runner.tick()
        stop.wait(interval)


def main():
    from PySide6 import QtCore, QtWidgets

    from alerts import AlertSurface
    from messages import MessageGenerator

    config = load_config()
    persistence_cfg = config.get("persistence") or {}
    store_path = persistence_cfg.get("path") or os.path.join(os.path.dirname(__file__), "state.json")

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    runner = Runner(config, AlertSurface(config), MessageGenerator(config), JsonSettingsStore(store_path))
    runner.start()
    tray = StatusTray(app, runner, (config.get("alerts") or {}).get("banner_title", "Pomodoro"))

    stop = threading.Event()
    # Qt must own the main thread, so ticks run beside it.
    thread = threading.Thread(target=run_loop, args=(runner, stop), daemon=True)
    thread.start()

    # Lets the interpreter run the SIGINT handler and notice a dead tick loop.
    heartbeat = QtCore.QTimer()
    heartbeat.timeout.connect(lambda: None if thread.is_alive() else app.quit())
    heartbeat.start(500)

    app.exec()
    crashed = not thread.is_alive()
    print("[main] Exiting")
    stop.set()
    thread.join(timeout=2)
    tray.tray.hide()
    runner.shutdown()
    sys.exit(1 if crashed else 0)


if __name__ == "__main__":
    main()
