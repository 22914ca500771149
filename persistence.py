"""Snapshot and restore the session across restarts."""
from __future__ import annotations

import json
import os
import tempfile
from typing import Dict, Optional

from session import ActivityState, Session


DEFAULT_KEY = "pomodoro.state"


class JsonSettingsStore:
    """Key/value settings kept in a single JSON file."""

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> Dict[str, object]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            print(f"[persistence] Unreadable settings file {self.path}: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> Optional[Dict[str, object]]:
        value = self._read_all().get(key)
        return value if isinstance(value, dict) else None

    def save(self, key: str, snapshot: Dict[str, object]) -> None:
        data = self._read_all()
        data[key] = snapshot
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".settings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def snapshot(session: Session, now: int) -> Dict[str, object]:
    escalation = session.escalation
    return {
        "state": session.state.value,
        "workSeconds": int(session.work_seconds),
        "idleSeconds": int(session.idle_seconds),
        "lastUpdate": int(now),
        "ackPending": bool(session.ack_pending),
        "messageHistory": list(session.message_history),
        "escalationCount": escalation.count,
        "nextAllowedAt": escalation.next_allowed_at,
    }


def _parse(data: Dict[str, object]) -> Optional[Session]:
    try:
        state = ActivityState(data["state"])
        work_seconds = max(0, int(data.get("workSeconds", 0) or 0))
        idle_seconds = max(0, int(data.get("idleSeconds", 0) or 0))
        last_update = int(data["lastUpdate"])
        history = [str(m) for m in (data.get("messageHistory") or [])]
        next_allowed_at = data.get("nextAllowedAt")
        next_allowed_at = int(next_allowed_at) if next_allowed_at is not None else None
        count = max(0, int(data.get("escalationCount", 0) or 0))
    except (KeyError, TypeError, ValueError) as exc:
        print(f"[persistence] Ignoring malformed snapshot: {exc}")
        return None

    session = Session(now=last_update, history=history)
    session.state = state
    session.work_seconds = work_seconds
    session.idle_seconds = idle_seconds
    session.ack_pending = bool(data.get("ackPending", False))
    session.escalation.count = count
    session.escalation.next_allowed_at = next_allowed_at
    return session


def restore(data: Optional[Dict[str, object]], now: int, config: Dict[str, object] | None = None) -> Session:
    """Rebuild a session from ``data`` and reconcile the time spent offline."""
    activity_cfg = (config or {}).get("activity", {}) or {}
    idle_threshold = int(activity_cfg.get("idle_threshold_seconds", 120))
    reset_threshold = int(activity_cfg.get("reset_threshold_seconds", 300))

    session = _parse(data) if isinstance(data, dict) else None
    if session is None:
        return Session(now=now)

    dt = max(0, now - session.last_update)
    session.last_update = now
    if dt > reset_threshold:
        print(f"[persistence] {dt}s since last update, starting fresh")
        return Session(now=now)

    if session.state == ActivityState.WORKING and dt < idle_threshold:
        session.work_seconds += dt
    elif session.state == ActivityState.IDLE:
        session.idle_seconds += dt
        if session.idle_seconds >= reset_threshold:
            print(f"[persistence] Idle for {session.idle_seconds}s across restart, starting fresh")
            session.reset()
    print(f"[persistence] Restored {session.state.name} work={session.work_seconds}s idle={session.idle_seconds}s")
    return session


def load_session(store, now: int, config: Dict[str, object] | None = None, key: str = DEFAULT_KEY) -> Session:
    try:
        data = store.load(key)
    except Exception as exc:
        print(f"[persistence] Failed to load state: {exc}")
        data = None
    return restore(data, now, config)


def save_session(store, session: Session, now: int, key: str = DEFAULT_KEY) -> bool:
    try:
        store.save(key, snapshot(session, now))
        return True
    except Exception as exc:
        print(f"[persistence] Failed to save state: {exc}")
        return False
