"""Activity tracker classifying idle samples into fresh / work / idle."""
from __future__ import annotations

from typing import Dict, List

from session import ActivityState, Intent, Session, SessionCorrupted


class ActivityTracker:
    def __init__(self, config: Dict[str, object] | None = None):
        activity_cfg = (config or {}).get("activity", {}) or {}
        self.idle_threshold = int(activity_cfg.get("idle_threshold_seconds", 120))
        self.reset_threshold = int(activity_cfg.get("reset_threshold_seconds", 300))
        self.tick_interval = int(activity_cfg.get("tick_interval_seconds", 1))

    def step(self, session: Session, idle_sample: float, elapsed: float) -> List[Intent]:
        """Advance ``session`` by one tick and return the side effects it needs.

        ``idle_sample`` is seconds since the last input event, ``elapsed`` the
        wall-clock seconds since the previous tick. Both are expected to be
        non-negative; ``elapsed`` may be far larger than the tick interval
        after the machine slept.
        """
        idle_sample = max(0, int(idle_sample))
        elapsed = max(0, int(elapsed))
        previous_state = session.state
        previous_minute = session.work_seconds // 60
        intents: List[Intent] = []

        # A gap much larger than the idle sample means this process was
        # suspended, not that the user walked away. The stall still counts.
        reset_idle = idle_sample
        if elapsed - idle_sample > 3 * self.tick_interval:
            reset_idle = elapsed

        if reset_idle >= self.reset_threshold:
            if session.state != ActivityState.FRESH:
                print(f"[tracker] {session.state.name} -> FRESH after {reset_idle}s without activity")
                intents.extend(session.reset())
            else:
                session.work_seconds = 0
                session.idle_seconds = 0
        elif idle_sample >= self.idle_threshold:
            if session.state == ActivityState.WORKING:
                print(f"[tracker] WORKING -> IDLE after {idle_sample}s of inactivity")
                intents.extend(session.clear_escalation())
                session.state = ActivityState.IDLE
                session.idle_seconds = idle_sample
            elif session.state == ActivityState.IDLE:
                session.idle_seconds = idle_sample
        else:
            if session.state == ActivityState.FRESH:
                print("[tracker] FRESH -> WORKING, new session")
                intents.extend(session.clear_escalation())
                session.state = ActivityState.WORKING
                session.work_seconds = 0
                session.idle_seconds = 0
            elif session.state == ActivityState.IDLE:
                print(f"[tracker] IDLE -> WORKING, resuming at {session.work_seconds}s")
                intents.extend(session.clear_escalation())
                session.state = ActivityState.WORKING
                session.idle_seconds = 0
            else:
                session.work_seconds += elapsed

        if session.state != previous_state:
            intents.append(Intent(Intent.PERSIST))
        elif session.state == ActivityState.WORKING and session.work_seconds // 60 != previous_minute:
            intents.append(Intent(Intent.PERSIST))
        return intents


def check_invariants(session: Session) -> None:
    if not isinstance(session.state, ActivityState):
        raise SessionCorrupted(f"unknown activity state {session.state!r}")
    if session.work_seconds < 0 or session.idle_seconds < 0:
        raise SessionCorrupted(
            f"negative counters work={session.work_seconds} idle={session.idle_seconds}"
        )
