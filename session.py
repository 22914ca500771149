"""Session aggregate shared by the tracker, the escalation controller and persistence."""
from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Deque, Iterable, List, Optional


HISTORY_SIZE = 10


class ActivityState(str, Enum):
    FRESH = "fresh"
    WORKING = "work"
    IDLE = "idle"


class AlertMode(str, Enum):
    NONE = "none"
    BANNER = "banner"
    OVERLAY = "overlay"


class SessionCorrupted(RuntimeError):
    """Raised when the session no longer satisfies its own invariants."""


class Intent:
    """A side effect requested by a transition, executed by the host loop."""

    RAISE_BANNER = "raise_banner"
    RAISE_OVERLAY = "raise_overlay"
    DISMISS = "dismiss"
    GENERATE = "generate"
    PERSIST = "persist"

    def __init__(
        self,
        kind: str,
        message: str = "",
        handle=None,
        token: int = 0,
        epoch: int = 0,
        minutes: int = 0,
        evicted: Optional[str] = None,
        pending: Optional[str] = None,
    ):
        self.kind = kind
        self.message = message
        self.handle = handle
        self.token = token
        self.epoch = epoch
        self.minutes = minutes
        # Raise intents only: what the raise displaced from history and the pending slot.
        self.evicted = evicted
        self.pending = pending

    def __repr__(self) -> str:
        return f"Intent({self.kind!r}, token={self.token})"


class Escalation:
    def __init__(self):
        self.mode = AlertMode.NONE
        self.entered_at: Optional[int] = None
        self.next_allowed_at: Optional[int] = None
        self.count = 0
        # Runtime only: the handle returned by the alert surface for the live alert.
        self.handle = None


class Session:
    def __init__(self, now: int = 0, history: Iterable[str] = ()):
        self.state = ActivityState.FRESH
        self.work_seconds = 0
        self.idle_seconds = 0
        self.last_update = now
        self.ack_pending = False
        self.message_history: Deque[str] = deque(history, maxlen=HISTORY_SIZE)
        self.escalation = Escalation()

        # Transient, never persisted.
        self.pending_message: Optional[str] = None
        self.generation_in_flight = False
        self.epoch = 0

    def clear_escalation(self) -> List[Intent]:
        """Drop back to no alert without a cooldown.

        Bumps the epoch so any message generated for the old run is discarded
        when it lands. Returns a dismiss intent when an alert is still on screen.
        """
        escalation = self.escalation
        intents: List[Intent] = []
        if escalation.handle is not None:
            intents.append(Intent(Intent.DISMISS, handle=escalation.handle))
        self.escalation = Escalation()
        self.ack_pending = False
        self.pending_message = None
        self.epoch += 1
        return intents

    def reset(self) -> List[Intent]:
        intents = self.clear_escalation()
        self.state = ActivityState.FRESH
        self.work_seconds = 0
        self.idle_seconds = 0
        self.message_history.clear()
        return intents

    def remember(self, message: str) -> None:
        self.message_history.append(message)
