"""Reminder escalation: none -> banner -> overlay while the user keeps working."""
from __future__ import annotations

from typing import Dict, List, Optional

from session import ActivityState, AlertMode, Intent, Session


WORK_THRESHOLD_CHOICES = (25, 35, 45)


def fallback_message(work_minutes: int) -> str:
    return f"You've been working for {int(work_minutes)} minutes"


class EscalationController:
    def __init__(self, config: Dict[str, object] | None = None):
        esc_cfg = (config or {}).get("escalation", {}) or {}
        minutes = int(esc_cfg.get("work_threshold_minutes", 25))
        if minutes not in WORK_THRESHOLD_CHOICES:
            print(f"[escalation] Unsupported work threshold {minutes}m, using 25m")
            minutes = 25
        self.work_threshold = minutes * 60
        self.banner_grace = int(esc_cfg.get("banner_grace_seconds", 60))
        self.repeat_interval = int(esc_cfg.get("repeat_interval_seconds", 120))
        self.pregenerate_lead = int(esc_cfg.get("pregenerate_lead_seconds", 120))

    def step(self, session: Session, now: int) -> List[Intent]:
        if session.state != ActivityState.WORKING:
            return []

        escalation = session.escalation
        intents: List[Intent] = []
        if escalation.mode == AlertMode.NONE:
            cooled_down = escalation.next_allowed_at is None or now >= escalation.next_allowed_at
            if session.work_seconds >= self.work_threshold and cooled_down:
                intents.append(self._raise(session, now, AlertMode.BANNER))
        elif escalation.mode == AlertMode.BANNER:
            if now - escalation.entered_at >= self.banner_grace:
                if escalation.handle is not None:
                    intents.append(Intent(Intent.DISMISS, handle=escalation.handle))
                    escalation.handle = None
                intents.append(self._raise(session, now, AlertMode.OVERLAY))

        intents.extend(self._pregenerate(session, now))
        return intents

    def acknowledge(self, session: Session, token: int, now: int) -> List[Intent]:
        """Apply a user acknowledgment for the alert raised with ``token``."""
        escalation = session.escalation
        if escalation.mode == AlertMode.NONE or token != escalation.count:
            print(f"[escalation] Ignoring stale acknowledgment for alert #{token}")
            return []

        intents: List[Intent] = []
        if escalation.handle is not None:
            intents.append(Intent(Intent.DISMISS, handle=escalation.handle))
        print(f"[escalation] {escalation.mode.name} #{token} acknowledged")
        escalation.mode = AlertMode.NONE
        escalation.entered_at = None
        escalation.handle = None
        escalation.next_allowed_at = now + self.repeat_interval
        session.ack_pending = False
        return intents

    def raise_failed(self, session: Session, intent: Intent) -> None:
        """Undo a raise the alert surface could not display.

        The conditions that triggered it still hold, so the next tick retries.
        """
        escalation = session.escalation
        if intent.token != escalation.count or escalation.mode == AlertMode.NONE:
            return
        escalation.count -= 1
        escalation.handle = None
        if session.message_history and session.message_history[-1] == intent.message:
            session.message_history.pop()
            if intent.evicted is not None:
                session.message_history.appendleft(intent.evicted)
        if intent.pending is not None:
            session.pending_message = intent.pending
        if escalation.mode == AlertMode.OVERLAY:
            escalation.mode = AlertMode.BANNER
            escalation.entered_at -= self.banner_grace
        else:
            escalation.mode = AlertMode.NONE
            escalation.entered_at = None
            session.ack_pending = False

    def accept_message(self, session: Session, epoch: int, text: str) -> None:
        session.generation_in_flight = False
        if epoch != session.epoch or session.state != ActivityState.WORKING:
            print("[escalation] Discarding generated message for an ended session")
            return
        session.pending_message = text

    def seconds_until_next_alert(self, session: Session, now: int) -> Optional[int]:
        escalation = session.escalation
        if escalation.mode == AlertMode.NONE:
            remaining = self.work_threshold - session.work_seconds
            if escalation.next_allowed_at is not None:
                remaining = max(remaining, escalation.next_allowed_at - now)
            return remaining
        if escalation.mode == AlertMode.BANNER:
            return self.banner_grace - (now - escalation.entered_at)
        return None

    def _raise(self, session: Session, now: int, mode: AlertMode) -> Intent:
        escalation = session.escalation
        escalation.count += 1
        escalation.mode = mode
        escalation.entered_at = now
        session.ack_pending = True

        pending = session.pending_message
        message = pending or fallback_message(session.work_seconds // 60)
        session.pending_message = None
        history = session.message_history
        evicted = history[0] if len(history) == history.maxlen else None
        session.remember(message)

        kind = Intent.RAISE_BANNER if mode == AlertMode.BANNER else Intent.RAISE_OVERLAY
        print(f"[escalation] Raising {mode.name} #{escalation.count} at {session.work_seconds}s of work")
        return Intent(kind, message=message, token=escalation.count, evicted=evicted, pending=pending)

    def _pregenerate(self, session: Session, now: int) -> List[Intent]:
        if session.generation_in_flight or session.pending_message is not None:
            return []
        remaining = self.seconds_until_next_alert(session, now)
        if remaining is None or remaining > self.pregenerate_lead:
            return []
        session.generation_in_flight = True
        minutes = (session.work_seconds + max(0, remaining)) // 60
        return [
            Intent(
                Intent.GENERATE,
                token=session.escalation.count,
                epoch=session.epoch,
                minutes=minutes,
            )
        ]
