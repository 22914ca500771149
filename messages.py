"""Reminder text generation through an OpenAI-style chat endpoint."""
from __future__ import annotations

import json
import os
import threading
from typing import Callable, Dict, Sequence

import requests

from escalation import fallback_message


MAX_MESSAGE_LENGTH = 120

SYSTEM_PROMPT = (
    "You write short break reminders for someone who has been working at a computer."
    " Respond only with compact JSON of the form {\"message\": \"...\"}."
    " Keep it under 15 words, warm, and never guilt-tripping."
    " Do not repeat or closely paraphrase any of the previous reminders you are given."
)


def build_payload(work_minutes: int, reminder_index: int, history: Sequence[str]) -> Dict[str, object]:
    return {
        "work_minutes": int(work_minutes),
        "reminders_shown": int(reminder_index),
        "previous_reminders": list(history),
    }


def call_llm(payload: Dict[str, object], config: Dict[str, object]) -> str:
    llm_cfg = config.get("llm", {}) or {}
    endpoint = llm_cfg.get("endpoint")
    if not llm_cfg.get("enabled", False) or not endpoint:
        return ""
    headers = {
        "Authorization": f"Bearer {os.getenv('REMINDER_API_KEY', '')}",
        "Content-Type": "application/json",
    }
    body = {
        "model": llm_cfg.get("model") or "placeholder-model",
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(payload)},
        ],
    }
    try:
        response = requests.post(endpoint, headers=headers, json=body, timeout=float(llm_cfg.get("timeout_seconds", 5)))
        response.raise_for_status()
        data = response.json()
        message = None
        if isinstance(data, dict):
            message = (
                data.get("choices", [{}])[0]
                .get("message", {})
                .get("content", "")
            )
        return message or ""
    except Exception as exc:
        print(f"[messages] LLM call failed: {exc}")
        return ""


def parse_reply(raw: str) -> str:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        print("[messages] Invalid JSON from model", raw)
        return ""
    if not isinstance(parsed, dict):
        return ""
    message = parsed.get("message")
    if not isinstance(message, str):
        return ""
    return message.strip()[:MAX_MESSAGE_LENGTH]


def generate_text(work_minutes: int, reminder_index: int, history: Sequence[str], config: Dict[str, object]) -> str:
    raw = call_llm(build_payload(work_minutes, reminder_index, history), config)
    message = parse_reply(raw) if raw else ""
    if not message or message in history:
        return fallback_message(work_minutes)
    return message


class MessageGenerator:
    def __init__(self, config: Dict[str, object] | None = None):
        self.config = config or {}

    def generate(
        self,
        work_minutes: int,
        reminder_index: int,
        history: Sequence[str],
        callback: Callable[[str], None],
    ) -> None:
        """Produce a reminder in the background and hand it to ``callback`` once."""
        history = list(history)

        def _run():
            try:
                text = generate_text(work_minutes, reminder_index, history, self.config)
            except Exception as exc:
                print(f"[messages] Generation failed: {exc}")
                text = fallback_message(work_minutes)
            callback(text)

        threading.Thread(target=_run, daemon=True).start()
