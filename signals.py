"""
Clock and input-idle helpers feeding the tick loop.
"""
from __future__ import annotations

import ctypes
import ctypes.wintypes
import os
import re
import subprocess
import sys
import time


_HID_IDLE_RE = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')
_warned_unsupported = False


def _windows_idle_seconds() -> float:
    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.wintypes.UINT), ("dwTime", ctypes.wintypes.DWORD)]

    user32 = ctypes.windll.user32
    last_input_info = LASTINPUTINFO()
    last_input_info.cbSize = ctypes.sizeof(LASTINPUTINFO)
    if not user32.GetLastInputInfo(ctypes.byref(last_input_info)):
        return 0.0
    # GetTickCount wraps every ~49.7 days; keep the difference in 32 bits.
    millis = (user32.GetTickCount() - last_input_info.dwTime) & 0xFFFFFFFF
    return millis / 1000.0


def _macos_idle_seconds() -> float:
    output = subprocess.run(
        ["ioreg", "-c", "IOHIDSystem", "-d", "4"],
        capture_output=True,
        text=True,
        timeout=2,
        check=True,
    ).stdout
    match = _HID_IDLE_RE.search(output)
    if not match:
        return 0.0
    # HIDIdleTime is in nanoseconds
    return int(match.group(1)) / 1_000_000_000


def _warn_unsupported() -> None:
    global _warned_unsupported
    if not _warned_unsupported:
        print(f"[signals] Idle detection is not supported on {sys.platform}; every tick counts as active work")
        _warned_unsupported = True


def get_idle_seconds() -> float:
    """Return seconds since last keyboard/mouse input, 0 when unknown."""
    try:
        if os.name == "nt":
            idle = _windows_idle_seconds()
        elif sys.platform == "darwin":
            idle = _macos_idle_seconds()
        else:
            _warn_unsupported()
            return 0.0
    except Exception as exc:
        print(f"[signals] Idle sample failed: {exc}")
        return 0.0
    return max(0.0, idle)


class Clock:
    def now(self) -> int:
        return int(time.time())

    def seconds_since_last_input(self) -> float:
        return get_idle_seconds()
