import pytest

from main import Runner


CONFIG = {
    "activity": {"idle_threshold_seconds": 120, "reset_threshold_seconds": 300, "tick_interval_seconds": 1},
    "escalation": {
        "work_threshold_minutes": 25,
        "banner_grace_seconds": 60,
        "repeat_interval_seconds": 120,
        "pregenerate_lead_seconds": 120,
    },
}


class FakeClock:
    def __init__(self, start=1_000_000, idle=0.0):
        self.t = start
        self.idle = idle

    def now(self):
        return self.t

    def seconds_since_last_input(self):
        return self.idle


class FakeAlerts:
    def __init__(self):
        self.raised = []
        self.dismissed = []
        self.callbacks = {}
        self.fail = False
        self._next = 0

    def _raise(self, kind, message, on_acknowledge):
        if self.fail:
            raise RuntimeError("display unavailable")
        self._next += 1
        self.raised.append((kind, message, self._next))
        self.callbacks[self._next] = on_acknowledge
        return self._next

    def raise_banner(self, message, on_acknowledge):
        return self._raise("banner", message, on_acknowledge)

    def raise_overlay(self, message, on_acknowledge):
        return self._raise("overlay", message, on_acknowledge)

    def dismiss(self, handle):
        self.dismissed.append(handle)

    def kinds(self):
        return [kind for kind, _, _ in self.raised]


class FakeGenerator:
    def __init__(self, reply=None):
        self.reply = reply
        self.calls = []
        self.callbacks = []

    def generate(self, work_minutes, reminder_index, history, callback):
        self.calls.append((work_minutes, reminder_index, list(history)))
        self.callbacks.append(callback)
        if self.reply is not None:
            callback(self.reply)


class MemoryStore:
    def __init__(self):
        self.data = {}
        self.saves = 0

    def load(self, key):
        return self.data.get(key)

    def save(self, key, snapshot):
        self.saves += 1
        self.data[key] = snapshot


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def alerts():
    return FakeAlerts()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def runner(clock, alerts, generator, store):
    return Runner(CONFIG, alerts, generator, store, clock=clock)


def advance(runner, clock, ticks, seconds=1):
    for _ in range(ticks):
        clock.t += seconds
        runner.tick()
