from escalation import EscalationController, fallback_message
from session import ActivityState, AlertMode, Intent, Session


def _working(work_seconds):
    session = Session()
    session.state = ActivityState.WORKING
    session.work_seconds = work_seconds
    return session


def _raises(intents):
    return [i for i in intents if i.kind in (Intent.RAISE_BANNER, Intent.RAISE_OVERLAY)]


def test_threshold_choices():
    assert EscalationController().work_threshold == 25 * 60
    assert EscalationController({"escalation": {"work_threshold_minutes": 45}}).work_threshold == 45 * 60
    assert EscalationController({"escalation": {"work_threshold_minutes": 30}}).work_threshold == 25 * 60


def test_no_banner_before_threshold():
    controller = EscalationController()
    session = _working(1499)
    assert _raises(controller.step(session, now=100)) == []
    assert session.escalation.mode == AlertMode.NONE


def test_banner_at_threshold_uses_fallback_text():
    controller = EscalationController()
    session = _working(1500)

    raised = _raises(controller.step(session, now=100))

    assert [i.kind for i in raised] == [Intent.RAISE_BANNER]
    assert raised[0].message == fallback_message(25) == "You've been working for 25 minutes"
    assert raised[0].token == 1
    assert session.escalation.mode == AlertMode.BANNER
    assert session.escalation.entered_at == 100
    assert session.ack_pending is True
    assert list(session.message_history) == [raised[0].message]


def test_pending_message_is_used_once():
    controller = EscalationController()
    session = _working(1500)
    session.pending_message = "Your eyes would love a break."

    raised = _raises(controller.step(session, now=100))

    assert raised[0].message == "Your eyes would love a break."
    assert session.pending_message is None


def test_banner_escalates_after_grace():
    controller = EscalationController()
    session = _working(1500)
    controller.step(session, now=100)
    session.escalation.handle = 3

    assert _raises(controller.step(session, now=159)) == []
    assert session.escalation.mode == AlertMode.BANNER

    intents = controller.step(session, now=160)
    assert [i.kind for i in intents][:2] == [Intent.DISMISS, Intent.RAISE_OVERLAY]
    assert intents[0].handle == 3
    assert session.escalation.mode == AlertMode.OVERLAY
    assert session.escalation.count == 2


def test_overlay_is_terminal():
    controller = EscalationController()
    session = _working(1500)
    controller.step(session, now=100)
    controller.step(session, now=160)
    assert controller.step(session, now=10_000) == []
    assert session.escalation.mode == AlertMode.OVERLAY


def test_acknowledge_starts_cooldown():
    controller = EscalationController()
    session = _working(1500)
    controller.step(session, now=100)
    session.escalation.handle = 1

    intents = controller.acknowledge(session, token=1, now=130)

    assert [i.kind for i in intents] == [Intent.DISMISS]
    assert session.escalation.mode == AlertMode.NONE
    assert session.escalation.next_allowed_at == 250
    assert session.ack_pending is False

    session.work_seconds = 1620
    assert _raises(controller.step(session, now=249)) == []
    assert [i.kind for i in _raises(controller.step(session, now=250))] == [Intent.RAISE_BANNER]


def test_stale_acknowledgment_is_ignored():
    controller = EscalationController()
    session = _working(1500)
    controller.step(session, now=100)
    controller.step(session, now=160)

    assert controller.acknowledge(session, token=1, now=161) == []
    assert session.escalation.mode == AlertMode.OVERLAY

    controller.acknowledge(session, token=2, now=162)
    assert session.escalation.mode == AlertMode.NONE


def test_nothing_happens_outside_work():
    controller = EscalationController()
    session = _working(5000)
    session.state = ActivityState.IDLE
    assert controller.step(session, now=100) == []


def test_history_keeps_last_ten():
    controller = EscalationController()
    session = _working(1500)
    now = 0
    for i in range(12):
        session.pending_message = f"reminder {i}"
        controller.step(session, now=now)
        controller.acknowledge(session, token=session.escalation.count, now=now)
        now += 120

    assert list(session.message_history) == [f"reminder {i}" for i in range(2, 12)]


def test_failed_banner_is_retried():
    controller = EscalationController()
    session = _working(1500)
    raised = _raises(controller.step(session, now=100))

    controller.raise_failed(session, raised[0])

    assert session.escalation.mode == AlertMode.NONE
    assert session.escalation.count == 0
    assert session.ack_pending is False
    assert list(session.message_history) == []
    assert [i.kind for i in _raises(controller.step(session, now=101))] == [Intent.RAISE_BANNER]


def test_failed_overlay_is_retried_next_tick():
    controller = EscalationController()
    session = _working(1500)
    controller.step(session, now=100)
    raised = _raises(controller.step(session, now=160))

    controller.raise_failed(session, raised[0])

    assert session.escalation.mode == AlertMode.BANNER
    assert [i.kind for i in _raises(controller.step(session, now=161))] == [Intent.RAISE_OVERLAY]


def test_pregeneration_requested_once_within_lead():
    controller = EscalationController()
    session = _working(1379)
    assert [i for i in controller.step(session, now=0) if i.kind == Intent.GENERATE] == []

    session.work_seconds = 1380
    generate = [i for i in controller.step(session, now=1) if i.kind == Intent.GENERATE]
    assert len(generate) == 1
    assert generate[0].minutes == 25
    assert generate[0].epoch == session.epoch
    assert session.generation_in_flight is True

    session.work_seconds = 1381
    assert [i for i in controller.step(session, now=2) if i.kind == Intent.GENERATE] == []


def test_generated_message_for_old_session_is_discarded():
    controller = EscalationController()
    session = _working(1400)
    session.generation_in_flight = True
    stale_epoch = session.epoch
    session.clear_escalation()

    controller.accept_message(session, stale_epoch, "too late")

    assert session.pending_message is None
    assert session.generation_in_flight is False


def test_generated_message_fills_pending_slot():
    controller = EscalationController()
    session = _working(1400)
    session.generation_in_flight = True
    controller.accept_message(session, session.epoch, "Stand up and stretch.")
    assert session.pending_message == "Stand up and stretch."
    assert session.generation_in_flight is False


def test_failed_raise_restores_full_history_and_pending_text():
    controller = EscalationController()
    session = _working(1500)
    for i in range(10):
        session.remember(f"m{i}")
    session.pending_message = "fresh text"

    raised = _raises(controller.step(session, now=100))
    assert raised[0].message == "fresh text"
    assert session.message_history[0] == "m1"

    controller.raise_failed(session, raised[0])

    assert list(session.message_history) == [f"m{i}" for i in range(10)]
    assert session.pending_message == "fresh text"
    retried = _raises(controller.step(session, now=101))
    assert retried[0].message == "fresh text"
