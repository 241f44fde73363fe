"""
Aggregation Controller Tests
============================

Covers session lifecycle, ordering barriers and event routing.

Usage:
    pytest test_controller.py
"""

import threading
import time

import pytest

from sonora_core import (
    AggregationController,
    ClassificationEvent,
    ClassificationStream,
    EngineConfig,
    SessionAccumulator,
    SessionStateError,
)


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def ev(label, confidence=0.5):
    return ClassificationEvent(label=label, confidence=confidence)


@pytest.fixture
def stream():
    return ClassificationStream()


@pytest.fixture
def labels():
    return []


@pytest.fixture
def controller(stream, labels):
    ctrl = AggregationController(
        stream,
        config=EngineConfig(poll_interval=0.01),
        on_stable_label=labels.append,
    )
    yield ctrl
    if ctrl.is_running:
        ctrl.stop()


def test_events_reach_window_and_accumulator(controller, stream, labels):
    controller.start()
    for label, confidence in [("dog", 0.9), ("dog", 0.8), ("cat", 0.7)]:
        stream.publish(ev(label, confidence))

    assert wait_until(lambda: controller.get_stats()['events_recorded'] == 3)

    summary = controller.predominant()
    assert summary.label == "dog"
    assert summary.occurrences == 2
    assert set(controller.snapshot()) == {"dog", "cat"}

    displays = [s.display for s in labels]
    assert displays[0] == "No sound detected"
    assert "dog (90.00%)" in displays


def test_stop_returns_summary_and_freezes_stats(controller, stream, labels):
    controller.start()
    stream.publish(ev("dog", 0.6))
    stream.publish(ev("dog", 0.7))
    assert wait_until(lambda: controller.get_stats()['events_recorded'] == 2)

    summary = controller.stop()
    assert summary.label == "dog"
    assert summary.score == pytest.approx(1.3)
    assert controller.last_summary == summary
    assert not controller.is_running

    # Frozen: readable, no longer mutated
    assert controller.deliver(ev("cat", 0.99)) is False
    stream.publish(ev("cat", 0.99))
    time.sleep(0.05)
    assert controller.predominant() == summary
    assert set(controller.snapshot()) == {"dog"}

    assert labels[-1].is_placeholder


def test_start_resets_previous_session(controller, stream):
    controller.start()
    for confidence in [0.7, 0.8, 0.6]:
        stream.publish(ev("dog", confidence))
    assert wait_until(lambda: controller.get_stats()['events_recorded'] == 3)
    controller.stop()

    controller.start()
    assert controller.predominant() is None
    stream.publish(ev("cat", 0.9))
    assert wait_until(lambda: controller.predominant() is not None)

    summary = controller.stop()
    assert summary.label == "cat"
    assert summary.score == pytest.approx(0.9)
    assert summary.occurrences == 1
    assert "dog" not in controller.snapshot()


def test_reset_happens_before_first_event_of_session(stream):
    accumulator = SessionAccumulator()
    accumulator.record("stale", 1.0)
    stream.publish(ev("stale", 1.0))

    controller = AggregationController(
        stream,
        accumulator=accumulator,
        config=EngineConfig(poll_interval=0.01),
    )
    controller.start()
    stream.publish(ev("fresh", 0.4))
    assert wait_until(lambda: controller.predominant() is not None)
    controller.stop()

    assert set(controller.snapshot()) == {"fresh"}


def test_events_from_closed_session_are_rejected(controller):
    first = controller.start()
    controller.stop()
    second = controller.start()
    assert second != first

    assert controller.deliver(ev("dog", 0.9), session=first) is False
    assert controller.deliver(ev("cat", 0.9), session=second) is True
    assert set(controller.snapshot()) == {"cat"}


def test_start_twice_raises(controller):
    controller.start()
    with pytest.raises(SessionStateError):
        controller.start()


def test_stop_without_session_is_harmless(controller):
    assert controller.stop() is None
    assert controller.last_summary is None


def test_stop_with_no_events_returns_none(controller):
    controller.start()
    assert controller.stop() is None


def test_malformed_events_are_dropped(controller, stream):
    controller.start()
    stream.publish(ev("", 0.5))
    stream.publish(ev("dog", 1.7))
    stream.publish(ev("dog", 0.5))
    assert wait_until(lambda: controller.get_stats()['events_delivered'] == 3)

    stats = controller.get_stats()
    assert stats['events_recorded'] == 1
    assert stats['events_rejected'] == 2
    assert controller.predominant().score == pytest.approx(0.5)


def test_end_of_stream_is_observable(controller, stream):
    controller.start()
    stream.publish(ev("dog", 0.5))
    stream.close()

    assert controller.wait(timeout=2.0)
    assert controller.stream_ended
    assert controller.get_stats()['events_recorded'] == 1
    assert controller.stop().label == "dog"


def test_failing_callback_does_not_stop_consumer(stream):
    def explode(_):
        raise RuntimeError("display is gone")

    controller = AggregationController(
        stream,
        config=EngineConfig(poll_interval=0.01),
        on_stable_label=explode,
    )
    controller.start()
    stream.publish(ev("dog", 0.5))
    stream.publish(ev("cat", 0.5))
    assert wait_until(lambda: controller.get_stats()['events_recorded'] == 2)
    controller.stop()


def test_on_predominant_receives_running_summary(stream):
    seen = []
    controller = AggregationController(
        stream,
        config=EngineConfig(poll_interval=0.01),
        on_predominant=seen.append,
    )
    controller.start()
    stream.publish(ev("cat", 0.99))
    for confidence in [0.9, 0.8, 0.7]:
        stream.publish(ev("dog", confidence))
    assert wait_until(lambda: len(seen) == 4)
    controller.stop()

    assert seen[0].label == "cat"
    assert seen[-1].label == "dog"
    assert seen[-1].score == pytest.approx(2.4)


def test_stable_label_changes_are_counted(controller, stream):
    controller.start()
    for label in ["dog", "dog", "cat", "cat", "cat"]:
        stream.publish(ev(label, 0.5))
    assert wait_until(lambda: controller.get_stats()['events_recorded'] == 5)

    # dog → cat (cat becomes the latest-tied label on its second push)
    assert controller.get_stats()['stable_label_changes'] == 2


def test_idle_controller_refuses_events(controller, stream):
    assert stream.publish(ev("dog", 0.5)) is False
    assert stream.qsize() == 0

    controller.start()
    assert stream.publish(ev("dog", 0.5))


def test_stopped_session_does_not_buffer_events(controller, stream):
    controller.start()
    stream.publish(ev("dog", 0.5))
    assert wait_until(lambda: controller.get_stats()['events_recorded'] == 1)
    controller.stop()

    for _ in range(10000):
        assert stream.publish(ev("cat", 0.5)) is False
    assert stream.qsize() == 0
    assert not stream.accepting


def test_callback_may_stop_the_session(stream):
    calls = []

    def stop_on_first_label(stable):
        calls.append(stable)
        if len(calls) == 1:
            controller.stop()

    controller = AggregationController(
        stream,
        config=EngineConfig(poll_interval=0.01),
        on_stable_label=stop_on_first_label,
    )
    starter = threading.Thread(target=controller.start, daemon=True)
    starter.start()
    starter.join(timeout=2.0)

    assert not starter.is_alive()
    assert not controller.is_running
    assert all(stable.is_placeholder for stable in calls)

    # the controller is usable again afterwards
    controller.start()
    assert controller.is_running
    controller.stop()


def test_zero_stop_timeout_does_not_wait_for_consumer(stream):
    entered = threading.Event()
    release = threading.Event()

    def block(_):
        entered.set()
        release.wait(timeout=5.0)

    controller = AggregationController(
        stream,
        config=EngineConfig(poll_interval=0.01, stop_timeout=5.0),
        on_predominant=block,
    )
    controller.start()
    stream.publish(ev("dog", 0.5))
    assert entered.wait(timeout=2.0)

    try:
        began = time.monotonic()
        summary = controller.stop(timeout=0)
        assert time.monotonic() - began < 1.0
        assert summary.label == "dog"
    finally:
        release.set()
