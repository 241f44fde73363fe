"""
Stability Window Tests
======================

Covers mode selection, tie-break, eviction and change-only emission.

Usage:
    pytest test_stability_window.py
"""

import pytest

from sonora_core.analytics import StabilityWindow
from sonora_core.schemas import ClassificationEvent


def ev(label, confidence=0.5):
    return ClassificationEvent(label=label, confidence=confidence)


def test_length_never_exceeds_capacity():
    window = StabilityWindow(capacity=3)
    for i in range(20):
        window.push(ev(f"label_{i % 4}", 0.5))
        assert len(window) <= 3
    assert len(window) == 3


def test_tie_prefers_most_recent_occurrence():
    """[dog, dog, cat, dog, cat, cat] → dog:3 cat:3, cat was seen last."""
    window = StabilityWindow(capacity=6)
    sequence = [
        ("dog", 0.61), ("dog", 0.62), ("cat", 0.71),
        ("dog", 0.63), ("cat", 0.72), ("cat", 0.73),
    ]
    for label, confidence in sequence:
        window.push(ev(label, confidence))

    stable = window.current()
    assert stable.label == "cat"
    assert stable.confidence == 0.73
    assert stable.display == "cat (73.00%)"


def test_all_distinct_labels_pick_latest_push():
    window = StabilityWindow(capacity=4)
    for label in ["a", "b", "c", "d"]:
        window.push(ev(label, 0.4))
        assert window.current().label == label


def test_majority_wins_over_recency():
    window = StabilityWindow(capacity=6)
    for label in ["dog", "dog", "dog", "cat"]:
        window.push(ev(label, 0.8))
    assert window.current().label == "dog"


def test_reports_confidence_of_latest_occurrence():
    window = StabilityWindow(capacity=6)
    window.push(ev("dog", 0.9))
    window.push(ev("dog", 0.4))
    window.push(ev("cat", 0.99))
    stable = window.current()
    assert stable.label == "dog"
    assert stable.confidence == 0.4


def test_eviction_is_fifo():
    window = StabilityWindow(capacity=3)
    for label in ["dog", "dog", "cat", "cat"]:
        window.push(ev(label, 0.5))
    # oldest dog evicted: [dog, cat, cat]
    assert window.current().label == "cat"


def test_emits_only_when_display_changes():
    emitted = []
    window = StabilityWindow(capacity=6, on_change=emitted.append)

    assert window.push(ev("dog", 0.8)) is not None
    assert window.push(ev("dog", 0.8)) is None
    assert window.push(ev("cat", 0.9)) is None  # dog still the mode
    assert window.push(ev("dog", 0.7)) is not None  # same label, new confidence

    assert [s.display for s in emitted] == ["dog (80.00%)", "dog (70.00%)"]


def test_malformed_events_are_ignored():
    emitted = []
    window = StabilityWindow(capacity=6, on_change=emitted.append)

    assert window.push(ev("", 0.5)) is None
    assert window.push(ev("dog", 1.5)) is None
    assert window.push(ev("dog", float("nan"))) is None
    assert len(window) == 0
    assert emitted == []


def test_reset_empties_and_forgets_last_emission():
    emitted = []
    window = StabilityWindow(capacity=6, on_change=emitted.append)
    window.push(ev("dog", 0.8))

    window.reset()
    assert len(window) == 0
    assert window.current() is None

    # Same display as before the reset is emitted again
    assert window.push(ev("dog", 0.8)) is not None
    assert len(emitted) == 2


def test_placeholder_and_display_format_are_configurable():
    window = StabilityWindow(
        capacity=2,
        placeholder="Listening...",
        display_format="{label}:{confidence:.1f}"
    )
    assert window.display_text == "Listening..."
    placeholder = window.placeholder_label()
    assert placeholder.is_placeholder
    assert placeholder.display == "Listening..."

    window.push(ev("bird", 0.3))
    assert window.display_text == "bird:0.3"


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity_rejected(capacity):
    with pytest.raises(ValueError):
        StabilityWindow(capacity=capacity)
