"""
Classification Stream and Schema Tests
======================================

Usage:
    pytest test_classification_stream.py
"""

import json
from datetime import datetime, timezone

import pytest

from sonora_core import ClassificationEvent, ClassificationStream, StreamClosed
from sonora_core.schemas import LabelStat, PredominantSentiment


def test_stream_delivers_in_order_then_ends():
    stream = ClassificationStream()
    for label in ["a", "b", "c"]:
        assert stream.publish(ClassificationEvent(label, 0.5))
    stream.close()

    assert [e.label for e in stream] == ["a", "b", "c"]
    assert stream.drained
    with pytest.raises(StreamClosed):
        stream.get(timeout=0.01)


def test_publish_after_close_is_refused():
    stream = ClassificationStream()
    stream.close()
    stream.close()
    assert stream.closed
    assert stream.publish(ClassificationEvent("a", 0.5)) is False


def test_get_times_out_with_none():
    stream = ClassificationStream()
    assert stream.get(timeout=0.01) is None


def test_paused_stream_refuses_events():
    stream = ClassificationStream()
    stream.publish(ClassificationEvent("a", 0.5))
    stream.pause()
    assert not stream.accepting

    for _ in range(100):
        assert stream.publish(ClassificationEvent("b", 0.5)) is False
    assert stream.qsize() == 1

    stream.resume()
    assert stream.publish(ClassificationEvent("c", 0.5))
    stream.close()
    assert [e.label for e in stream] == ["a", "c"]


def test_discard_pending_keeps_end_of_stream():
    stream = ClassificationStream()
    stream.publish(ClassificationEvent("a", 0.5))
    stream.publish(ClassificationEvent("b", 0.5))
    stream.close()

    assert stream.discard_pending() == 2
    with pytest.raises(StreamClosed):
        stream.get(timeout=0.01)


def test_event_codec():
    ts = datetime(2025, 10, 24, 15, 30, 45, tzinfo=timezone.utc)
    event = ClassificationEvent(label="dog", confidence=0.87, timestamp=ts)

    payload = json.loads(json.dumps(event.to_dict()))
    assert payload == {
        'label': 'dog',
        'confidence': 0.87,
        'timestamp': '2025-10-24T15:30:45+00:00',
    }
    assert ClassificationEvent.from_dict(payload) == event


def test_event_from_dict_defaults_timestamp_and_coerces():
    event = ClassificationEvent.from_dict({'label': 'cat', 'confidence': '0.5'})
    assert event.confidence == 0.5
    assert event.timestamp.tzinfo is not None


@pytest.mark.parametrize("data", [
    {'confidence': 0.5},
    {'label': 'dog'},
    {'label': 'dog', 'confidence': 'high'},
    {'label': 'dog', 'confidence': 0.5, 'timestamp': 'yesterday'},
    {'label': None, 'confidence': 0.9},
    {'label': 5, 'confidence': 0.9},
    {'label': [], 'confidence': 0.9},
    {'label': 'dog', 'confidence': True},
    {'label': 'dog', 'confidence': [0.5]},
])
def test_event_from_dict_rejects_bad_payloads(data):
    with pytest.raises(ValueError):
        ClassificationEvent.from_dict(data)


def test_out_of_range_event_is_representable_but_invalid():
    assert not ClassificationEvent("dog", 1.2).is_valid
    assert not ClassificationEvent("", 0.5).is_valid
    assert ClassificationEvent("dog", 0.0).is_valid


def test_predominant_from_stat():
    ts = datetime(2025, 1, 1, tzinfo=timezone.utc)
    stat = LabelStat()
    stat.add(0.6, ts, 1)
    stat.add(0.8, ts, 2)

    summary = PredominantSentiment.from_stat("dog", stat)
    assert summary.score == pytest.approx(1.4)
    assert summary.average_confidence == pytest.approx(0.7)
    assert summary.occurrences == 2
    assert summary.to_dict()['last_updated'] == ts.isoformat()
