"""
Engine observability: JSON log lines for sessions, labels and MQTT traffic.

Each engine component (controller, accumulator, subscriber, publisher)
owns a `StructuredLogger` named ``sonora.<component>``. Records carry a
`LogEvent` name, so a session can be followed with a line filter, e.g.::

    sonora replay session.jsonl 2>&1 >/dev/null | jq 'select(.event == "stable_label.changed") | .message'

Context bound with `StructuredLogger.bind()` (session id, broker, topic)
is merged into the metadata of every record.
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
