"""
Session Publisher
=================

Bounded Context: Engine output over MQTT

Publishes the engine's two outputs for remote displays and dashboards:

- stable label changes (live, not retained)
- session summaries: predominant label + full scoreboard (retained, so a
  late subscriber still sees the last finished session)

Message Flow:
    AggregationController → on_stable_label / stop() → SessionPublisher → MQTT Broker

Example:
    >>> publisher = SessionPublisher(
    ...     broker_host="localhost",
    ...     stable_label_topic="sonora/stable_label",
    ...     summary_topic="sonora/session/summary",
    ...     logger=create_logger("publisher")
    ... )
    >>> publisher.connect()
    >>> controller = AggregationController(
    ...     stream, on_stable_label=publisher.publish_stable_label
    ... )
"""

from typing import Any, Dict, Optional

from sonora_core.logging import StructuredLogger
from sonora_core.schemas import PredominantSentiment, StableLabel, utc_now

from .base import BasePublisher

SCHEMA_VERSION = "1.0"


class SessionPublisher(BasePublisher):
    """
    Publisher for stable labels and session summaries.

    Attributes:
        Same as BasePublisher, plus:
        stable_label_topic: Topic for live stable label changes
        summary_topic: Topic for session summaries (retained)
    """

    def __init__(
        self,
        broker_host: str,
        stable_label_topic: str,
        summary_topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "sonora_session_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )
        self.stable_label_topic = stable_label_topic
        self.summary_topic = summary_topic

    def format_message(
        self,
        kind: str,
        payload: Dict[str, Any],
        session_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Wrap a payload in the common message envelope."""
        return {
            'schema_version': SCHEMA_VERSION,
            'timestamp': utc_now().isoformat(),
            'kind': kind,
            'session_id': session_id,
            'data': payload,
        }

    def format_summary(
        self,
        summary: Optional[PredominantSentiment],
        snapshot: Dict[str, PredominantSentiment]
    ) -> Dict[str, Any]:
        """Summary body: predominant label plus scoreboard sorted by score."""
        scoreboard = sorted(
            snapshot.values(), key=lambda s: s.score, reverse=True
        )
        return {
            'predominant': summary.to_dict() if summary else None,
            'scoreboard': [entry.to_dict() for entry in scoreboard],
        }

    def publish_stable_label(
        self,
        stable: StableLabel,
        session_id: Optional[int] = None
    ) -> bool:
        """Publish one stable label change."""
        message = self.format_message('stable_label', stable.to_dict(), session_id)
        return self.publish(self.stable_label_topic, message)

    def publish_summary(
        self,
        summary: Optional[PredominantSentiment],
        snapshot: Dict[str, PredominantSentiment],
        session_id: Optional[int] = None
    ) -> bool:
        """Publish a finished session's summary (retained)."""
        message = self.format_message(
            'session_summary', self.format_summary(summary, snapshot), session_id
        )
        return self.publish(self.summary_topic, message, retain=True)
