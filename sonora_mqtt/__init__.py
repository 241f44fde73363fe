"""
Sonora MQTT Integration
=======================

Bounded Context: Communication with out-of-process producers and displays

This package connects the aggregation engine (sonora_core) to an MQTT
broker, so the classifier and the display can live in other processes.

Architecture:
- connection.py: BrokerConnection (paho client + connection state)
- subscriber.py: ClassificationSubscriber (MQTT → ClassificationStream)
- publishers/: SessionPublisher (stable labels, session summaries → MQTT)

Example:
    >>> from sonora_core import AggregationController, ClassificationStream, create_logger
    >>> from sonora_mqtt import ClassificationSubscriber, SessionPublisher
    >>>
    >>> stream = ClassificationStream()
    >>> publisher = SessionPublisher(
    ...     broker_host="localhost",
    ...     stable_label_topic="sonora/stable_label",
    ...     summary_topic="sonora/session/summary",
    ...     logger=create_logger("publisher")
    ... )
    >>> subscriber = ClassificationSubscriber(
    ...     broker_host="localhost",
    ...     topic="sonora/classifications",
    ...     stream=stream,
    ...     logger=create_logger("subscriber")
    ... )
    >>> controller = AggregationController(
    ...     stream, on_stable_label=publisher.publish_stable_label
    ... )
"""

__version__ = "1.0.0"

from .subscriber import ClassificationSubscriber
from .publishers import BasePublisher, SessionPublisher

__all__ = [
    '__version__',
    'ClassificationSubscriber',
    'BasePublisher',
    'SessionPublisher',
]
