"""
MQTT Classification Subscriber
==============================

Bounded Context: Event intake over MQTT

Feeds a ClassificationStream from classifier results published on an
MQTT topic, for classifiers running in another process (e.g., the audio
capture + inference service).

Message Flow:
    Classifier → MQTT Broker → ClassificationSubscriber → ClassificationStream
    → AggregationController

Payload:
    {"label": "dog", "confidence": 0.91, "timestamp": "2025-10-24T15:30:45+00:00"}
    (timestamp optional; receive time is used when absent)

Invalid payloads are counted and logged, never forwarded.

Example:
    >>> stream = ClassificationStream()
    >>> subscriber = ClassificationSubscriber(
    ...     broker_host="localhost",
    ...     topic="sonora/classifications",
    ...     stream=stream,
    ...     logger=create_logger("subscriber")
    ... )
    >>> subscriber.connect()
    >>> subscriber.start()
    >>> ...
    >>> subscriber.stop()
"""

import json
import threading
from typing import Any, Optional

import paho.mqtt.client as mqtt

from sonora_core.logging import LogEvent, StructuredLogger
from sonora_core.schemas import ClassificationEvent
from sonora_core.source import ClassificationStream
from sonora_mqtt.connection import BrokerConnection


class ClassificationSubscriber:
    """
    Decodes classification messages into a stream.

    Thread Safety:
        Message callbacks run in the paho-mqtt network thread; the stream
        and the counters are thread-safe.
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        stream: ClassificationStream,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "sonora_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        """
        Args:
            broker_host: MQTT broker hostname
            topic: Topic carrying classification events
            stream: Stream receiving decoded events
            logger: Structured logger instance
            broker_port: MQTT broker port (default: 1883)
            client_id: MQTT client ID
            username: MQTT auth username (optional)
            password: MQTT auth password (optional)
            qos: Subscription QoS (default: 0)
        """
        self.topic = topic
        self.stream = stream
        self.qos = qos
        self.logger = logger.bind(topic=topic)

        self.connection = BrokerConnection(
            broker_host=broker_host,
            broker_port=broker_port,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            on_connected=self._subscribe,
        )
        self.connection.client.on_message = self._on_message

        self._running = False
        self._stats_lock = threading.Lock()
        self._counts = {'accepted': 0, 'invalid': 0, 'dropped': 0}

    def _subscribe(self, client: mqtt.Client) -> None:
        # runs on every (re)connect so a broker restart keeps the subscription
        client.subscribe(self.topic, qos=self.qos)

    def _on_message(
        self,
        client: mqtt.Client,
        userdata: Any,
        msg: mqtt.MQTTMessage
    ) -> None:
        # subscribed on connect, but nothing is forwarded before start()
        if not self._running:
            self._count('dropped')
            self.logger.debug(
                event=LogEvent.EVENT_REJECTED,
                message="Subscriber not started, message dropped"
            )
            return

        try:
            data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._count('invalid')
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode JSON message",
                exc_info=e,
                metadata={'bytes': len(msg.payload)}
            )
            return

        self.handle_payload(data)

    def handle_payload(self, data: Any) -> bool:
        """
        Validate a decoded payload and publish it into the stream.

        Returns:
            True if an event was forwarded to the stream
        """
        try:
            if not isinstance(data, dict):
                raise ValueError(
                    f"expected a JSON object, got {type(data).__name__}"
                )
            event = ClassificationEvent.from_dict(data)
        except ValueError as e:
            self._count('invalid')
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Classification message failed schema validation",
                exc_info=e,
                metadata={'data': data}
            )
            return False

        if not event.is_valid:
            self._count('invalid')
            self.logger.warning(
                event=LogEvent.EVENT_REJECTED,
                message="Dropped malformed classification",
                metadata={'label': event.label, 'confidence': event.confidence}
            )
            return False

        if not self.stream.publish(event):
            self._count('dropped')
            self.logger.warning(
                event=LogEvent.EVENT_REJECTED,
                message="Stream not accepting, classification dropped",
                metadata={'label': event.label}
            )
            return False

        self._count('accepted')
        self.logger.debug(
            event=LogEvent.EVENT_RECEIVED,
            message="Received classification",
            metadata={'label': event.label, 'confidence': event.confidence}
        )
        return True

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._counts[key] += 1

    def connect(self, timeout: float = 10.0) -> bool:
        return self.connection.open(timeout=timeout)

    def start(self) -> None:
        """Begin forwarding messages to the stream (requires connect())."""
        if not self.connection.is_connected:
            self.logger.warning(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Cannot start: not connected to broker"
            )
            return
        self._running = True

    def stop(self) -> None:
        self._running = False
        self.connection.close()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self.connection.is_connected

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        with self._stats_lock:
            return {
                'messages_accepted': self._counts['accepted'],
                'messages_invalid': self._counts['invalid'],
                'messages_dropped': self._counts['dropped'],
                'connected': self.connection.is_connected,
                'running': self._running,
                'broker': self.connection.broker
            }
