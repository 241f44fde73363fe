"""
Base MQTT Publisher
===================

Bounded Context: MQTT Infrastructure

    BasePublisher (abstract): connection, JSON encoding, publish result checks
        ↓
    SessionPublisher: stable labels and session summaries

Subclasses own the message layout (`format_message`); the base class never
inspects payloads beyond serializing them.
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

import paho.mqtt.client as mqtt

from sonora_core.logging import StructuredLogger, LogEvent
from sonora_mqtt.connection import BrokerConnection


class BasePublisher(ABC):
    """
    Abstract MQTT publisher.

    Thread Safety:
        publish() may be called from any thread (the controller's consumer
        thread for stable labels, the main thread for summaries).
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        self.logger = logger
        self.qos = qos
        self.connection = BrokerConnection(
            broker_host=broker_host,
            broker_port=broker_port,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
        )

        self._stats_lock = threading.Lock()
        self._published = 0
        self._failed = 0

    def connect(self, timeout: float = 10.0) -> bool:
        return self.connection.open(timeout=timeout)

    def disconnect(self) -> None:
        self.connection.close()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher disconnected",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self.connection.is_connected

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Build the JSON-ready message body."""

    def publish(
        self,
        topic: str,
        message_data: Dict[str, Any],
        retain: bool = False
    ) -> bool:
        """
        Serialize `message_data` and hand it to the paho client.

        Returns:
            True if the client accepted the message for delivery
        """
        if not self.connection.is_connected:
            self._record_failure(topic, "Cannot publish: not connected to broker")
            return False

        try:
            payload = json.dumps(message_data)
        except (TypeError, ValueError) as e:
            with self._stats_lock:
                self._failed += 1
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Message is not JSON serializable",
                exc_info=e,
                metadata={'topic': topic}
            )
            return False

        info = self.connection.client.publish(
            topic=topic, payload=payload, qos=self.qos, retain=retain
        )
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._record_failure(topic, f"Publish refused by client (rc={info.rc})")
            return False

        with self._stats_lock:
            self._published += 1

        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'topic': topic, 'bytes': len(payload), 'retain': retain}
        )
        return True

    def _record_failure(self, topic: str, message: str) -> None:
        with self._stats_lock:
            self._failed += 1
        self.logger.warning(
            event=LogEvent.MQTT_PUBLISH_FAILED,
            message=message,
            metadata={'topic': topic}
        )

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'message_count': self._published,
                'failed_count': self._failed,
                'connected': self.connection.is_connected,
                'broker': self.connection.broker
            }
