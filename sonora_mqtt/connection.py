"""
Broker Connection
=================

One paho-mqtt client plus its connection state, shared by the
classification subscriber and the session publishers.

The network loop runs in paho's own thread (loop_start); `open()` blocks
until the broker acknowledges the connection or the timeout expires.
"""

import threading
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from sonora_core.logging import LogEvent, StructuredLogger


class BrokerConnection:
    """
    Connection lifecycle for a single MQTT client.

    Attributes:
        client: paho-mqtt client (callback API v2)
        on_connected: Optional hook run in the network thread after every
            successful (re)connect, e.g. to (re)subscribe
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        on_connected: Optional[Callable[[mqtt.Client], None]] = None
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.logger = logger.bind(broker=f"{broker_host}:{broker_port}")
        self.on_connected = on_connected

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id
        )
        if username:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None
    ) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
            )
            return

        self._connected.set()
        if self.on_connected is not None:
            self.on_connected(client)

        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={'client_id': self.client_id}
        )

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None
    ) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={'reason_code': str(reason_code)}
        )

    def open(self, timeout: float = 10.0) -> bool:
        """
        Connect and start the network loop.

        Returns:
            True once the broker acknowledged, False on error or timeout
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except OSError as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to reach broker",
                exc_info=e
            )
            return False

        self.client.loop_start()
        if self._connected.wait(timeout=timeout):
            return True

        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Connection timeout",
            metadata={'timeout': timeout}
        )
        self.client.loop_stop()
        return False

    def close(self) -> None:
        """Stop the network loop and disconnect."""
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()
