"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for structured logging.

Event Naming Convention:
    <component>.<category>.<action>

    component: session, stable_label, accumulator, event, stream, mqtt, error

Example Log Query (jq):
    jq 'select(.event == "event.rejected") | .metadata.reason'
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - session.*: Session lifecycle (start/stop)
    - stable_label.*, accumulator.*: Engine state changes
    - event.*, stream.*: Event intake
    - mqtt.*: MQTT broker interactions
    - error.*: Error conditions
    """

    # ========== Session Events ==========
    SESSION_STARTED = "session.started"
    """A new aggregation session began (accumulator reset, consumer running)."""

    SESSION_STOPPED = "session.stopped"
    """Session closed and final summary computed."""

    SESSION_SUMMARY = "session.summary"
    """Final predominant label of a session."""

    # ========== Engine Events ==========
    STABLE_LABEL_CHANGED = "stable_label.changed"
    """Smoothed display label changed."""

    ACCUMULATOR_RESET = "accumulator.reset"
    """Session statistics cleared."""

    ACCUMULATOR_FROZEN = "accumulator.frozen"
    """Session statistics made read-only."""

    # ========== Intake Events ==========
    EVENT_RECEIVED = "event.received"
    """Classification event received from a producer."""

    EVENT_REJECTED = "event.rejected"
    """Classification event dropped (malformed, stale session, closed session)."""

    STREAM_CLOSED = "stream.closed"
    """Event stream reached end of stream."""

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Error Events ==========
    CALLBACK_ERROR = "error.callback"
    """A consumer callback raised."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

