"""
Configuration schema for the aggregation engine.

This module defines the configuration structure for the engine:
stability window settings, display strings, session timeouts and the
MQTT settings used by the sonora_mqtt adapters.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml

from sonora_core.analytics.window import (
    DEFAULT_CAPACITY,
    DEFAULT_DISPLAY_FORMAT,
    DEFAULT_PLACEHOLDER,
)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker and topic configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0
    client_id: str = "sonora"

    classification_topic: str = "sonora/classifications"
    stable_label_topic: str = "sonora/stable_label"
    summary_topic: str = "sonora/session/summary"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )


@dataclass(frozen=True)
class EngineConfig:
    """
    Main configuration for the aggregation engine.

    Loaded from YAML (or built with defaults) and validated at startup.
    Immutable after construction (frozen dataclass).
    """

    # Stability window
    window_capacity: int = DEFAULT_CAPACITY
    placeholder: str = DEFAULT_PLACEHOLDER
    display_format: str = DEFAULT_DISPLAY_FORMAT

    # Session lifecycle
    stop_timeout: float = 5.0
    poll_interval: float = 0.1

    # Observability
    log_level: str = "INFO"

    # MQTT adapters
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)

    def __post_init__(self):
        """Validate engine configuration."""
        if self.window_capacity < 1:
            raise ValueError(
                f"window_capacity must be >= 1, got {self.window_capacity}"
            )

        try:
            self.display_format.format(label="x", confidence=0.5, percent=50.0)
        except (KeyError, IndexError, ValueError, AttributeError, TypeError) as e:
            raise ValueError(
                f"Invalid display_format {self.display_format!r}: {e}"
            ) from e

        if self.stop_timeout <= 0:
            raise ValueError(
                f"stop_timeout must be > 0, got {self.stop_timeout}"
            )

        if self.poll_interval <= 0:
            raise ValueError(
                f"poll_interval must be > 0, got {self.poll_interval}"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. "
                f"Must be one of {sorted(VALID_LOG_LEVELS)}"
            )

    @property
    def logging_level(self) -> int:
        """log_level as a logging module constant."""
        return getattr(logging, self.log_level.upper())

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "EngineConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            window_capacity: 6
            placeholder: "No sound detected"
            display_format: "{label} ({percent:.2f}%)"
            stop_timeout: 5.0
            log_level: "INFO"

            mqtt_config:
              broker: "localhost"
              port: 1883
              classification_topic: "sonora/classifications"
              stable_label_topic: "sonora/stable_label"
              summary_topic: "sonora/session/summary"

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the YAML is invalid or values fail validation
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {yaml_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping in {yaml_path}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        """Build configuration from a plain mapping (parsed YAML)."""
        mqtt_config_data = data.get("mqtt_config") or {}
        try:
            mqtt_config = MQTTConfig(**mqtt_config_data)
        except TypeError as e:
            raise ValueError(f"Invalid mqtt_config: {e}") from e

        return cls(
            window_capacity=int(data.get("window_capacity", DEFAULT_CAPACITY)),
            placeholder=str(data.get("placeholder", DEFAULT_PLACEHOLDER)),
            display_format=str(data.get("display_format", DEFAULT_DISPLAY_FORMAT)),
            stop_timeout=float(data.get("stop_timeout", 5.0)),
            poll_interval=float(data.get("poll_interval", 0.1)),
            log_level=str(data.get("log_level", "INFO")),
            mqtt_config=mqtt_config,
        )
