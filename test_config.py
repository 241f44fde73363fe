"""
Engine Configuration Tests
==========================

Usage:
    pytest test_config.py
"""

import logging
from pathlib import Path

import pytest

from sonora_core.config import EngineConfig, MQTTConfig

EXAMPLE_CONFIG = Path(__file__).parent / "config" / "engine.yaml"


def test_defaults():
    config = EngineConfig()
    assert config.window_capacity == 6
    assert config.placeholder == "No sound detected"
    assert config.logging_level == logging.INFO
    assert config.mqtt_config.broker == "localhost"


def test_example_config_loads():
    config = EngineConfig.from_yaml(EXAMPLE_CONFIG)
    assert config.window_capacity == 6
    assert config.mqtt_config.classification_topic == "sonora/classifications"


def test_from_yaml_overrides(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text(
        "window_capacity: 4\n"
        "placeholder: 'Nenhum som detectado'\n"
        "log_level: debug\n"
        "mqtt_config:\n"
        "  broker: broker.local\n"
        "  port: 8883\n"
        "  qos: 1\n"
    )
    config = EngineConfig.from_yaml(path)
    assert config.window_capacity == 4
    assert config.placeholder == "Nenhum som detectado"
    assert config.logging_level == logging.DEBUG
    assert config.mqtt_config == MQTTConfig(broker="broker.local", port=8883, qos=1)


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert EngineConfig.from_yaml(path) == EngineConfig()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        EngineConfig.from_yaml(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("window_capacity: [6\n")
    with pytest.raises(ValueError):
        EngineConfig.from_yaml(path)


@pytest.mark.parametrize("kwargs", [
    {'window_capacity': 0},
    {'display_format': "{unknown}"},
    {'display_format': "{label.x}"},
    {'display_format': "{percent[0]}"},
    {'stop_timeout': 0},
    {'poll_interval': -1},
    {'log_level': "LOUD"},
])
def test_invalid_engine_values(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {'port': 0},
    {'qos': 3},
    {'broker': ""},
])
def test_invalid_mqtt_values(kwargs):
    with pytest.raises(ValueError):
        MQTTConfig(**kwargs)


def test_unknown_mqtt_key_is_rejected():
    with pytest.raises(ValueError):
        EngineConfig.from_dict({'mqtt_config': {'brokr': 'typo'}})
