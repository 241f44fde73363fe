"""
Sonora Core
===========

Bounded Context: Classification stabilization and session aggregation.

This package turns the raw (label, confidence, timestamp) stream of an
external classifier into:

- a flicker-resistant stable label for live display, and
- session statistics reporting the predominant label once a session ends.

Architecture:

    sonora_core/
    ├── schemas.py         # Value types (ClassificationEvent, PredominantSentiment, ...)
    ├── source.py          # ClassificationStream (closable event channel)
    ├── analytics/         # Stateful smoothing & statistics
    │   ├── window.py      # StabilityWindow
    │   └── accumulator.py # SessionAccumulator (thread-safe)
    ├── controller.py      # AggregationController (session lifecycle)
    ├── config.py          # EngineConfig (YAML)
    └── logging/           # Structured JSON logging

Usage:

    from sonora_core import (
        AggregationController, ClassificationEvent, ClassificationStream,
    )

    stream = ClassificationStream()
    controller = AggregationController(
        stream, on_stable_label=lambda s: print(s.display)
    )
    controller.start()

    # classifier callback thread
    stream.publish(ClassificationEvent(label="dog", confidence=0.91))

    summary = controller.stop()
    if summary:
        print(summary.label, summary.score, summary.occurrences)
"""

# Schemas
from sonora_core.schemas import (
    ClassificationEvent,
    LabelStat,
    PredominantSentiment,
    StableLabel,
)

# Event intake
from sonora_core.source import ClassificationStream, StreamClosed

# Analytics Layer (stateful)
from sonora_core.analytics import SessionAccumulator, StabilityWindow

# Orchestration
from sonora_core.config import EngineConfig, MQTTConfig
from sonora_core.controller import AggregationController, SessionStateError

# Logging
from sonora_core.logging import LogEvent, StructuredLogger, create_logger

__all__ = [
    # Schemas
    "ClassificationEvent",
    "LabelStat",
    "PredominantSentiment",
    "StableLabel",
    # Intake
    "ClassificationStream",
    "StreamClosed",
    # Analytics
    "StabilityWindow",
    "SessionAccumulator",
    # Orchestration
    "AggregationController",
    "SessionStateError",
    "EngineConfig",
    "MQTTConfig",
    # Logging
    "LogEvent",
    "StructuredLogger",
    "create_logger",
]

__version__ = "1.0.0"
