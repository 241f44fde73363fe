"""
Analytics Layer
===============

Bounded Context: Stateful smoothing and session statistics.

Responsibilities:
- Smooth noisy per-frame labels into a stable display label
- Accumulate per-label confidence over a session
- Generate immutable snapshots (StableLabel, PredominantSentiment)

Design Philosophy:
- Mutable accumulators (StabilityWindow, SessionAccumulator)
- Immutable outputs
- SessionAccumulator is the only shared state and owns its lock
"""

from sonora_core.analytics.window import StabilityWindow
from sonora_core.analytics.accumulator import SessionAccumulator

__all__ = [
    "StabilityWindow",
    "SessionAccumulator",
]
