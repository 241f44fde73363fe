"""
Engine Schema Types
===================

Bounded Context: Shared Data Structures

This module defines the value types that flow through the aggregation engine.

Design Principles:
- Immutability: frozen=True for every value handed to consumers
- Type Safety: All fields explicitly typed
- Serialization: to_dict()/from_dict() for JSON export
- Representable malformed input: range checks live in `is_valid`, so the
  engine can drop a bad sample instead of crashing the producer

Types:
- ClassificationEvent: one (label, confidence, timestamp) observation
- LabelStat: mutable per-label aggregate (owned by SessionAccumulator)
- PredominantSentiment: derived read-only summary of one label
- StableLabel: smoothed display label emitted by StabilityWindow
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(timestamp: datetime) -> datetime:
    """Treat naive datetimes as UTC so all session timestamps compare."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def is_valid_sample(label: Any, confidence: Any) -> bool:
    """
    Check a (label, confidence) pair.

    Valid means a non-empty string label and a finite real confidence
    in [0, 1]. Booleans are not accepted as confidences.
    """
    if not isinstance(label, str) or not label.strip():
        return False
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return False
    if not math.isfinite(confidence):
        return False
    return 0.0 <= confidence <= 1.0


@dataclass(frozen=True)
class ClassificationEvent:
    """
    Immutable classifier observation.

    Attributes:
        label: Class identifier produced by the classifier (e.g., "dog")
        confidence: Classifier confidence in [0, 1]
        timestamp: When the observation was produced (default: now, UTC)

    Example:
        >>> event = ClassificationEvent(label="dog", confidence=0.87)
        >>> event.is_valid
        True
        >>> ClassificationEvent(label="", confidence=0.5).is_valid
        False
    """
    label: str
    confidence: float
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def is_valid(self) -> bool:
        """True when label is non-empty and confidence is within [0, 1]."""
        return is_valid_sample(self.label, self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'label': self.label,
            'confidence': self.confidence,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClassificationEvent':
        """Deserialize from dict.

        `timestamp` is optional (ISO 8601); when absent the receive time is
        used. `label` must be a string and `confidence` a number or numeric
        string (booleans are refused). Range validation is left to `is_valid`.

        Args:
            data: Dictionary with keys: label, confidence, timestamp (optional)

        Returns:
            ClassificationEvent instance

        Raises:
            ValueError: If required keys missing or values not coercible
        """
        try:
            raw_ts = data.get('timestamp')
            if raw_ts is None:
                timestamp = utc_now()
            else:
                timestamp = as_utc(datetime.fromisoformat(str(raw_ts)))

            label = data['label']
            if not isinstance(label, str):
                raise ValueError(
                    f"label must be a string, got {type(label).__name__}"
                )

            # JSON true/false would otherwise coerce to 1.0/0.0
            confidence = data['confidence']
            if isinstance(confidence, bool) or not isinstance(
                confidence, (int, float, str)
            ):
                raise ValueError(
                    f"confidence must be a number, got {type(confidence).__name__}"
                )

            return cls(
                label=label,
                confidence=float(confidence),
                timestamp=timestamp
            )
        except KeyError as e:
            raise ValueError(f"Missing required ClassificationEvent field: {e}")
        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Invalid ClassificationEvent data: {e}")


@dataclass
class LabelStat:
    """
    Mutable running aggregate for one label within one session.

    Owned exclusively by SessionAccumulator; never handed to consumers
    (they receive PredominantSentiment snapshots instead).

    Attributes:
        total_confidence: Sum of recorded confidences (>= 0)
        occurrences: Number of recorded samples (>= 0)
        last_updated: Latest timestamp seen for this label (never decreases)
        last_sequence: Accumulator arrival number of the latest sample
    """
    total_confidence: float = 0.0
    occurrences: int = 0
    last_updated: Optional[datetime] = None
    last_sequence: int = 0

    def add(self, confidence: float, timestamp: datetime, sequence: int) -> None:
        """Fold one sample into the aggregate."""
        self.total_confidence += confidence
        self.occurrences += 1
        if self.last_updated is None or timestamp > self.last_updated:
            self.last_updated = timestamp
        self.last_sequence = sequence


@dataclass(frozen=True)
class PredominantSentiment:
    """
    Derived, read-only summary of one label.

    Computed on demand from a LabelStat; never stored.

    Attributes:
        label: Class identifier
        score: Cumulative confidence (sum of all samples)
        average_confidence: score / occurrences
        occurrences: Number of samples (always > 0)
        last_updated: Latest timestamp of the label

    Example:
        >>> stat = LabelStat()
        >>> stat.add(0.9, utc_now(), 1)
        >>> PredominantSentiment.from_stat("cat", stat).score
        0.9
    """
    label: str
    score: float
    average_confidence: float
    occurrences: int
    last_updated: Optional[datetime]

    @classmethod
    def from_stat(cls, label: str, stat: LabelStat) -> 'PredominantSentiment':
        """Build the summary for `label` from its aggregate."""
        if stat.occurrences > 0:
            average = stat.total_confidence / stat.occurrences
        else:
            average = 0.0
        return cls(
            label=label,
            score=stat.total_confidence,
            average_confidence=average,
            occurrences=stat.occurrences,
            last_updated=stat.last_updated
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'label': self.label,
            'score': self.score,
            'average_confidence': self.average_confidence,
            'occurrences': self.occurrences,
            'last_updated': (
                self.last_updated.isoformat() if self.last_updated else None
            ),
        }


@dataclass(frozen=True)
class StableLabel:
    """
    Smoothed display label.

    `label is None` marks the "no data yet" placeholder, in which case
    `display` carries the configured placeholder text.
    """
    label: Optional[str]
    confidence: Optional[float]
    display: str

    @property
    def is_placeholder(self) -> bool:
        return self.label is None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'label': self.label,
            'confidence': self.confidence,
            'display': self.display,
        }

    def __str__(self) -> str:
        return self.display
