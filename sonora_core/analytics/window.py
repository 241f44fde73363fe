"""
Stability Window Module
=======================

Sliding-window smoother for per-frame classifications.

Design:
- Mutable state (bounded deque of recent events)
- Immutable outputs (StableLabel)
- Emits only on display change (no flicker, no redundant updates)
- Single-consumer: driven from the controller's consumer thread
"""

from collections import deque
from typing import Callable, Deque, Dict, Optional

from sonora_core.schemas import ClassificationEvent, StableLabel

DEFAULT_CAPACITY = 6
DEFAULT_PLACEHOLDER = "No sound detected"
DEFAULT_DISPLAY_FORMAT = "{label} ({percent:.2f}%)"


class StabilityWindow:
    """
    Majority vote over the N most recent events.

    Mode tie-break: among labels tied for the highest count, the label
    whose latest occurrence is nearest the end of the window wins. With
    all labels distinct this is simply the most recently pushed label.
    The reported confidence is that of the winning label's latest
    occurrence in the window.

    Usage:
        window = StabilityWindow(capacity=6, on_change=print)
        window.push(ClassificationEvent("dog", 0.8))   # emits "dog (80.00%)"
        window.push(ClassificationEvent("dog", 0.8))   # same display, no emit
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        placeholder: str = DEFAULT_PLACEHOLDER,
        display_format: str = DEFAULT_DISPLAY_FORMAT,
        on_change: Optional[Callable[[StableLabel], None]] = None
    ):
        """
        Initialize an empty window.

        Args:
            capacity: Maximum number of events kept (N >= 1)
            placeholder: Display text while no data is available
            display_format: str.format template; receives label, confidence
                and percent (confidence * 100)
            on_change: Called with the new StableLabel on every display change

        Raises:
            ValueError: If capacity < 1
        """
        if capacity < 1:
            raise ValueError(f"Window capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self.placeholder = placeholder
        self.display_format = display_format
        self.on_change = on_change

        self._events: Deque[ClassificationEvent] = deque(maxlen=capacity)
        self._last_display: Optional[str] = None

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, event: ClassificationEvent) -> Optional[StableLabel]:
        """
        Add an event and recompute the stable label.

        Args:
            event: Classifier observation; malformed events are ignored

        Returns:
            The new StableLabel if the display string changed, else None
        """
        if not event.is_valid:
            return None

        # deque(maxlen=N) evicts the oldest entry on overflow
        self._events.append(event)

        stable = self.current()
        if stable is None or stable.display == self._last_display:
            return None

        self._last_display = stable.display
        if self.on_change is not None:
            self.on_change(stable)
        return stable

    def current(self) -> Optional[StableLabel]:
        """
        Mode of the current window contents, without emitting.

        Returns:
            StableLabel, or None when the window is empty
        """
        if not self._events:
            return None

        counts: Dict[str, int] = {}
        latest: Dict[str, int] = {}
        for index, event in enumerate(self._events):
            counts[event.label] = counts.get(event.label, 0) + 1
            latest[event.label] = index

        winner = max(counts, key=lambda label: (counts[label], latest[label]))
        confidence = self._events[latest[winner]].confidence
        return StableLabel(
            label=winner,
            confidence=confidence,
            display=self.format_display(winner, confidence)
        )

    def format_display(self, label: str, confidence: float) -> str:
        """Render the display string for a label/confidence pair."""
        return self.display_format.format(
            label=label,
            confidence=confidence,
            percent=confidence * 100
        )

    def placeholder_label(self) -> StableLabel:
        """StableLabel shown while there is no data."""
        return StableLabel(label=None, confidence=None, display=self.placeholder)

    @property
    def display_text(self) -> str:
        """Current display string, or the placeholder when empty."""
        stable = self.current()
        return stable.display if stable is not None else self.placeholder

    def reset(self) -> None:
        """Empty the window and forget the last emission."""
        self._events.clear()
        self._last_display = None

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return f"StabilityWindow(size={len(self._events)}, capacity={self._capacity})"
