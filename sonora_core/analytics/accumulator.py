"""
Session Accumulator Module
==========================

Thread-safe accumulator for per-label session statistics.

Design:
- Mutable accumulators (private LabelStat map)
- Immutable snapshots (PredominantSentiment)
- One lock guards every operation (record, predominant, snapshot, reset)
- Session ids: reset() opens a new session, records tagged with an older
  id are rejected
"""

import threading
from datetime import datetime
from typing import Dict, Optional

from sonora_core.logging import LogEvent, StructuredLogger, create_logger
from sonora_core.schemas import (
    LabelStat,
    PredominantSentiment,
    as_utc,
    is_valid_sample,
    utc_now,
)


class SessionAccumulator:
    """
    Running per-label statistics for one session.

    Ranking: predominant() picks the label with the greatest cumulative
    confidence. Equal sums are broken by the more recent `last_updated`,
    then by arrival order of the latest sample.

    Thread Safety:
        Every public method takes the same lock, so each is linearizable.
        A record() racing a reset() lands wholly before or wholly after it.

    Usage:
        acc = SessionAccumulator()
        session = acc.reset()
        acc.record("dog", 0.7, session=session)
        summary = acc.predominant()   # PredominantSentiment or None
        board = acc.snapshot()        # {label: PredominantSentiment}
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or create_logger("accumulator")

        self._lock = threading.Lock()
        self._stats: Dict[str, LabelStat] = {}
        self._session_id = 0
        self._sequence = 0
        self._frozen = False

    def record(
        self,
        label: str,
        confidence: float,
        timestamp: Optional[datetime] = None,
        session: Optional[int] = None
    ) -> bool:
        """
        Fold one sample into the session statistics.

        Args:
            label: Class identifier (non-empty)
            confidence: Confidence in [0, 1]
            timestamp: Observation time (default: now, UTC)
            session: Session id the sample belongs to; None skips the check

        Returns:
            True if recorded; False if the sample was malformed, belongs to
            a stale session, or the accumulator is frozen
        """
        if not is_valid_sample(label, confidence):
            self.logger.warning(
                event=LogEvent.EVENT_REJECTED,
                message="Dropped malformed sample",
                metadata={'label': label, 'confidence': confidence, 'reason': 'malformed'}
            )
            return False

        timestamp = as_utc(timestamp) if timestamp is not None else utc_now()

        with self._lock:
            if session is not None and session != self._session_id:
                reason = 'stale_session'
            elif self._frozen:
                reason = 'frozen'
            else:
                self._sequence += 1
                stat = self._stats.setdefault(label, LabelStat())
                stat.add(float(confidence), timestamp, self._sequence)
                return True
            current = self._session_id

        self.logger.debug(
            event=LogEvent.EVENT_REJECTED,
            message="Dropped sample outside the open session",
            metadata={
                'label': label,
                'session': session,
                'current_session': current,
                'reason': reason
            }
        )
        return False

    def predominant(self) -> Optional[PredominantSentiment]:
        """
        Label with the greatest cumulative confidence.

        Returns:
            PredominantSentiment snapshot, or None if nothing was recorded
        """
        with self._lock:
            if not self._stats:
                return None
            label, stat = max(self._stats.items(), key=_ranking_key)
            return PredominantSentiment.from_stat(label, stat)

    def snapshot(self) -> Dict[str, PredominantSentiment]:
        """
        Point-in-time scoreboard of every label.

        Returns:
            Dictionary mapping label to its PredominantSentiment
        """
        with self._lock:
            return {
                label: PredominantSentiment.from_stat(label, stat)
                for label, stat in self._stats.items()
            }

    def reset(self) -> int:
        """
        Clear all statistics and open a new session.

        Returns:
            The new session id
        """
        with self._lock:
            cleared = len(self._stats)
            self._stats.clear()
            self._frozen = False
            self._session_id += 1
            session_id = self._session_id

        self.logger.info(
            event=LogEvent.ACCUMULATOR_RESET,
            message="Session statistics cleared",
            metadata={'session_id': session_id, 'labels_cleared': cleared}
        )
        return session_id

    def freeze(self) -> None:
        """Stop accepting records until the next reset()."""
        with self._lock:
            self._frozen = True
            session_id = self._session_id

        self.logger.info(
            event=LogEvent.ACCUMULATOR_FROZEN,
            message="Session statistics frozen",
            metadata={'session_id': session_id}
        )

    @property
    def frozen(self) -> bool:
        with self._lock:
            return self._frozen

    @property
    def session_id(self) -> int:
        with self._lock:
            return self._session_id

    def __len__(self) -> int:
        """Number of distinct labels recorded this session."""
        with self._lock:
            return len(self._stats)

    def __repr__(self) -> str:
        return f"SessionAccumulator(session={self.session_id}, labels={len(self)})"


def _ranking_key(item):
    """Sum first, then most recent update, then most recent arrival."""
    _, stat = item
    return (stat.total_confidence, stat.last_updated, stat.last_sequence)
