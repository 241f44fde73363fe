"""
Aggregation Controller - Session lifecycle orchestrator.

This module provides the AggregationController class which binds a
ClassificationStream to the two engine consumers:

1. StabilityWindow (live stable label for display)
2. SessionAccumulator (session-scoped statistics)

Threading Model:
- Producer threads (classifier callback, MQTT network thread, replay loop)
  publish into the ClassificationStream
- One Consumer Thread per session (ours) drains the stream and calls deliver()
- Any thread may query predominant()/snapshot() concurrently

Session Ordering:
- start() resets the accumulator synchronously, before the consumer thread
  exists, so no event of the new session can be processed ahead of the reset
- Every delivery is tagged with the session id returned by that reset;
  the accumulator rejects ids of closed sessions
- stop() pauses the stream and closes the session first (deliveries become
  inert), then freezes the accumulator and joins the consumer thread
- While no session is open the stream refuses events, so an idle
  controller holds no backlog
"""

import threading
from typing import Callable, Dict, Optional

from sonora_core.analytics import SessionAccumulator, StabilityWindow
from sonora_core.config import EngineConfig
from sonora_core.logging import LogEvent, StructuredLogger, create_logger
from sonora_core.schemas import (
    ClassificationEvent,
    PredominantSentiment,
    StableLabel,
)
from sonora_core.source import ClassificationStream, StreamClosed


class SessionStateError(RuntimeError):
    """Raised when a lifecycle call does not fit the current session state."""
    pass


class AggregationController:
    """
    Routes classification events into the window and the accumulator.

    Thread Safety:
    - accumulator: Protected by its own lock
    - window: Only touched under _delivery_lock
    - lifecycle (start/stop): Serialized by _lifecycle_lock
    - counters: Protected by _stats_lock

    Usage:
        stream = ClassificationStream()
        controller = AggregationController(
            stream,
            on_stable_label=lambda s: print(s.display),
        )

        controller.start()
        stream.publish(ClassificationEvent("dog", 0.8))
        ...
        summary = controller.stop()  # PredominantSentiment or None
    """

    def __init__(
        self,
        stream: ClassificationStream,
        window: Optional[StabilityWindow] = None,
        accumulator: Optional[SessionAccumulator] = None,
        config: Optional[EngineConfig] = None,
        on_stable_label: Optional[Callable[[StableLabel], None]] = None,
        on_predominant: Optional[Callable[[PredominantSentiment], None]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize the controller.

        Args:
            stream: Event source the consumer thread drains
            window: Stability window (default: built from config)
            accumulator: Session accumulator (default: new instance)
            config: Engine configuration (default: EngineConfig())
            on_stable_label: Called on every stable label change, and with
                the placeholder at session start/stop
            on_predominant: Called with the running predominant label after
                each recorded event
            logger: Structured logger (default: "controller" component)
        """
        self.config = config or EngineConfig()
        self.logger = logger or create_logger(
            "controller", level=self.config.logging_level
        )

        self.stream = stream
        # no session yet: producers are refused until start()
        self.stream.pause()
        self.window = window or StabilityWindow(
            capacity=self.config.window_capacity,
            placeholder=self.config.placeholder,
            display_format=self.config.display_format,
        )
        self.accumulator = accumulator or SessionAccumulator(
            logger=create_logger("accumulator", level=self.config.logging_level)
        )

        self.on_stable_label = on_stable_label
        self.on_predominant = on_predominant

        # Session state
        self._lifecycle_lock = threading.Lock()
        self._delivery_lock = threading.Lock()
        self._running = False
        self._session_id: Optional[int] = None
        self._consumer_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._stream_ended = threading.Event()
        self._last_summary: Optional[PredominantSentiment] = None

        # Counters (per session)
        self._stats_lock = threading.Lock()
        self._counts = self._empty_counts()

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def start(self) -> int:
        """
        Open a new session (non-blocking).

        Lifecycle:
        1. Discard events queued while no session was open
        2. Reset window and accumulator (synchronous barrier)
        3. Reopen the stream to producers
        4. Emit the placeholder label
        5. Start the consumer thread

        Returns:
            The new session id

        Raises:
            SessionStateError: If a session is already running
        """
        with self._lifecycle_lock:
            if self._running:
                raise SessionStateError(
                    f"Session {self._session_id} already running"
                )

            discarded = self.stream.discard_pending()

            with self._delivery_lock:
                self.window.reset()
                session_id = self.accumulator.reset()
                self._session_id = session_id
                self._running = True

            with self._stats_lock:
                self._counts = self._empty_counts()

            stop_event = threading.Event()
            self._stop_event = stop_event
            self._stream_ended.clear()
            self._last_summary = None
            consumer = threading.Thread(
                target=self._consume_loop,
                args=(session_id, stop_event),
                name=f"SonoraConsumer-{session_id}",
                daemon=True
            )
            self._consumer_thread = consumer
            self.stream.resume()

        # Callbacks run outside the lifecycle lock so they may call stop().
        # The placeholder goes out before the consumer can emit a real label.
        self._notify_stable_label(self.window.placeholder_label())
        if not stop_event.is_set():
            consumer.start()

        self.logger.info(
            event=LogEvent.SESSION_STARTED,
            message="Session started",
            metadata={
                'session_id': session_id,
                'window_capacity': self.window.capacity,
                'discarded_events': discarded
            }
        )
        return session_id

    def stop(self, timeout: Optional[float] = None) -> Optional[PredominantSentiment]:
        """
        Close the current session and compute its summary.

        Lifecycle:
        1. Pause the stream and mark the session closed (later deliveries
           are inert)
        2. Freeze the accumulator (stats stay readable)
        3. Join the consumer thread
        4. Discard events left unconsumed in the stream
        5. Compute predominant() as the final summary
        6. Reset the window and emit the placeholder

        Args:
            timeout: Consumer join timeout (default: config.stop_timeout)

        Returns:
            Final PredominantSentiment, or None if the session saw no events
        """
        with self._lifecycle_lock:
            if not self._running:
                self.logger.warning(
                    event=LogEvent.SESSION_STOPPED,
                    message="Stop requested but no session is running",
                    metadata={'session_id': self._session_id}
                )
                return self._last_summary

            session_id = self._session_id

            self.stream.pause()
            with self._delivery_lock:
                self._running = False
            self.accumulator.freeze()

            self._stop_event.set()
            consumer = self._consumer_thread
            # ident is None while start() has not launched the thread yet;
            # it exits on its own once launched because stop_event is set
            if (
                consumer is not None
                and consumer.ident is not None
                and consumer is not threading.current_thread()
            ):
                join_timeout = self.config.stop_timeout if timeout is None else timeout
                consumer.join(timeout=join_timeout)
                if consumer.is_alive():
                    self.logger.warning(
                        event=LogEvent.SESSION_STOPPED,
                        message="Consumer thread did not exit before timeout",
                        metadata={'session_id': session_id}
                    )
            self._consumer_thread = None
            dropped = self.stream.discard_pending()

            summary = self.accumulator.predominant()
            self._last_summary = summary

            with self._delivery_lock:
                self.window.reset()

        self._notify_stable_label(self.window.placeholder_label())
        stats = self.get_stats()
        self.logger.info(
            event=LogEvent.SESSION_STOPPED,
            message="Session stopped",
            metadata={**stats, 'discarded_events': dropped}
        )
        self.logger.info(
            event=LogEvent.SESSION_SUMMARY,
            message=(
                f"Predominant label: {summary.label}" if summary
                else "Session ended without events"
            ),
            metadata={
                'session_id': session_id,
                'summary': summary.to_dict() if summary else None
            }
        )
        return summary

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the stream reaches end of stream.

        Args:
            timeout: Seconds to wait (None waits indefinitely)

        Returns:
            True if the stream ended, False on timeout
        """
        return self._stream_ended.wait(timeout=timeout)

    # ─────────────────────────────────────────────────────────────────────
    # Event routing
    # ─────────────────────────────────────────────────────────────────────

    def deliver(self, event: ClassificationEvent, session: Optional[int] = None) -> bool:
        """
        Route one event to the window and the accumulator.

        Used by the consumer thread; push-based producers may call it
        directly.

        Args:
            event: Classification event
            session: Session the event belongs to (default: current session)

        Returns:
            True if the event was recorded in the session statistics
        """
        with self._stats_lock:
            self._counts['events_delivered'] += 1

        if not event.is_valid:
            self._reject(event, 'malformed')
            return False

        with self._delivery_lock:
            if session is None:
                session = self._session_id
            if not self._running or session != self._session_id:
                active = False
            else:
                active = True
                stable = self.window.push(event)

        if not active:
            self._reject(event, 'session_closed')
            return False

        if stable is not None:
            with self._stats_lock:
                self._counts['stable_label_changes'] += 1
            self.logger.info(
                event=LogEvent.STABLE_LABEL_CHANGED,
                message=stable.display,
                metadata={
                    'session_id': session,
                    'label': stable.label,
                    'confidence': stable.confidence
                }
            )
            self._notify_stable_label(stable)

        recorded = self.accumulator.record(
            event.label,
            event.confidence,
            timestamp=event.timestamp,
            session=session
        )
        if not recorded:
            with self._stats_lock:
                self._counts['events_rejected'] += 1
            return False

        with self._stats_lock:
            self._counts['events_recorded'] += 1

        if self.on_predominant is not None:
            predominant = self.accumulator.predominant()
            if predominant is not None:
                self._invoke_callback(self.on_predominant, predominant, 'on_predominant')

        return True

    def _consume_loop(self, session_id: int, stop_event: threading.Event) -> None:
        """
        Consumer thread loop.

        Drains the stream until stop() or end of stream.

        Thread: Consumer Thread (ours)
        """
        log = self.logger.bind(session_id=session_id)
        log.debug(LogEvent.SESSION_STARTED, "Consumer loop started")

        while not stop_event.is_set():
            try:
                event = self.stream.get(timeout=self.config.poll_interval)
            except StreamClosed:
                self._stream_ended.set()
                log.info(LogEvent.STREAM_CLOSED, "Event stream ended")
                break

            if event is None:
                continue

            self.deliver(event, session=session_id)

        log.debug(LogEvent.SESSION_STOPPED, "Consumer loop stopped")

    def _reject(self, event: ClassificationEvent, reason: str) -> None:
        with self._stats_lock:
            self._counts['events_rejected'] += 1

        log = self.logger.warning if reason == 'malformed' else self.logger.debug
        log(
            event=LogEvent.EVENT_REJECTED,
            message=f"Dropped event ({reason})",
            metadata={
                'label': event.label,
                'confidence': event.confidence,
                'reason': reason
            }
        )

    def _notify_stable_label(self, stable: StableLabel) -> None:
        if self.on_stable_label is not None:
            self._invoke_callback(self.on_stable_label, stable, 'on_stable_label')

    def _invoke_callback(self, callback: Callable, value, name: str) -> None:
        """Run a consumer callback; failures are logged, never propagated."""
        try:
            callback(value)
        except Exception as e:
            self.logger.error(
                event=LogEvent.CALLBACK_ERROR,
                message=f"{name} callback failed",
                exc_info=e,
                metadata={'session_id': self._session_id}
            )

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def predominant(self) -> Optional[PredominantSentiment]:
        """Running (or, after stop(), final) predominant label."""
        return self.accumulator.predominant()

    def snapshot(self) -> Dict[str, PredominantSentiment]:
        """Full per-label scoreboard of the current or last session."""
        return self.accumulator.snapshot()

    @property
    def last_summary(self) -> Optional[PredominantSentiment]:
        """Summary computed by the most recent stop()."""
        return self._last_summary

    @property
    def session_id(self) -> Optional[int]:
        return self._session_id

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stream_ended(self) -> bool:
        return self._stream_ended.is_set()

    def get_stats(self) -> dict:
        """
        Get controller statistics for the current (or last) session.

        Returns:
            Dictionary with event counters and session state
        """
        with self._stats_lock:
            stats = dict(self._counts)
        stats.update({
            'session_id': self._session_id,
            'running': self._running,
            'stream_ended': self._stream_ended.is_set(),
            'labels': len(self.accumulator),
        })
        return stats

    @staticmethod
    def _empty_counts() -> Dict[str, int]:
        return {
            'events_delivered': 0,
            'events_recorded': 0,
            'events_rejected': 0,
            'stable_label_changes': 0,
        }
