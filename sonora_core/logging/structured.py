"""
Structured JSON Logger
======================

Bounded Context: Observability Infrastructure

Every record is a single JSON line:

    {"timestamp": ..., "level": ..., "component": ..., "event": ...,
     "message": ..., "metadata": {...}, "exception": {...}}

Loggers can carry bound context (e.g. the session id) that is merged into
the metadata of every record they write:

    >>> logger = create_logger("controller")
    >>> session_log = logger.bind(session_id=3)
    >>> session_log.info(LogEvent.SESSION_STARTED, "Session started")
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .events import LogEvent


class JSONFormatter(logging.Formatter):
    """
    Renders records produced by StructuredLogger.

    The structured entry travels on the record as `entry`; a traceback is
    attached when the record carries exc_info. Records from plain loggers
    are wrapped so the output stays one JSON object per line.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, 'entry', None)
        if entry is None:
            entry = {
                'timestamp': datetime.fromtimestamp(
                    record.created, tz=timezone.utc
                ).isoformat(),
                'level': record.levelname,
                'component': record.name,
                'message': record.getMessage(),
            }
        else:
            entry = dict(entry)

        if record.exc_info and record.exc_info[1] is not None:
            entry['traceback'] = ''.join(
                traceback.format_exception(*record.exc_info)
            ).rstrip()

        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    JSON logger for one engine component.

    Attributes:
        component: Component name (e.g., "controller", "subscriber")
        context: Metadata merged into every record
        logger: Underlying `logging.Logger` ("sonora.<component>")

    Thread Safety:
        Safe to share between threads (stdlib logging locks the handler).
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        context: Optional[Dict[str, Any]] = None
    ):
        self.component = component
        self.context = dict(context or {})
        self.logger = logging.getLogger(f"sonora.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            # root text handlers must not repeat the JSON lines
            self.logger.propagate = False

    def bind(self, **context: Any) -> 'StructuredLogger':
        """
        Child logger with extra context.

        Shares the underlying logger (and so its handler and level).
        """
        child = StructuredLogger.__new__(StructuredLogger)
        child.component = self.component
        child.context = {**self.context, **context}
        child.logger = self.logger
        return child

    def build_entry(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> Dict[str, Any]:
        """Assemble the JSON-ready dict for one record."""
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'event': event.value,
            'message': message,
        }

        merged = {**self.context, **(metadata or {})}
        if merged:
            entry['metadata'] = merged

        if exc_info is not None:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }
        return entry

    def log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        entry = self.build_entry(level, event, message, metadata, exc_info)
        self.logger.log(
            level,
            message,
            exc_info=exc_info if level >= logging.ERROR else None,
            extra={'entry': entry}
        )

    def debug(self, event: LogEvent, message: str,
              metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str,
             metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.INFO, event, message, metadata)

    def warning(self, event: LogEvent, message: str,
                metadata: Optional[Dict[str, Any]] = None,
                exc_info: Optional[BaseException] = None) -> None:
        self.log(logging.WARNING, event, message, metadata, exc_info)

    def error(self, event: LogEvent, message: str,
              metadata: Optional[Dict[str, Any]] = None,
              exc_info: Optional[BaseException] = None) -> None:
        """
        Log at ERROR; `exc_info` adds the exception summary and traceback.

        Example:
            >>> try:
            ...     on_change(stable)
            ... except Exception as e:
            ...     logger.error(
            ...         event=LogEvent.CALLBACK_ERROR,
            ...         message="Stable label callback failed",
            ...         exc_info=e
            ...     )
        """
        self.log(logging.ERROR, event, message, metadata, exc_info)


def create_logger(
    component: str,
    level: int = logging.INFO,
    **context: Any
) -> StructuredLogger:
    """
    Create a StructuredLogger for `component`.

    Example:
        >>> logger = create_logger("controller", level=logging.DEBUG)
        >>> logger = create_logger("replay", source="session.jsonl")
    """
    return StructuredLogger(component=component, level=level, context=context)
