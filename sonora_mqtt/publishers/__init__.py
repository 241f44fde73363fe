"""
MQTT Publishers
===============

Bounded Context: Engine output over MQTT

    BasePublisher: connection lifecycle, JSON publish, stats
    SessionPublisher: stable label changes and session summaries
"""

from .base import BasePublisher
from .session import SessionPublisher

__all__ = [
    'BasePublisher',
    'SessionPublisher',
]
