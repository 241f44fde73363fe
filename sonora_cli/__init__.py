"""
Sonora CLI - Command-line interface for aggregation sessions.

Usage:
    sonora replay recordings/session.jsonl
    sonora --config config/engine.yaml replay recordings/session.jsonl
    sonora --config config/engine.yaml listen
"""

__version__ = "1.0.0"
