"""
Sonora CLI - Main entry point.

Runs aggregation sessions from the command line:

- replay: feed a JSONL file of classification events through one session
- listen: live session fed from MQTT until SIGINT/SIGTERM
"""

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple

from sonora_core import (
    AggregationController,
    ClassificationEvent,
    ClassificationStream,
    EngineConfig,
    StableLabel,
    create_logger,
)
from sonora_mqtt import ClassificationSubscriber, SessionPublisher

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """Plain-text root logging on stderr (structured loggers write JSON)."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )


def load_config(config_path: Optional[str]) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        config_path: Path to YAML file, or None for defaults

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML or values are invalid
    """
    if config_path is None:
        return EngineConfig()
    return EngineConfig.from_yaml(config_path)


def read_events(events_path: Path) -> Tuple[List[ClassificationEvent], int]:
    """
    Parse a JSONL file of classification events.

    Blank lines are skipped. Lines that are not valid JSON objects with
    label/confidence are counted and skipped; range checks are left to
    the engine.

    Returns:
        (events, skipped_line_count)
    """
    events = []
    skipped = 0
    with open(events_path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValueError("line is not a JSON object")
                events.append(ClassificationEvent.from_dict(data))
            except ValueError as e:
                skipped += 1
                logger.warning(f"Skipping line {line_no} of {events_path}: {e}")
    return events, skipped


def run_replay(
    events_path: Path,
    config: EngineConfig,
    out: Optional[TextIO] = None,
    show_labels: bool = True
) -> Dict[str, Any]:
    """
    Replay a JSONL event file through one session.

    Stable label changes are written to `out` as JSON lines, followed by
    one JSON line with the session summary.

    Returns:
        The summary dictionary that was written
    """
    out = out or sys.stdout
    events, skipped = read_events(events_path)

    def print_label(stable: StableLabel) -> None:
        if show_labels and not stable.is_placeholder:
            out.write(json.dumps({'stable_label': stable.to_dict()}) + "\n")

    stream = ClassificationStream()
    controller = AggregationController(
        stream,
        config=config,
        on_stable_label=print_label,
    )

    session_id = controller.start()
    for event in events:
        stream.publish(event)
    stream.close()

    if not controller.wait(timeout=config.stop_timeout + len(events) * 0.01):
        logger.warning("Replay did not reach end of stream before timeout")

    summary = controller.stop()
    report = {
        'session_id': session_id,
        'predominant': summary.to_dict() if summary else None,
        'scoreboard': [
            entry.to_dict()
            for entry in sorted(
                controller.snapshot().values(), key=lambda s: s.score, reverse=True
            )
        ],
        'stats': {**controller.get_stats(), 'lines_skipped': skipped},
    }
    out.write(json.dumps({'summary': report}) + "\n")
    return report


class ListenApp:
    """
    Live session fed from MQTT.

    Handles:
    - Component initialization (subscriber, publisher, controller)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown with summary publication
    """

    def __init__(self, config: EngineConfig):
        self.config = config
        self._shutdown = threading.Event()

        mqtt_config = config.mqtt_config
        self.stream = ClassificationStream()
        self.subscriber = ClassificationSubscriber(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=mqtt_config.classification_topic,
            stream=self.stream,
            logger=create_logger("subscriber", level=config.logging_level),
            client_id=f"{mqtt_config.client_id}_subscriber",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        self.publisher = SessionPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            stable_label_topic=mqtt_config.stable_label_topic,
            summary_topic=mqtt_config.summary_topic,
            logger=create_logger("publisher", level=config.logging_level),
            client_id=f"{mqtt_config.client_id}_publisher",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        self.controller = AggregationController(
            self.stream,
            config=config,
            on_stable_label=self._publish_stable_label,
        )

    def _publish_stable_label(self, stable: StableLabel) -> None:
        self.publisher.publish_stable_label(stable, session_id=self.controller.session_id)

    def _handle_signal(self, signum, frame) -> None:
        logger.info(f"Received signal {signum}, shutting down")
        self._shutdown.set()

    def run(self) -> int:
        """Run until a signal arrives. Returns the process exit code."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

        if not self.publisher.connect():
            logger.error("Could not connect session publisher")
            return 1
        if not self.subscriber.connect():
            logger.error("Could not connect classification subscriber")
            self.publisher.disconnect()
            return 1

        self.controller.start()
        self.subscriber.start()
        logger.info("Listening for classifications (Ctrl+C to stop)")

        try:
            while not self._shutdown.wait(timeout=0.5):
                pass
        finally:
            self.subscriber.stop()
            summary = self.controller.stop()
            self.publisher.publish_summary(
                summary,
                self.controller.snapshot(),
                session_id=self.controller.session_id
            )
            self.publisher.disconnect()

        if summary:
            logger.info(
                f"Predominant: {summary.label} "
                f"(score={summary.score:.2f}, occurrences={summary.occurrences})"
            )
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sonora",
        description="Sonora - stabilize classifier output and summarize sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay recorded classifications through one session
  sonora replay recordings/session.jsonl

  # Use a custom window size / placeholder
  sonora --config config/engine.yaml replay recordings/session.jsonl

  # Live session from MQTT (Ctrl+C ends the session and publishes the summary)
  sonora --config config/engine.yaml listen
"""
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to engine config YAML (default: built-in defaults)"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    replay = subparsers.add_parser('replay', help='Replay a JSONL event file')
    replay.add_argument('events', help='Path to JSONL file of classification events')
    replay.add_argument(
        '--summary-only',
        action='store_true',
        help='Only print the final session summary'
    )

    listen = subparsers.add_parser('listen', help='Live session fed from MQTT')
    listen.add_argument('--broker', default=None, help='Override MQTT broker host')
    listen.add_argument('--port', type=int, default=None, help='Override MQTT broker port')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging_level)

    if args.command == 'replay':
        events_path = Path(args.events)
        if not events_path.exists():
            print(f"Error: events file not found: {events_path}", file=sys.stderr)
            return 1
        run_replay(events_path, config, show_labels=not args.summary_only)
        return 0

    if args.command == 'listen':
        if args.broker or args.port:
            mqtt_config = replace(
                config.mqtt_config,
                broker=args.broker or config.mqtt_config.broker,
                port=args.port or config.mqtt_config.port,
            )
            config = replace(config, mqtt_config=mqtt_config)
        return ListenApp(config).run()

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
