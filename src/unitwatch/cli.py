"""Command line entry point for unitwatch."""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from unitwatch.config import load_config
from unitwatch.errors import ConfigError
from unitwatch.log import setup_logger
from unitwatch.sinks import build_sinks
from unitwatch.units import ProcessNameEnumerator, SystemdEnumerator
from unitwatch.watcher import Watcher

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unitwatch",
        description="Sample CPU usage of running service units and store it in batches.",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--tick-interval", help="time between polls, e.g. 10s")
    parser.add_argument("--sample-window", help="CPU sampling window, e.g. 1s")
    parser.add_argument("--max-rows", type=int, help="rows per batch before upload")
    parser.add_argument("--max-age", help="maximum batch age before upload, e.g. 60s")
    parser.add_argument(
        "--flush-on-shutdown",
        action="store_true",
        default=None,
        help="upload the pending batch on shutdown instead of dropping it",
    )
    parser.add_argument(
        "--unit-pattern",
        action="append",
        dest="unit_patterns",
        help="watch processes whose name matches this glob instead of systemd services",
    )
    parser.add_argument(
        "--jsonl",
        action="append",
        type=Path,
        default=[],
        help="append rows to this JSON lines file (repeatable)",
    )
    parser.add_argument("--log-sink", action="store_true", help="log every row")
    parser.add_argument("--verbose", action="store_true", default=None, help="debug output")
    parser.add_argument("--log-file", type=Path, help="write detailed logs to this file")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the unitwatch command."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(
            args.config,
            overrides={
                "tick_interval": args.tick_interval,
                "sample_window": args.sample_window,
                "max_rows": args.max_rows,
                "max_age": args.max_age,
                "flush_on_shutdown": args.flush_on_shutdown,
                "verbose": args.verbose,
                "unit_patterns": args.unit_patterns,
            },
        )
        sink_specs = list(config.sinks)
        sink_specs += [{"type": "jsonl", "path": str(path)} for path in args.jsonl]
        if args.log_sink:
            sink_specs.append({"type": "log"})
        sinks = build_sinks(sink_specs)
    except ConfigError as exc:
        print(f"unitwatch: {exc}", file=sys.stderr)
        return 2

    setup_logger(
        "unitwatch",
        level=logging.DEBUG if config.verbose else logging.INFO,
        log_file=args.log_file,
    )
    if not sinks:
        logger.warning("No sinks configured, rows will be discarded")

    if config.unit_patterns:
        enumerator = ProcessNameEnumerator(config.unit_patterns)
    else:
        enumerator = SystemdEnumerator()

    stop_event = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    watcher = Watcher(config, enumerator, sinks, stop_event=stop_event)
    watcher.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
