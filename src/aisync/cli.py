"""Command line entry point for aisync.

Commands:

- ``aisync sync``  -- run one full or incremental pass and print a report.
- ``aisync watch`` -- poll the sources and sync on every change.
- ``aisync init``  -- write a starter configuration file.

Reports go to stdout; log records and error messages go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config_loader import ensure_config, load_config
from .config_schema import SyncConfig, SyncMode
from .errors import AisyncError
from .logger import setup_logging
from .sync import SyncEngine, format_sync_result, result_to_json, watch
from .sync.models import SyncResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aisync",
        description="aisync - keep AI tool rules and MCP settings in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create aisync.config.yml in the current directory
  aisync init

  # Write every source into every enabled target
  aisync sync --mode full

  # Only changed sources, with a JSON report for scripts
  aisync sync --json

  # Keep syncing while you edit (Ctrl-C to stop)
  aisync watch --config ~/.config/aisync/config.yml
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"aisync version {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (overrides LOG_LEVEL and the config file)",
    )
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Log record format on stderr (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync", help="Run one sync pass"
    )
    _add_config_argument(sync_parser)
    sync_parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in SyncMode],
        help="Sync mode (default: the 'mode' setting of the config file)",
    )
    sync_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="List every file written",
    )
    sync_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON on stdout",
    )
    sync_parser.add_argument(
        "--log-file",
        help="Also write log records to this file",
    )

    watch_parser = subparsers.add_parser(
        "watch", help="Sync whenever a source file changes"
    )
    _add_config_argument(watch_parser)
    watch_parser.add_argument(
        "--log-file",
        help="Also write log records to this file",
    )

    init_parser = subparsers.add_parser(
        "init", help="Write a starter configuration file"
    )
    init_parser.add_argument(
        "-o",
        "--output",
        help="Path to create (default: ./aisync.config.yml unless a "
        "config file is already discoverable)",
    )

    return parser


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c",
        "--config",
        help="Config file (default: AISYNC_CONFIG, then ./aisync.config.json, "
        "./aisync.config.yml, ./.aisync/config.yml, "
        "~/.config/aisync/config.yml)",
    )


def _configure(args: argparse.Namespace) -> SyncConfig:
    config = load_config(args.config)
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        debug_format=args.debug_format,
        level=config.logging.level,
    )
    return config


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


def _cmd_sync(args: argparse.Namespace) -> int:
    config = _configure(args)
    engine = SyncEngine(config)
    result = engine.run(args.mode)

    if args.json:
        print(json.dumps(result_to_json(result), indent=2))
    else:
        print(format_sync_result(result, verbose=args.verbose))
    return EXIT_OK if result.success else EXIT_FAILURE


def _cmd_watch(args: argparse.Namespace) -> int:
    config = _configure(args)
    engine = SyncEngine(config)
    stop_event = threading.Event()

    def _report(result: SyncResult) -> None:
        print(format_sync_result(result), flush=True)

    try:
        watch(engine, stop_event=stop_event, on_result=_report)
    except KeyboardInterrupt:
        stop_event.set()
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    return EXIT_OK


def _cmd_init(args: argparse.Namespace) -> int:
    setup_logging(debug=args.debug, debug_format=args.debug_format)
    target = Path(args.output) if args.output else None
    existed = target.exists() if target is not None else False
    path = ensure_config(target)
    if existed:
        print(f"Config file already exists: {path}")
    else:
        print(f"Config file: {path}")
    return EXIT_OK


_COMMANDS = {
    "sync": _cmd_sync,
    "watch": _cmd_watch,
    "init": _cmd_init,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command, and return the exit status."""
    load_dotenv()
    args = _build_parser().parse_args(argv)

    try:
        return _COMMANDS[args.command](args)
    except AisyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
