"""Trading telemetry logger: main entry point.

Loads configuration, starts the periodic sampling and rotation tasks, and
handles graceful shutdown on SIGTERM/SIGINT.

Usage:
    tradelog                 # Run until interrupted
    tradelog --paths         # Print active channel file paths and exit
    tradelog --purge         # Delete channel files past retention and exit
    tradelog --stats         # Print counters as JSON and exit
    tradelog --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

import structlog

from .core.config import Settings, config_from_settings, load_settings
from .monitoring.logger import setup_logging
from .telemetry import PnLLogger

logger = structlog.get_logger()


class TelemetryService:
    """Runs a PnLLogger until a shutdown is requested."""

    def __init__(self, pnl_logger: PnLLogger) -> None:
        self._pnl_logger = pnl_logger
        self._shutdown_event = asyncio.Event()

    @property
    def pnl_logger(self) -> PnLLogger:
        return self._pnl_logger

    async def run(self) -> None:
        """Start the timers and block until shutdown."""
        self._pnl_logger.start()
        self._pnl_logger.log_system("info", "telemetry service started")

        await self._shutdown_event.wait()

        await self.shutdown()

    async def shutdown(self) -> None:
        """Stop timers, record a final line and release file handles."""
        logger.info("service_shutting_down")

        try:
            self._pnl_logger.log_system("info", "telemetry service stopping", **self._pnl_logger.get_stats())
        except Exception:
            logger.exception("final_system_entry_error")

        self._pnl_logger.stop()
        # Let cancelled tasks unwind before the loop closes
        await asyncio.sleep(0)
        self._pnl_logger.close()

        logger.info("service_shutdown_complete", stats=self._pnl_logger.get_stats())

    def request_shutdown(self) -> None:
        """Request a graceful shutdown (called from signal handlers)."""
        logger.info("shutdown_requested")
        self._shutdown_event.set()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Trading telemetry logger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to telemetry YAML (default: from settings)",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Override the telemetry channel root directory",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level from settings",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=True,
        help="Output JSON formatted logs (default: True)",
    )
    parser.add_argument(
        "--no-json-logs",
        action="store_false",
        dest="json_logs",
        help="Output human-readable console logs",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Path to diagnostic log file (in addition to stdout)",
    )

    action = parser.add_mutually_exclusive_group()
    action.add_argument(
        "--paths",
        action="store_true",
        help="Print active channel file paths and exit",
    )
    action.add_argument(
        "--purge",
        action="store_true",
        help="Delete channel files older than the retention window and exit",
    )
    action.add_argument(
        "--stats",
        action="store_true",
        help="Print counters and state as JSON and exit",
    )
    return parser.parse_args(argv)


def build_logger(settings: Settings, args: argparse.Namespace) -> PnLLogger:
    """Resolve the pipeline config from settings plus CLI overrides."""
    config = config_from_settings(settings, Path(args.config) if args.config else None)
    overrides = {}
    if args.log_dir:
        overrides["log_dir"] = Path(args.log_dir)
    return PnLLogger(config, **overrides)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the telemetry logger."""
    args = parse_args(argv)

    # Load settings
    try:
        settings = load_settings()
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        sys.exit(1)

    # CLI overrides
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(
        log_level=settings.log_level,
        json_output=args.json_logs,
        log_file=args.log_file,
        labels={"app": settings.app_name, "env": settings.app_env},
    )

    try:
        pnl_logger = build_logger(settings, args)
    except Exception as e:
        print(f"Error loading telemetry config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.paths:
        paths = pnl_logger.get_log_file_paths()
        print(json.dumps({name: str(path) for name, path in paths.items()}, indent=2))
        return

    if args.purge:
        removed = pnl_logger.purge_expired()
        logger.info("purge_complete", removed=len(removed))
        for path in removed:
            print(path)
        return

    if args.stats:
        print(json.dumps(pnl_logger.get_stats(), indent=2, default=str))
        return

    # Startup banner
    logger.info(
        "tradelog",
        version="0.1.0",
        log_dir=str(pnl_logger.config.log_dir),
        log_level=settings.log_level,
    )

    service = TelemetryService(pnl_logger)

    # Register signal handlers for graceful shutdown
    loop = asyncio.new_event_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_shutdown)

    try:
        loop.run_until_complete(service.run())
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")
    finally:
        pnl_logger.close()
        loop.close()


if __name__ == "__main__":
    main()
