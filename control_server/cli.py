"""
Rundown control server CLI.

Entry point:
    rundown-control   - run the WebSocket control server for one episode
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError


def validate_port(value: str) -> int:
    """Validate port number is in valid range."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid port number: {value}")

    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"Port must be between 1 and 65535, got: {port}")
    return port


def validate_positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Must be positive, got: {number}")
    return number


def build_parser(settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rundown-control",
        description="Rundown control server - live execution of an episode rundown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rundown-control --episode 42                      # Fetch episode 42 from the rundown API
  rundown-control --rundown-file show.json          # Run a saved rundown
  rundown-control --demo --no-metrics               # Built-in demo rundown
        """,
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--episode",
        "-e",
        default=settings.episode_id,
        help="Episode id to fetch (default: $RUNDOWN_EPISODE_ID)",
    )
    source.add_argument(
        "--rundown-file",
        help="Load the rundown from a JSON file instead of the API",
    )
    source.add_argument(
        "--demo",
        action="store_true",
        help="Use the built-in demo rundown",
    )

    parser.add_argument(
        "--api-base-url",
        default=settings.api_base_url,
        help=f"Rundown API base URL (default: {settings.api_base_url} or $RUNDOWN_API_BASE_URL)",
    )
    parser.add_argument(
        "--host",
        default=settings.control_host,
        help=f"Bind address (default: {settings.control_host})",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=validate_port,
        default=settings.control_port,
        help=f"Control WebSocket port (default: {settings.control_port} or $RUNDOWN_CONTROL_PORT)",
    )
    parser.add_argument(
        "--tick-ms",
        type=validate_positive_int,
        default=settings.tick_interval_ms,
        help=f"Timer tick interval in ms (default: {settings.tick_interval_ms})",
    )
    parser.add_argument(
        "--metrics-port",
        type=validate_port,
        default=settings.metrics_port,
        help=f"Port for metrics HTTP endpoint (default: {settings.metrics_port} or $RUNDOWN_METRICS_PORT)",
    )
    parser.add_argument(
        "--no-metrics",
        action="store_true",
        help="Disable metrics HTTP endpoint",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def create_source(args, settings):
    from control_server.rundown_source import (
        FileRundownSource,
        HttpRundownSource,
        StaticRundownSource,
        create_demo_rundown,
    )

    if args.demo:
        return StaticRundownSource(create_demo_rundown())
    if args.rundown_file:
        return FileRundownSource(args.rundown_file, settings.default_automation_duration)
    return HttpRundownSource(
        args.api_base_url,
        str(args.episode),
        timeout=settings.fetch_timeout,
        default_duration=settings.default_automation_duration,
    )


def main(argv: Optional[List[str]] = None) -> int:
    from control_server.config import get_settings
    from control_server.logging_config import configure_logging

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        return 2

    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if not (args.demo or args.rundown_file or args.episode):
        parser.error("one of --episode, --rundown-file or --demo is required")

    configure_logging(settings.env, logging.DEBUG if args.debug else logging.INFO)

    from control_server.server import ControlServer

    server = ControlServer(
        create_source(args, settings),
        host=args.host,
        port=args.port,
        tick_interval_ms=args.tick_ms,
        metrics_port=None if args.no_metrics else args.metrics_port,
    )

    def signal_handler(sig, frame):
        server.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    async def _run():
        try:
            await server.run()
        finally:
            await server.cleanup()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass

    return 0


if __name__ == "__main__":
    sys.exit(main())
