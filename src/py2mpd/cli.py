"""
Command-Line Interface - Argument Parsing and Entry Point

This module provides a small command runner on top of ConnectionManager.
It connects, sends each given command (or all of them as one command list)
and prints the parsed responses.

Usage:
    python -m py2mpd status
    python -m py2mpd --shape items --host 192.168.1.20 "lsinfo"
    python -m py2mpd --command-list "add a.ogg" "add b.ogg"
    python -m py2mpd --help
"""

import sys
import argparse
import logging
from typing import List, Optional

from py2mpd.core.connection_manager import ConnectionManager
from py2mpd.core.errors import MPDError
from py2mpd.models.item import Item
from py2mpd.models.notifications import ConnectErrorRetriable, Notification
from py2mpd.models.request import OutputShape, Request
from py2mpd.services.configuration_service import ConfigurationService


SHAPES = {
    'raw': OutputShape.RAW,
    'items': OutputShape.STRUCTURED_RECORDS,
    'kv': OutputShape.KEY_VALUE_PAIRS,
    'strip': OutputShape.SINGLE_FIELD_STRIPPED,
}


def quote_argument(value: str) -> str:
    """Quote a command argument, escaping backslashes and double quotes."""
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: List of arguments to parse. If None, uses sys.argv[1:]

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="py2mpd",
        description="Send commands to an MPD server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status
  %(prog)s --shape items "playlistinfo"
  %(prog)s --command-list "add a.ogg" "add b.ogg"

MPD_HOST and MPD_PORT override the configuration file.
        """
    )

    parser.add_argument("commands", nargs="+", help="Commands to send, one per argument")
    parser.add_argument("--config", type=str, default=None,
                        help="YAML configuration file")
    parser.add_argument("--host", type=str, default=None, help="Server host")
    parser.add_argument("--port", type=int, default=None, help="Server port")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Connection attempts before giving up")
    parser.add_argument("--retry-wait", type=float, default=None,
                        help="Seconds between connection attempts")
    parser.add_argument("--shape", choices=sorted(SHAPES), default="raw",
                        help="How response lines are parsed (default: raw)")
    parser.add_argument("--command-list", action="store_true",
                        help="Wrap the commands in command_list_begin/command_list_end")
    parser.add_argument("--timeout", type=float, default=10.0,
                        help="Seconds to wait for the response (default: 10)")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (default: WARNING)"
    )

    return parser.parse_args(args)


def setup_logging(level: str):
    """Configure application logging.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), None)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def format_result(result: list) -> List[str]:
    """Render a request result as printable lines."""
    lines = []
    for entry in result:
        if isinstance(entry, Item):
            lines.append(f"{type(entry).__name__}:")
            lines.extend(f"  {field}: {value}" for field, value in entry)
        else:
            lines.append(str(entry))
    return lines


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the command runner.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    parsed_args = parse_args(args)
    setup_logging(parsed_args.log_level)
    logger = logging.getLogger(__name__)

    service = ConfigurationService()
    try:
        config = service.load(parsed_args.config).with_overrides(
            host=parsed_args.host,
            port=parsed_args.port,
            max_retries=parsed_args.max_retries,
            retry_wait=parsed_args.retry_wait,
        )

        shape = SHAPES[parsed_args.shape]
        # One sentinel answers each request, so plain commands go out one per request
        if parsed_args.command_list:
            requests = [Request.command_list(parsed_args.commands, shape)]
        else:
            requests = [Request(command, shape) for command in parsed_args.commands]
        if service.password:
            requests.insert(0, Request(f'password {quote_argument(service.password)}'))
    except MPDError as e:
        print(f"Error: {e.format_user_message()}", file=sys.stderr)
        return 1

    def on_notification(notification: Notification) -> None:
        if isinstance(notification, ConnectErrorRetriable):
            logger.warning(f"Connection failed, retrying: {notification.reason}")

    manager = ConnectionManager(config)
    manager.add_listener(on_notification)
    try:
        manager.connect()
        for request in requests:
            manager.submit(request)

        for request in requests:
            if not request.wait(parsed_args.timeout):
                print(f"Error: no response within {parsed_args.timeout}s", file=sys.stderr)
                return 1

            if not request.succeeded:
                print(f"Error: {request.error}", file=sys.stderr)
                return 1

            for line in format_result(request.result):
                print(line)
        return 0

    except MPDError as e:
        logger.error(e.format_log_message())
        print(f"Error: {e.format_user_message()}", file=sys.stderr)
        return 1
    finally:
        manager.shutdown()


if __name__ == "__main__":
    sys.exit(main())
