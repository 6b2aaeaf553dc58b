#!/usr/bin/env python3
"""
unitctl - Drive systemd units through the unit manager
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from unit_manager import __version__
from unit_manager.application.services.unit_manager import UnitManager
from unit_manager.cli.formatter import OutputFormatter
from unit_manager.domain.errors import DisconnectedError, UnitManagerError
from unit_manager.infrastructure.config.settings import get_settings
from unit_manager.infrastructure.logging import bind_context, configure_logging

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DISCONNECTED = 3
EXIT_TIMEOUT = 4
EXIT_INTERRUPTED = 130

ACTIONS = {
    "start": "started",
    "stop": "stopped",
    "restart": "restarted",
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="unitctl",
        description="Start, stop, restart and watch systemd units over D-Bus"
    )

    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Give up after this many seconds (default: wait indefinitely)"
    )
    parser.add_argument(
        "--format",
        choices=["pretty", "json", "yaml"],
        default="pretty",
        help="Output format (default: pretty)"
    )
    parser.add_argument(
        "--bus",
        choices=["system", "session"],
        default=None,
        help="D-Bus to connect to (default: from UNIT_MANAGER_BUS_TYPE, else system)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from UNIT_MANAGER_LOG_LEVEL, else INFO)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    for command in ("start", "stop", "restart"):
        sub = commands.add_parser(command, help=f"Synchronously {command} a unit")
        sub.add_argument("unit", help="Unit name, e.g. nginx.service")
    uptime = commands.add_parser("uptime", help="Show how long a unit's main process has been running")
    uptime.add_argument("unit", help="Unit name, e.g. nginx.service")
    watch = commands.add_parser("watch", help="Print status changes of a unit until interrupted")
    watch.add_argument("unit", help="Unit name, e.g. nginx.service")

    return parser.parse_args(argv)


async def _watch(manager: UnitManager, args: argparse.Namespace, formatter: OutputFormatter) -> int:
    queue: asyncio.Queue = asyncio.Queue(maxsize=1)

    async def print_changes() -> None:
        while True:
            status = await queue.get()
            print(formatter.format_status(args.unit, status), flush=True)

    printer = asyncio.create_task(print_changes())
    try:
        await manager.watch(args.unit, queue, timeout=args.timeout)
    except asyncio.TimeoutError:
        # Watching for a bounded time ends by timing out.
        pass
    finally:
        printer.cancel()
        try:
            await printer
        except asyncio.CancelledError:
            pass
        # Snapshots still queued when watch ended
        while not queue.empty():
            print(formatter.format_status(args.unit, queue.get_nowait()), flush=True)
    return EXIT_OK


async def run(args: argparse.Namespace) -> int:
    """Run one command and return the process exit code"""
    settings = get_settings()
    if args.bus:
        settings = settings.model_copy(update={"bus_type": args.bus})

    configure_logging(
        log_level=args.log_level or settings.log_level,
        log_format=settings.log_format,
    )
    bind_context(bus=settings.bus_type)

    formatter = OutputFormatter(format=args.format)

    try:
        manager = await UnitManager.create(settings=settings)
    except UnitManagerError as e:
        print(formatter.format_error(e), file=sys.stderr)
        return EXIT_DISCONNECTED

    async with manager:
        try:
            if args.command in ACTIONS:
                await getattr(manager, args.command)(args.unit, timeout=args.timeout)
                print(formatter.format_action(args.unit, ACTIONS[args.command]))
            elif args.command == "uptime":
                uptime = await manager.uptime(args.unit, timeout=args.timeout)
                print(formatter.format_uptime(args.unit, uptime))
            else:
                return await _watch(manager, args, formatter)
        except DisconnectedError as e:
            print(formatter.format_error(e), file=sys.stderr)
            return EXIT_DISCONNECTED
        except UnitManagerError as e:
            print(formatter.format_error(e), file=sys.stderr)
            return EXIT_ERROR
        except asyncio.TimeoutError:
            print(formatter.format_error(f"{args.command} {args.unit} timed out after {args.timeout} seconds"), file=sys.stderr)
            return EXIT_TIMEOUT

    return EXIT_OK


def entry_point():
    """CLI entry point"""
    args = parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    entry_point()
