"""
monolaunch - command line entry point.

Usage:
  monolaunch run [--service]     run the launcher (or surface the running one)
  monolaunch check               exit 1 if a launcher is already running
  monolaunch list [--limit N]    print the ranked program index

Exit status:
  0  this process ran (or could run) the launcher
  1  another instance is running and was asked to show itself
  2  the lock file could not be written
"""

import argparse
import asyncio
import signal
import sys
from typing import Any, Optional

from loguru import logger

from .services.instance_lock import InstanceCoordinator, InstanceLockError, LockOutcome
from .services.launcher import LauncherService
from .services.preferences import PreferenceStore
from .services.programs import build_index
from .utils.helpers import load_settings, resolve_path

EXIT_OK = 0
EXIT_ALREADY_RUNNING = 1
EXIT_ENVIRONMENT_ERROR = 2


def configure_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


async def _run(settings: dict[str, Any], service_mode: bool) -> int:
    service = LauncherService.from_settings(settings, service_mode=service_mode)
    try:
        outcome = await service.start()
    except InstanceLockError as e:
        logger.error(f"Could not start launcher: {e}")
        return EXIT_ENVIRONMENT_ERROR

    if outcome is LockOutcome.ALREADY_RUNNING:
        return EXIT_ALREADY_RUNNING

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.close)
        except NotImplementedError:
            # No loop signal handlers on Windows; atexit still cleans up
            pass

    try:
        await service.wait_closed()
    finally:
        await service.stop()
    return EXIT_OK


async def _check(settings: dict[str, Any]) -> int:
    coordinator = InstanceCoordinator.from_settings(settings)
    try:
        outcome = await coordinator.acquire()
    except InstanceLockError as e:
        logger.error(f"Could not check launcher lock: {e}")
        return EXIT_ENVIRONMENT_ERROR

    if outcome is LockOutcome.ALREADY_RUNNING:
        return EXIT_ALREADY_RUNNING

    coordinator.release()
    return EXIT_OK


def _list(settings: dict[str, Any], limit: Optional[int]) -> int:
    preferences = PreferenceStore(resolve_path(settings["paths"]["preferences"])).load()
    directories = [resolve_path(d) for d in settings["index"]["directories"]]
    programs = build_index(directories, preferences)

    for program in programs[:limit]:
        print(f"{program.run_count:>5}  {program.id}  {program.name or ''}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monolaunch",
        description="Single-instance application launcher",
    )
    parser.add_argument("--settings", help="Path to settings.toml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the launcher")
    run_parser.add_argument(
        "--service",
        action="store_true",
        help="Start hidden and keep running after the launcher is dismissed",
    )

    subparsers.add_parser("check", help="Exit 1 if a launcher is already running")

    list_parser = subparsers.add_parser("list", help="Print the ranked program index")
    list_parser.add_argument("--limit", type=int, default=None, help="Maximum number of programs")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    settings = load_settings(args.settings)

    if args.command == "run":
        return asyncio.run(_run(settings, args.service))
    if args.command == "check":
        return asyncio.run(_check(settings))
    return _list(settings, args.limit)


if __name__ == "__main__":
    sys.exit(main())
