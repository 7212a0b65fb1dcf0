"""
Command-line entry points: ``dsuld`` (daemon) and ``dsulc`` (client).

Usage::

    dsuld --comport /dev/ttyUSB0 --baudrate 38400 --verbose
    dsulc --color red --brightness 100
    dsulc --list --network 192.168.1.20 --password hunter2
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .client import DsulClient, build_commands
from .config import Settings, load_settings
from .constants import MAX_BAUD, MIN_BAUD
from .daemon import run_daemon
from .exceptions import DsulError
from .ipc import ClientChannel, client_endpoint
from .telemetry import HardwareTelemetry

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _configure_logging(verbose: bool, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format=_LOG_FORMAT)


def _load(path: Path | None) -> Settings | None:
    try:
        return load_settings(path)
    except (OSError, DsulError) as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return None


# ---------------------------------------------------------------------------
# dsuld
# ---------------------------------------------------------------------------


def _baudrate(value: str) -> int:
    try:
        baud = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid baudrate: {value!r}") from exc
    if not (MIN_BAUD <= baud <= MAX_BAUD):
        raise argparse.ArgumentTypeError(
            f"baudrate is outside allowed range ({MIN_BAUD}-{MAX_BAUD})"
        )
    return baud


def _password(value: str) -> str:
    if not value:
        raise argparse.ArgumentTypeError("password can't be empty")
    return value


def build_daemon_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dsuld", description="Disturb State USB Light - Daemon")
    parser.add_argument("-c", "--comport", help="Set COM port (path)")
    parser.add_argument("-b", "--baudrate", type=_baudrate, help="Set COM port baudrate")
    parser.add_argument("-n", "--network", action="store_true", help="Enable network mode")
    parser.add_argument("-p", "--password", type=_password, help="Set password")
    parser.add_argument("--config", type=Path, help="Path to YAML config file")
    parser.add_argument("-v", "--version", action="version", version=f"dsuld v{__version__}")
    parser.add_argument("--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--debug", action="store_true", help="Show debug output")
    return parser


def daemon_main(argv: list[str] | None = None) -> int:
    args = build_daemon_parser().parse_args(argv)
    _configure_logging(args.verbose, args.debug)

    settings = _load(args.config)
    if settings is None:
        return 1

    if args.comport:
        logger.info("Set COM port: %s", args.comport)
        settings.serial.port = args.comport
    if args.baudrate:
        logger.info("Set COM port baudrate: %d", args.baudrate)
        settings.serial.baudrate = args.baudrate
    if args.network:
        logger.info("Using network mode. Listening on port: %d", settings.network.port)
        settings.network.listen = True
    if args.password:
        logger.info("Using password authentication.")
        settings.password = args.password

    try:
        asyncio.run(run_daemon(settings))
    except DsulError as exc:
        logger.critical("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


# ---------------------------------------------------------------------------
# dsulc
# ---------------------------------------------------------------------------


def build_client_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dsulc", description="Disturb State USB Light - CLI")
    parser.add_argument("-c", "--color", help="Set given color")
    parser.add_argument("-l", "--list", action="store_true", help="List settings and values")
    parser.add_argument("-m", "--mode", help="Set given mode")
    parser.add_argument("-b", "--brightness", type=int, help="Set given brightness")
    parser.add_argument("-d", "--dim", action="store_true", help="Dim colors")
    parser.add_argument("-u", "--undim", action="store_true", help="Un-dim colors")
    parser.add_argument("-n", "--network", help="Network server to connect to")
    parser.add_argument("-p", "--password", type=_password, help="Set password")
    parser.add_argument("--config", type=Path, help="Path to YAML config file")
    parser.add_argument("-v", "--version", action="version", version=f"dsulc v{__version__}")
    parser.add_argument("--verbose", action="store_true", help="Show verbose output")
    return parser


def show_information(settings: Settings, telemetry: HardwareTelemetry | None) -> None:
    """Print configured choices and, when known, the current hardware values."""
    print("[modes]")
    for mode in settings.modes:
        print(f"- {mode.name}")

    print("\n[colors]")
    for color in settings.colors:
        print(f"- {color.name}")

    print("\n[brightness]")
    print(f"- min = {settings.brightness_min}")
    print(f"- max = {settings.brightness_max}")

    if telemetry is not None and telemetry.version is not None:
        print("\n[hardware values]")
        print(f"- version = {telemetry.version}")
        print(f"- color = {telemetry.current_color}")
        print(f"- mode = {telemetry.current_mode}")
        print(f"- brightness = {telemetry.current_brightness}")
        print(f"- dim = {telemetry.current_dim}")


def _known_mode(settings: Settings, value: str) -> bool:
    """Accept a configured mode name or its 1-based ordinal."""
    if settings.resolve_mode(value) is not None:
        return True
    return value.isdigit() and 1 <= int(value) <= settings.mode_count


def _validate_client_args(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> None:
    if args.color and ":" not in args.color and settings.resolve_color(args.color) is None:
        parser.error("Color given is not supported.")
    if args.mode and not _known_mode(settings, args.mode):
        parser.error("Mode given is not supported.")
    if args.brightness is not None and not (
        settings.brightness_min <= args.brightness <= settings.brightness_max
    ):
        parser.error(
            f"Brightness must be between {settings.brightness_min} and {settings.brightness_max}."
        )


async def _run_client(settings: Settings, commands: list) -> None:
    channel = ClientChannel(client_endpoint(settings))
    channel.open()
    client = DsulClient(
        channel,
        settings,
        on_telemetry=lambda telemetry: show_information(settings, telemetry),
    )
    for command in commands:
        client.send(command)
    client.close()
    try:
        await client.run()
    finally:
        channel.close()


def client_main(argv: list[str] | None = None) -> int:
    parser = build_client_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = _load(args.config)
    if settings is None:
        return 1

    if args.network:
        logger.info("Using network mode. Connecting to: %s (%d)", args.network, settings.network.port)
        settings.network.server = args.network
    if args.password:
        logger.info("Using password authentication.")
        settings.password = args.password

    _validate_client_args(parser, args, settings)
    commands = build_commands(
        settings,
        information=args.list,
        mode=args.mode,
        brightness=args.brightness,
        dim=args.dim,
        undim=args.undim,
        color=args.color,
    )
    if not commands:
        parser.print_usage(sys.stderr)
        return 1

    try:
        asyncio.run(_run_client(settings, commands))
    except DsulError as exc:
        logger.critical("%s", exc)
        return 1
    return 0
