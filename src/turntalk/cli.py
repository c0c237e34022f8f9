"""Command-line entry point for turntalk."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TextIO

from .config import PeerConfig, load_config_from_env
from .errors import BindError, ConfigError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

_SUBCOMMANDS = {"tui", "script"}


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-p", "--port", type=int, default=None, help="Port to listen on")
    parser.add_argument("--host", default=None, help="Address to listen on (default 127.0.0.1)")
    parser.add_argument("--delimiter", default=None, help="Single character that ends a sentence")
    parser.add_argument("--log-level", default=None, help="Diagnostic log level (default INFO)")
    parser.add_argument("--log-file", default=None, help="Write diagnostics to this file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="turntalk", description="Turn-based peer-to-peer chat")
    subparsers = parser.add_subparsers(dest="command", required=True)

    tui_parser = subparsers.add_parser("tui", help="Run the interactive terminal client")
    _add_common_arguments(tui_parser)

    script_parser = subparsers.add_parser("script", help="Drive a peer from a command script")
    _add_common_arguments(script_parser)
    script_parser.add_argument(
        "-f",
        "--file",
        type=argparse.FileType("r"),
        default=None,
        help="Path to the script; defaults to stdin",
    )
    return parser


def _resolve_config(args: argparse.Namespace) -> PeerConfig:
    return load_config_from_env().with_overrides(
        listen_port=args.port,
        listen_host=args.host,
        delimiter=args.delimiter,
    )


def _run_tui(config: PeerConfig) -> int:
    from .tui_app import run_tui

    return run_tui(config)


def _run_script(args: argparse.Namespace, config: PeerConfig, output: TextIO) -> int:
    from .script import run_script

    handle = args.file or sys.stdin
    lines = handle.readlines()
    asyncio.run(run_script(lines, config, output))
    return 0


def main(argv: list[str] | None = None, output: TextIO | None = None) -> int:
    """Entry point for CLI commands."""

    if argv is None:
        argv = sys.argv[1:]
    if not argv or (argv[0] not in _SUBCOMMANDS and argv[0] not in {"-h", "--help"}):
        argv = ["tui", *argv]

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _resolve_config(args)
        if args.command == "script":
            configure_logging(args.log_level, args.log_file, to_stderr=True)
        else:
            configure_logging(args.log_level, args.log_file, to_stderr=False)
    except (ConfigError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    logger.info("starting %s mode on %s:%s", args.command, config.listen_host, config.listen_port)
    try:
        if args.command == "script":
            return _run_script(args, config, output or sys.stdout)
        return _run_tui(config)
    except BindError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 0
