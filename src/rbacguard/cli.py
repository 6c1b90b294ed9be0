"""
RBAC Guard CLI entry point.

This module provides the command-line interface for RBAC Guard.
"""

from __future__ import annotations

import argparse
import sys

from rbacguard import __version__
from rbacguard.cli_dataset import add_dataset_parser, cmd_dataset
from rbacguard.cli_exceptions import add_exceptions_parser, cmd_exceptions
from rbacguard.config import ConfigError, Settings, load_settings_from_env
from rbacguard.observability import configure_logging


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="rbacguard",
        description="RBAC Guard - exception management for Azure RBAC audit findings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"rbacguard {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log errors",
    )

    parser.add_argument(
        "--config",
        help="Configuration file (JSON or YAML)",
    )

    parser.add_argument(
        "--exceptions-path",
        help="Exception store JSON file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    add_exceptions_parser(subparsers)
    add_dataset_parser(subparsers)

    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """
    Build the invocation settings from the environment and CLI options.

    Precedence, highest first: CLI options, RBACGUARD_* variables, the
    configuration file (--config, else RBACGUARD_CONFIG_FILE), defaults.

    Raises:
        FileNotFoundError: If --config names a missing file
        ConfigError: If the configuration is malformed
    """
    settings = load_settings_from_env(config_file=getattr(args, "config", None))
    return settings.with_overrides(
        exceptions_path=getattr(args, "exceptions_path", None),
    )


def _log_level(args: argparse.Namespace, settings: Settings) -> str:
    if getattr(args, "quiet", False):
        return "ERROR"
    verbose = getattr(args, "verbose", 0)
    if verbose > 1:
        return "DEBUG"
    if verbose == 1:
        return "INFO"
    return settings.log_level


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        args.settings = load_settings(args)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(
        level=_log_level(args, args.settings),
        format=args.settings.log_format,
    )

    if args.command is None:
        parser.print_help()
        return 0

    # Route to command handlers
    command_handlers = {
        "exceptions": cmd_exceptions,
        "dataset": cmd_dataset,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args)

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
