"""
CLI commands for audit dataset filtering.

Provides command-line interface for filtering an audit dataset against
the exception store and for locating the latest dataset export.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rbacguard.config import Settings
from rbacguard.dataset import (
    DatasetError,
    FilterMode,
    FilterResult,
    find_latest_dataset,
    format_csv,
    format_json,
    load_dataset,
    partition_dataset,
    write_dataset,
)
from rbacguard.exceptions import ExceptionRecordError, create_exception_manager
from rbacguard.exceptions.models import parse_date

logger = logging.getLogger(__name__)


def _settings(args: argparse.Namespace) -> Settings:
    return getattr(args, "settings", None) or Settings()


def _resolve_dataset(args: argparse.Namespace, settings: Settings) -> Path:
    """Use the explicit dataset, else the latest one in the dataset directory."""
    dataset = getattr(args, "dataset", None)
    if dataset:
        return Path(dataset)

    dataset_dir = getattr(args, "dataset_dir", None) or settings.dataset_dir
    if not dataset_dir:
        raise DatasetError("No dataset given and no dataset directory configured")

    pattern = getattr(args, "filename_pattern", None)
    if pattern is None:
        pattern = settings.filename_pattern
    return find_latest_dataset(dataset_dir, pattern)


def cmd_dataset(args: argparse.Namespace) -> int:
    """Handle dataset commands."""
    action = getattr(args, "dataset_action", None)

    if action is None:
        print("Usage: rbacguard dataset <command>")
        print("\nCommands:")
        print("  filter       Filter a dataset against the exception store")
        print("  latest       Show the latest dataset in the dataset directory")
        return 0

    handlers = {
        "filter": _handle_dataset_filter,
        "latest": _handle_dataset_latest,
    }

    handler = handlers.get(action)
    if handler:
        return handler(args)

    print(f"Unknown dataset action: {action}", file=sys.stderr)
    return 1


def _handle_dataset_filter(args: argparse.Namespace) -> int:
    """Filter a dataset against the exception store."""
    settings = _settings(args)
    mode = FilterMode(getattr(args, "mode", "remaining"))
    output_path = getattr(args, "output", None)
    output_format = getattr(args, "format", "csv")

    try:
        today = parse_date(getattr(args, "date", None), "--date")
        dataset_path = _resolve_dataset(args, settings)
        rows = load_dataset(dataset_path)

        if settings.csa_enforced:
            manager = create_exception_manager(settings)
            exceptions = manager.list_exceptions()
            result = partition_dataset(rows, exceptions, today=today)
        else:
            logger.warning("CSA enforcement is disabled; no rows are suppressed")
            result = FilterResult(remaining=list(rows))
    except (ExceptionRecordError, DatasetError, OSError) as e:
        print(f"Error filtering dataset: {e}", file=sys.stderr)
        return 1

    selected = result.rows(mode)

    if output_path:
        try:
            written = write_dataset(selected, output_path)
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            return 1
        print(f"Wrote {len(selected)} {mode.value} row(s) to {written}")
    elif output_format == "json":
        print(format_json(selected))
    else:
        sys.stdout.write(format_csv(selected))

    print(
        f"{dataset_path.name}: {result.total} row(s), "
        f"{len(result.suppressed)} suppressed, {len(result.remaining)} remaining",
        file=sys.stderr,
    )
    return 0


def _handle_dataset_latest(args: argparse.Namespace) -> int:
    """Show the latest dataset file."""
    settings = _settings(args)

    try:
        path = _resolve_dataset(args, settings)
    except (DatasetError, OSError) as e:
        print(f"Error locating dataset: {e}", file=sys.stderr)
        return 1

    print(str(path))
    return 0


def add_dataset_parser(subparsers: argparse._SubParsersAction) -> None:
    """Add dataset parser to CLI subparsers."""
    dataset_parser = subparsers.add_parser(
        "dataset",
        help="Filter audit datasets",
        description="Filter RBAC audit datasets against the exception store.",
    )

    dataset_subparsers = dataset_parser.add_subparsers(
        dest="dataset_action",
        title="Dataset Commands",
    )

    # filter
    filter_parser = dataset_subparsers.add_parser(
        "filter", help="Filter a dataset against the exception store"
    )
    filter_parser.add_argument(
        "--dataset",
        help="Dataset CSV file (default: latest file in the dataset directory)",
    )
    filter_parser.add_argument("--dataset-dir", help="Dataset directory")
    filter_parser.add_argument("--filename-pattern", help="Dataset filename prefix")
    filter_parser.add_argument(
        "--mode",
        choices=[m.value for m in FilterMode],
        default=FilterMode.REMAINING.value,
        help="Rows to output (default: remaining)",
    )
    filter_parser.add_argument(
        "--output",
        help="Write rows to this file (.csv or .json) instead of stdout",
    )
    filter_parser.add_argument(
        "--format",
        choices=["csv", "json"],
        default="csv",
        help="Stdout format",
    )
    filter_parser.add_argument(
        "--date",
        help="Evaluate expiry as of this date (YYYY-MM-DD, default: today)",
    )

    # latest
    latest_parser = dataset_subparsers.add_parser(
        "latest", help="Show the latest dataset in the dataset directory"
    )
    latest_parser.add_argument("--dataset-dir", help="Dataset directory")
    latest_parser.add_argument("--filename-pattern", help="Dataset filename prefix")
