"""
Dataset filter pass for RBAC Guard.

Splits an audit dataset into rows covered by an exception and rows that
still need attention. No I/O happens here.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from rbacguard.dataset.models import DatasetRow, FilterMode, FilterResult
from rbacguard.exceptions.matcher import ExceptionMatcher
from rbacguard.exceptions.models import ExceptionRecord

logger = logging.getLogger(__name__)


def partition_dataset(
    rows: Iterable[DatasetRow],
    exceptions: list[ExceptionRecord],
    today: date | None = None,
) -> FilterResult:
    """
    Partition rows into suppressed and remaining.

    Suppressed rows are annotated with the first matching exception in
    stored order. Remaining rows are returned unchanged. Input order is
    kept on both sides.

    Args:
        rows: Dataset rows
        exceptions: Exceptions in stored order
        today: Reference date for the expiry gate

    Returns:
        FilterResult with both sides
    """
    matcher = ExceptionMatcher(exceptions, today=today)
    result = FilterResult()

    for row in rows:
        match = matcher.check_row(row)
        if match is None:
            result.remaining.append(row)
        else:
            result.suppressed.append(row.annotate(match.exception))

    logger.debug(
        f"Filter pass: {result.total} row(s), {len(result.suppressed)} suppressed, "
        f"{len(result.remaining)} remaining"
    )
    return result


def filter_dataset(
    rows: Iterable[DatasetRow],
    exceptions: list[ExceptionRecord],
    mode: FilterMode = FilterMode.REMAINING,
    today: date | None = None,
) -> list[DatasetRow]:
    """
    Filter a dataset against exceptions.

    Args:
        rows: Dataset rows
        exceptions: Exceptions in stored order
        mode: SUPPRESSED for covered rows (annotated), REMAINING for
            uncovered rows (unchanged)
        today: Reference date for the expiry gate

    Returns:
        Rows for the requested side
    """
    return partition_dataset(rows, exceptions, today=today).rows(mode)
