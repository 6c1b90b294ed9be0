"""
Audit datasets for RBAC Guard.

Loads over-privileged access findings and filters them against the
stored exceptions.
"""

from __future__ import annotations

from rbacguard.dataset.models import (
    DatasetRow,
    FilterMode,
    FilterResult,
)
from rbacguard.dataset.filter import (
    filter_dataset,
    partition_dataset,
)
from rbacguard.dataset.loader import (
    DatasetError,
    find_latest_dataset,
    format_csv,
    format_json,
    load_dataset,
    parse_rows,
    write_dataset,
)

__all__ = [
    # Models
    "DatasetRow",
    "FilterMode",
    "FilterResult",
    # Filter
    "filter_dataset",
    "partition_dataset",
    # Loader
    "DatasetError",
    "find_latest_dataset",
    "format_csv",
    "format_json",
    "load_dataset",
    "parse_rows",
    "write_dataset",
]
