"""
RBAC Guard - exception management for Azure RBAC audit findings.

Records approved deviations (over-privileged Service Principals and
other Azure objects) and filters periodic audit datasets so that rows
covered by an active, approved exception are suppressed.

Quick Start:
    >>> from rbacguard.exceptions import ExceptionManager, LocalExceptionStore
    >>> from rbacguard.dataset import FilterMode, load_dataset
    >>>
    >>> manager = ExceptionManager(LocalExceptionStore("exceptions.json"))
    >>> manager.add_exception(
    ...     object_id="SPN1",
    ...     scope_type="resourceGroup",
    ...     role="Owner",
    ...     sec_arch_id="SA1",
    ...     last_modified_by="owner@example.com",
    ... )
    >>> rows = load_dataset("audit.csv")
    >>> remaining = manager.filter_dataset(rows, FilterMode.REMAINING)
"""

from __future__ import annotations

__version__ = "0.1.0"

from rbacguard.exceptions import (
    ExceptionRecord,
    ExceptionManager,
    ExceptionMatcher,
    LocalExceptionStore,
    ScopeType,
    Role,
    ApprovalKind,
    ValidationError,
    DuplicateError,
    NotFoundError,
)
from rbacguard.dataset import (
    DatasetRow,
    FilterMode,
    filter_dataset,
    load_dataset,
)
from rbacguard.config import ConfigError, Settings

__all__ = [
    "__version__",
    "ExceptionRecord",
    "ExceptionManager",
    "ExceptionMatcher",
    "LocalExceptionStore",
    "ScopeType",
    "Role",
    "ApprovalKind",
    "ValidationError",
    "DuplicateError",
    "NotFoundError",
    "DatasetRow",
    "FilterMode",
    "filter_dataset",
    "load_dataset",
    "ConfigError",
    "Settings",
]
