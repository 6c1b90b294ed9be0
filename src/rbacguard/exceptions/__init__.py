"""
RBAC exceptions for RBAC Guard.

Records approved deviations from the Azure RBAC baseline and matches
audit findings against them.
"""

from __future__ import annotations

from rbacguard.exceptions.errors import (
    ExceptionRecordError,
    ValidationError,
    DuplicateError,
    NotFoundError,
    ExceptionStoreError,
    ConcurrentModificationError,
)
from rbacguard.exceptions.models import (
    ScopeType,
    Role,
    ApprovalKind,
    ExactIdentity,
    PatternIdentity,
    ScopeObject,
    ScopeNamePattern,
    SecArchApproval,
    ActionPlanApproval,
    ExceptionRecord,
)
from rbacguard.exceptions.builder import ExceptionBuilder
from rbacguard.exceptions.matcher import (
    ExceptionMatch,
    ExceptionMatcher,
    match_exception,
)
from rbacguard.exceptions.store import (
    ExceptionStore,
    LocalExceptionStore,
)
from rbacguard.exceptions.manager import (
    ExceptionManager,
    create_exception_manager,
)

__all__ = [
    # Errors
    "ExceptionRecordError",
    "ValidationError",
    "DuplicateError",
    "NotFoundError",
    "ExceptionStoreError",
    "ConcurrentModificationError",
    # Models
    "ScopeType",
    "Role",
    "ApprovalKind",
    "ExactIdentity",
    "PatternIdentity",
    "ScopeObject",
    "ScopeNamePattern",
    "SecArchApproval",
    "ActionPlanApproval",
    "ExceptionRecord",
    # Builder
    "ExceptionBuilder",
    # Matcher
    "ExceptionMatch",
    "ExceptionMatcher",
    "match_exception",
    # Store
    "ExceptionStore",
    "LocalExceptionStore",
    # Manager
    "ExceptionManager",
    "create_exception_manager",
]
