"""
Models for audit dataset rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from rbacguard.exceptions.models import ExceptionRecord


class FilterMode(Enum):
    """Which side of the filter pass to return."""

    SUPPRESSED = "suppressed"  # Rows covered by an exception
    REMAINING = "remaining"  # Rows not covered


# Canonical column name -> attribute
DATASET_COLUMNS = {
    "ObjectId": "object_id",
    "DisplayName": "display_name",
    "ScopeType": "scope_type",
    "ScopeObjectId": "scope_object_id",
    "ScopeDisplayName": "scope_display_name",
    "EonId": "eon_id",
    "Role": "role",
    "Tenant": "tenant",
}

ANNOTATION_COLUMNS = [
    "ExceptionId",
    "ApprovalKind",
    "ApprovalId",
    "ExpiresOn",
    "ExceptionLastModifiedOn",
    "ExceptionLastModifiedBy",
]


@dataclass(frozen=True)
class DatasetRow:
    """
    One audited over-privileged access finding.

    Attributes:
        object_id: Object ID of the principal
        display_name: Display name of the principal
        scope_type: Scope level of the assignment
        scope_object_id: Object ID of the scope
        scope_display_name: Display name of the scope
        eon_id: Owning application identifier
        role: Assigned role
        tenant: Tenant the finding belongs to
        extra: Other columns, preserved on output
        annotations: Metadata of the exception covering the row
    """

    object_id: str = ""
    display_name: str = ""
    scope_type: str = ""
    scope_object_id: str = ""
    scope_display_name: str = ""
    eon_id: str = ""
    role: str = ""
    tenant: str = ""
    extra: dict[str, str] = field(default_factory=dict, compare=False)
    annotations: dict[str, str] = field(default_factory=dict, compare=False)

    def annotate(self, exception: "ExceptionRecord") -> "DatasetRow":
        """Return a copy annotated with an exception's approval metadata."""
        expires_on = exception.expires_on
        return replace(
            self,
            annotations={
                "ExceptionId": exception.unique_id,
                "ApprovalKind": exception.approval_kind.value,
                "ApprovalId": exception.approval.approval_id,
                "ExpiresOn": expires_on.isoformat() if expires_on else "",
                "ExceptionLastModifiedOn": exception.last_modified_on.isoformat(),
                "ExceptionLastModifiedBy": exception.last_modified_by,
            },
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat column -> value mapping."""
        data = {column: getattr(self, attr) for column, attr in DATASET_COLUMNS.items()}
        data.update(self.extra)
        data.update(self.annotations)
        return data


@dataclass
class FilterResult:
    """
    Both sides of a filter pass, in input order.

    Attributes:
        suppressed: Covered rows, annotated with their first match
        remaining: Uncovered rows, unchanged
    """

    suppressed: list[DatasetRow] = field(default_factory=list)
    remaining: list[DatasetRow] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.suppressed) + len(self.remaining)

    def rows(self, mode: FilterMode) -> list[DatasetRow]:
        """Get the rows for a filter mode."""
        if mode == FilterMode.SUPPRESSED:
            return self.suppressed
        return self.remaining

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "suppressed_count": len(self.suppressed),
            "remaining_count": len(self.remaining),
        }
