"""
Models for RBAC exception records.

Identity, scope and approval are tagged variants: each record holds
exactly one identity form, at most one scope form and exactly one
approval form.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Union

from rbacguard.exceptions.errors import ValidationError


WILDCARD_TOKENS = ("*", "%")

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def utc_today() -> date:
    """Get the current UTC date."""
    return datetime.now(timezone.utc).date()


def normalize_token(value: str | None) -> str:
    """Lowercase a value and drop whitespace, underscores and hyphens."""
    if value is None:
        return ""
    return re.sub(r"[\s_\-]+", "", str(value)).lower()


def strip_wildcards(pattern: str) -> str:
    """Remove wildcard tokens from a name pattern."""
    for token in WILDCARD_TOKENS:
        pattern = pattern.replace(token, "")
    return pattern.strip()


def is_email(value: str | None) -> bool:
    """Check whether a value looks like an email address."""
    return bool(value) and EMAIL_PATTERN.match(value) is not None


def parse_date(value: date | str | None, field_name: str) -> date | None:
    """Parse an ISO date, passing through date objects and None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(
            f"{field_name} must be an ISO date (YYYY-MM-DD), got {value!r}",
            rule="invalid-date",
        )


class _ParsableEnum(Enum):
    """Enum that parses its values case-insensitively."""

    @classmethod
    def parse(cls, value: Any) -> Any:
        if isinstance(value, cls):
            return value
        wanted = normalize_token(value)
        for member in cls:
            if normalize_token(member.value) == wanted:
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValidationError(
            f"Invalid {cls.__name__} {value!r}; expected one of: {choices}",
            rule="invalid-enum",
        )


class ScopeType(_ParsableEnum):
    """Azure resource container level."""

    MANAGEMENT_GROUP = "managementGroup"
    RESOURCE_GROUP = "resourceGroup"
    SUBSCRIPTION = "subscription"


class Role(_ParsableEnum):
    """Privileged role an exception covers."""

    OWNER = "Owner"
    CONTRIBUTOR = "Contributor"
    USER_ACCESS_ADMINISTRATOR = "UserAccessAdministrator"
    APP_DEV_CONTRIBUTOR = "AppDevContributor"


class ApprovalKind(_ParsableEnum):
    """How an exception was approved."""

    SEC_ARCH = "SecArch"  # Permanent
    ACTION_PLAN = "ActionPlan"  # Time-bound


def _require(value: str | None, message: str, rule: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message, rule=rule)
    return str(value).strip()


# Identity variants


@dataclass(frozen=True)
class ExactIdentity:
    """Matches a single object by its object ID."""

    object_id: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "object_id",
            _require(self.object_id, "objectId must not be empty", "identity-required"),
        )


@dataclass(frozen=True)
class PatternIdentity:
    """
    Matches objects whose display name contains a pattern.

    Name patterns are not globally unique, so the owning application
    (EonID) and tenant are part of the identity.
    """

    name_pattern: str
    eon_id: str
    tenant: str

    def __post_init__(self) -> None:
        pattern = _require(
            self.name_pattern, "namePattern must not be empty", "identity-required"
        )
        if not strip_wildcards(pattern):
            raise ValidationError(
                f"namePattern {pattern!r} contains only wildcard tokens",
                rule="identity-required",
            )
        object.__setattr__(self, "name_pattern", pattern)
        object.__setattr__(
            self,
            "eon_id",
            _require(
                self.eon_id,
                "A namePattern exception requires an eonId",
                "wildcard-requires-eon-tenant",
            ),
        )
        object.__setattr__(
            self,
            "tenant",
            _require(
                self.tenant,
                "A namePattern exception requires a tenant",
                "wildcard-requires-eon-tenant",
            ),
        )

    @property
    def search_term(self) -> str:
        """Pattern with wildcard tokens removed."""
        return strip_wildcards(self.name_pattern)


Identity = Union[ExactIdentity, PatternIdentity]


# Scope variants


@dataclass(frozen=True)
class ScopeObject:
    """Limits an exception to one scope object."""

    scope_object_id: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "scope_object_id",
            _require(self.scope_object_id, "scopeObjectId must not be empty", "scope-empty"),
        )


@dataclass(frozen=True)
class ScopeNamePattern:
    """Limits an exception to scopes whose display name contains a pattern."""

    scope_name_pattern: str

    def __post_init__(self) -> None:
        pattern = _require(
            self.scope_name_pattern, "scopeNamePattern must not be empty", "scope-empty"
        )
        if not strip_wildcards(pattern):
            raise ValidationError(
                f"scopeNamePattern {pattern!r} contains only wildcard tokens",
                rule="scope-empty",
            )
        object.__setattr__(self, "scope_name_pattern", pattern)

    @property
    def search_term(self) -> str:
        return strip_wildcards(self.scope_name_pattern)


Scope = Union[ScopeObject, ScopeNamePattern]


# Approval variants


@dataclass(frozen=True)
class SecArchApproval:
    """Permanent security-architecture approval."""

    approval_id: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "approval_id",
            _require(self.approval_id, "SecArch approval id must not be empty", "approval-required"),
        )

    @property
    def kind(self) -> ApprovalKind:
        return ApprovalKind.SEC_ARCH

    @property
    def expires_on(self) -> date | None:
        return None


@dataclass(frozen=True)
class ActionPlanApproval:
    """Time-bound approval with a mandatory expiration date."""

    approval_id: str
    expires_on: date

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "approval_id",
            _require(self.approval_id, "ActionPlan id must not be empty", "approval-required"),
        )
        expires_on = parse_date(self.expires_on, "expiresOn")
        if expires_on is None:
            raise ValidationError(
                "An ActionPlan exception requires an expiresOn date",
                rule="action-plan-requires-expiry",
            )
        object.__setattr__(self, "expires_on", expires_on)

    @property
    def kind(self) -> ApprovalKind:
        return ApprovalKind.ACTION_PLAN


Approval = Union[SecArchApproval, ActionPlanApproval]


@dataclass
class ExceptionRecord:
    """
    An approved deviation from the RBAC baseline.

    Attributes:
        identity: Which object(s) the exception covers
        scope_type: Scope level the exception applies to
        role: Role the exception allows
        approval: SecArch or ActionPlan approval
        scope: Optional scope restriction (None applies to every
            object of the scope type)
        unique_id: System-generated identifier
        created_on: Date the record was created
        last_modified_on: Date of the last change
        last_modified_by: Email of whoever made the last change
    """

    identity: Identity
    scope_type: ScopeType
    role: Role
    approval: Approval
    scope: Scope | None = None
    unique_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_on: date = field(default_factory=utc_today)
    last_modified_on: date = field(default_factory=utc_today)
    last_modified_by: str = ""

    @property
    def approval_kind(self) -> ApprovalKind:
        """Get the approval kind."""
        return self.approval.kind

    @property
    def expires_on(self) -> date | None:
        """Get the expiry date (ActionPlan only)."""
        return self.approval.expires_on

    def is_expired(self, today: date | None = None) -> bool:
        """Check if the approval has lapsed. Expiring today is still valid."""
        if self.expires_on is None:
            return False
        return self.expires_on < (today or utc_today())

    def is_active(self, today: date | None = None) -> bool:
        """Check if the exception can suppress findings."""
        return not self.is_expired(today)

    def days_until_expiry(self, today: date | None = None) -> int | None:
        """Get days until expiry, negative once expired."""
        if self.expires_on is None:
            return None
        return (self.expires_on - (today or utc_today())).days

    def signature(self) -> tuple:
        """
        Get the duplicate-detection signature.

        Covers every policy field; excludes the unique ID, timestamps
        and the last modifier.
        """
        identity = self.identity
        if isinstance(identity, ExactIdentity):
            identity_key: tuple = ("objectId", identity.object_id.lower())
        else:
            identity_key = (
                "namePattern",
                identity.name_pattern.lower(),
                identity.eon_id.lower(),
                identity.tenant.lower(),
            )

        scope_key: tuple = ()
        if isinstance(self.scope, ScopeObject):
            scope_key = ("scopeObjectId", self.scope.scope_object_id.lower())
        elif isinstance(self.scope, ScopeNamePattern):
            scope_key = ("scopeNamePattern", self.scope.scope_name_pattern.lower())

        approval_key = (
            self.approval.kind.value,
            self.approval.approval_id.lower(),
            self.approval.expires_on.isoformat() if self.approval.expires_on else None,
        )

        return (
            identity_key,
            scope_key,
            self.scope_type.value,
            self.role.value,
            approval_key,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON store representation."""
        data: dict[str, Any] = {"uniqueId": self.unique_id}

        if isinstance(self.identity, ExactIdentity):
            data["objectId"] = self.identity.object_id
        else:
            data["namePattern"] = self.identity.name_pattern
            data["eonId"] = self.identity.eon_id
            data["tenant"] = self.identity.tenant

        if isinstance(self.scope, ScopeObject):
            data["scopeObjectId"] = self.scope.scope_object_id
        elif isinstance(self.scope, ScopeNamePattern):
            data["scopeNamePattern"] = self.scope.scope_name_pattern

        data["scopeType"] = self.scope_type.value
        data["role"] = self.role.value
        data["approvalKind"] = self.approval.kind.value
        data["approvalId"] = self.approval.approval_id
        if self.approval.expires_on:
            data["expiresOn"] = self.approval.expires_on.isoformat()

        data["createdOn"] = self.created_on.isoformat()
        data["lastModifiedOn"] = self.last_modified_on.isoformat()
        data["lastModifiedBy"] = self.last_modified_by
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExceptionRecord":
        """Create from the JSON store representation."""
        if data.get("objectId") and data.get("namePattern"):
            raise ValidationError(
                "Record has both objectId and namePattern",
                rule="identity-exclusive",
            )
        if data.get("objectId"):
            identity: Identity = ExactIdentity(data["objectId"])
        else:
            identity = PatternIdentity(
                data.get("namePattern", ""),
                data.get("eonId", ""),
                data.get("tenant", ""),
            )

        if data.get("scopeObjectId") and data.get("scopeNamePattern"):
            raise ValidationError(
                "Record has both scopeObjectId and scopeNamePattern",
                rule="scope-exclusive",
            )
        scope: Scope | None = None
        if data.get("scopeObjectId"):
            scope = ScopeObject(data["scopeObjectId"])
        elif data.get("scopeNamePattern"):
            scope = ScopeNamePattern(data["scopeNamePattern"])

        kind = ApprovalKind.parse(data.get("approvalKind"))
        if kind == ApprovalKind.ACTION_PLAN:
            approval: Approval = ActionPlanApproval(
                data.get("approvalId", ""), data.get("expiresOn")
            )
        else:
            approval = SecArchApproval(data.get("approvalId", ""))

        today = utc_today()
        created_on = parse_date(data.get("createdOn"), "createdOn") or today
        last_modified_on = parse_date(data.get("lastModifiedOn"), "lastModifiedOn")

        return cls(
            identity=identity,
            scope_type=ScopeType.parse(data.get("scopeType")),
            role=Role.parse(data.get("role")),
            approval=approval,
            scope=scope,
            unique_id=data.get("uniqueId") or str(uuid.uuid4()),
            created_on=created_on,
            last_modified_on=last_modified_on or created_on,
            last_modified_by=data.get("lastModifiedBy", ""),
        )
