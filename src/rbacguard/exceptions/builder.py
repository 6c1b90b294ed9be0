"""
Exception builder for RBAC Guard.

Validates user-supplied identification and approval fields and turns
them into an ExceptionRecord.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from rbacguard.exceptions.errors import DuplicateError, ValidationError
from rbacguard.exceptions.models import (
    ActionPlanApproval,
    Approval,
    ExactIdentity,
    ExceptionRecord,
    Identity,
    PatternIdentity,
    Role,
    Scope,
    ScopeNamePattern,
    ScopeObject,
    ScopeType,
    SecArchApproval,
    is_email,
    parse_date,
    utc_today,
)


def _present(value: str | None) -> bool:
    return value is not None and str(value).strip() != ""


class ExceptionBuilder:
    """
    Builds validated exception records.

    Validation runs in a fixed order and stops at the first violated
    rule:

    1. identity mutual exclusivity (eonId and tenant only with namePattern)
    2. scope mutual exclusivity
    3. approval presence and exclusivity
    4. ActionPlan requires an expiry date
    5. wildcard identity requires eonId and tenant
    6. SecArch approval carries no expiry date
    """

    def __init__(self, today: date | None = None):
        """
        Initialize the builder.

        Args:
            today: Date stamped on new records (defaults to UTC today)
        """
        self._today = today

    @property
    def today(self) -> date:
        return self._today or utc_today()

    def build(
        self,
        scope_type: str | ScopeType | None,
        role: str | Role | None,
        last_modified_by: str | None,
        object_id: str | None = None,
        name_pattern: str | None = None,
        eon_id: str | None = None,
        tenant: str | None = None,
        scope_object_id: str | None = None,
        scope_name_pattern: str | None = None,
        sec_arch_id: str | None = None,
        action_plan_id: str | None = None,
        expires_on: date | str | None = None,
    ) -> ExceptionRecord:
        """
        Build a new exception record.

        Raises:
            ValidationError: If any rule is violated
        """
        self.check_fields(
            object_id=object_id,
            name_pattern=name_pattern,
            eon_id=eon_id,
            tenant=tenant,
            scope_object_id=scope_object_id,
            scope_name_pattern=scope_name_pattern,
            sec_arch_id=sec_arch_id,
            action_plan_id=action_plan_id,
            expires_on=expires_on,
        )

        identity = self._build_identity(object_id, name_pattern, eon_id, tenant)
        scope = self._build_scope(scope_object_id, scope_name_pattern)
        approval = self._build_approval(sec_arch_id, action_plan_id, expires_on)

        if scope_type is None or scope_type == "":
            raise ValidationError("scopeType is required", rule="scope-type-required")
        if role is None or role == "":
            raise ValidationError("role is required", rule="role-required")

        validate_modifier(last_modified_by)

        today = self.today
        return ExceptionRecord(
            identity=identity,
            scope_type=ScopeType.parse(scope_type),
            role=Role.parse(role),
            approval=approval,
            scope=scope,
            created_on=today,
            last_modified_on=today,
            last_modified_by=str(last_modified_by).strip(),
        )

    @staticmethod
    def check_fields(
        object_id: str | None = None,
        name_pattern: str | None = None,
        eon_id: str | None = None,
        tenant: str | None = None,
        scope_object_id: str | None = None,
        scope_name_pattern: str | None = None,
        sec_arch_id: str | None = None,
        action_plan_id: str | None = None,
        expires_on: date | str | None = None,
    ) -> None:
        """
        Check the variant rules in order.

        Raises:
            ValidationError: Naming the first violated rule
        """
        has_object = _present(object_id)
        has_pattern = _present(name_pattern)
        if has_object == has_pattern:
            raise ValidationError(
                "Exactly one of objectId or namePattern must be given",
                rule="identity-exclusive",
            )
        if has_object and (_present(eon_id) or _present(tenant)):
            raise ValidationError(
                "eonId and tenant belong to a namePattern identity, not objectId",
                rule="identity-exclusive",
            )

        if _present(scope_object_id) and _present(scope_name_pattern):
            raise ValidationError(
                "Only one of scopeObjectId or scopeNamePattern may be given",
                rule="scope-exclusive",
            )

        has_sec_arch = _present(sec_arch_id)
        has_action_plan = _present(action_plan_id)
        if has_sec_arch == has_action_plan:
            raise ValidationError(
                "Exactly one approval (SecArch or ActionPlan) must be given",
                rule="approval-exclusive",
            )

        if has_action_plan and parse_date(expires_on, "expiresOn") is None:
            raise ValidationError(
                "An ActionPlan exception requires an expiresOn date",
                rule="action-plan-requires-expiry",
            )

        if has_pattern and not (_present(eon_id) and _present(tenant)):
            raise ValidationError(
                "A namePattern exception requires an eonId and a tenant",
                rule="wildcard-requires-eon-tenant",
            )

        if has_sec_arch and parse_date(expires_on, "expiresOn") is not None:
            raise ValidationError(
                "A SecArch exception is permanent and cannot have expiresOn",
                rule="sec-arch-no-expiry",
            )

    def _build_identity(
        self,
        object_id: str | None,
        name_pattern: str | None,
        eon_id: str | None,
        tenant: str | None,
    ) -> Identity:
        if _present(object_id):
            return ExactIdentity(str(object_id))
        return PatternIdentity(str(name_pattern), str(eon_id), str(tenant))

    def _build_scope(
        self,
        scope_object_id: str | None,
        scope_name_pattern: str | None,
    ) -> Scope | None:
        if _present(scope_object_id):
            return ScopeObject(str(scope_object_id))
        if _present(scope_name_pattern):
            return ScopeNamePattern(str(scope_name_pattern))
        return None

    def _build_approval(
        self,
        sec_arch_id: str | None,
        action_plan_id: str | None,
        expires_on: date | str | None,
    ) -> Approval:
        if _present(sec_arch_id):
            return SecArchApproval(str(sec_arch_id))
        return ActionPlanApproval(str(action_plan_id), parse_date(expires_on, "expiresOn"))


def validate_modifier(last_modified_by: str | None) -> None:
    """
    Check the modifier is an email address.

    Raises:
        ValidationError: If empty or not email-shaped
    """
    if not _present(last_modified_by):
        raise ValidationError("lastModifiedBy is required", rule="modifier-required")
    if not is_email(str(last_modified_by).strip()):
        raise ValidationError(
            f"lastModifiedBy must be an email address, got {last_modified_by!r}",
            rule="modifier-email",
        )


def find_duplicate(
    record: ExceptionRecord,
    existing: Iterable[ExceptionRecord],
) -> ExceptionRecord | None:
    """Find a stored record with the same signature, ignoring the record itself."""
    signature = record.signature()
    for other in existing:
        if other.unique_id != record.unique_id and other.signature() == signature:
            return other
    return None


def ensure_unique(
    record: ExceptionRecord,
    existing: Iterable[ExceptionRecord],
) -> None:
    """
    Reject a record identical to a stored one.

    Raises:
        DuplicateError: If an identical record exists
    """
    duplicate = find_duplicate(record, existing)
    if duplicate is not None:
        raise DuplicateError(
            f"An identical exception already exists: {duplicate.unique_id}",
            existing_id=duplicate.unique_id,
        )
