"""
Exception manager for RBAC Guard.

High-level add, update and remove operations over an exception store,
plus applying the stored exceptions to an audit dataset.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Iterable, TYPE_CHECKING

from rbacguard.exceptions.builder import (
    ExceptionBuilder,
    ensure_unique,
    validate_modifier,
)
from rbacguard.exceptions.errors import NotFoundError, ValidationError
from rbacguard.exceptions.models import (
    ActionPlanApproval,
    ApprovalKind,
    ExactIdentity,
    ExceptionRecord,
    PatternIdentity,
    ScopeNamePattern,
    ScopeObject,
    normalize_token,
    utc_today,
)
from rbacguard.exceptions.store import ExceptionStore, LocalExceptionStore

if TYPE_CHECKING:
    from rbacguard.config.settings import Settings
    from rbacguard.dataset.models import DatasetRow, FilterMode, FilterResult

logger = logging.getLogger(__name__)

RECORD_FIELDS = (
    "object_id",
    "name_pattern",
    "eon_id",
    "tenant",
    "scope_object_id",
    "scope_name_pattern",
    "scope_type",
    "role",
    "sec_arch_id",
    "action_plan_id",
    "expires_on",
)


def _record_fields(record: ExceptionRecord) -> dict[str, Any]:
    """Flatten a record's policy fields into builder keyword arguments."""
    fields: dict[str, Any] = dict.fromkeys(RECORD_FIELDS)
    fields["scope_type"] = record.scope_type
    fields["role"] = record.role
    if isinstance(record.identity, ExactIdentity):
        fields["object_id"] = record.identity.object_id
    else:
        fields["name_pattern"] = record.identity.name_pattern
        fields["eon_id"] = record.identity.eon_id
        fields["tenant"] = record.identity.tenant

    if isinstance(record.scope, ScopeObject):
        fields["scope_object_id"] = record.scope.scope_object_id
    elif isinstance(record.scope, ScopeNamePattern):
        fields["scope_name_pattern"] = record.scope.scope_name_pattern

    if isinstance(record.approval, ActionPlanApproval):
        fields["action_plan_id"] = record.approval.approval_id
        fields["expires_on"] = record.approval.expires_on
    else:
        fields["sec_arch_id"] = record.approval.approval_id
    return fields


def _criterion_value(record: ExceptionRecord, name: str) -> str | None:
    identity = record.identity
    scope = record.scope
    if name == "object_id":
        return identity.object_id if isinstance(identity, ExactIdentity) else None
    if name == "name_pattern":
        return identity.name_pattern if isinstance(identity, PatternIdentity) else None
    if name == "tenant":
        return identity.tenant if isinstance(identity, PatternIdentity) else None
    if name == "scope_object_id":
        return scope.scope_object_id if isinstance(scope, ScopeObject) else None
    if name == "scope_type":
        return record.scope_type.value
    if name == "role":
        return record.role.value
    return None


class ExceptionManager:
    """
    High-level manager for RBAC exceptions.

    Every mutating call loads the store, applies the change in memory
    and rewrites the whole store. Callers must not run two writers
    against the same store at once.
    """

    def __init__(
        self,
        store: ExceptionStore,
        clock: Callable[[], date] = utc_today,
    ):
        """
        Initialize the manager.

        Args:
            store: Exception store to use
            clock: Returns today's date for stamping and expiry checks
        """
        self._store = store
        self._clock = clock

    @property
    def store(self) -> ExceptionStore:
        """Get the exception store."""
        return self._store

    # Exception Creation

    def add_exception(
        self,
        scope_type: Any,
        role: Any,
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
        Validate and store a new exception.

        A missing store file is treated as an empty store.

        Args:
            scope_type: managementGroup, resourceGroup or subscription
            role: Owner, Contributor, UserAccessAdministrator or
                AppDevContributor
            last_modified_by: Email of the requester
            object_id: Exact object ID (exclusive with name_pattern)
            name_pattern: Display name pattern
            eon_id: Owning application, required with name_pattern
            tenant: Tenant, required with name_pattern
            scope_object_id: Restrict to one scope object
            scope_name_pattern: Restrict to scopes matching a pattern
            sec_arch_id: SecArch approval ID (exclusive with action_plan_id)
            action_plan_id: ActionPlan approval ID
            expires_on: Expiry date, required with action_plan_id

        Returns:
            Created ExceptionRecord

        Raises:
            ValidationError: If the fields are invalid
            DuplicateError: If an identical exception exists
        """
        record = ExceptionBuilder(today=self._clock()).build(
            scope_type=scope_type,
            role=role,
            last_modified_by=last_modified_by,
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

        records = self._store.load(create_missing=True)
        ensure_unique(record, records)
        records.append(record)
        self._store.save(records)

        logger.info(
            f"Added exception {record.unique_id} "
            f"({record.approval_kind.value} {record.approval.approval_id})"
        )
        return record

    # Exception Management

    def update_exception(
        self,
        unique_id: str,
        last_modified_by: str | None,
        clear_scope: bool = False,
        **changes: Any,
    ) -> ExceptionRecord:
        """
        Apply a partial update to an exception.

        Only the supplied fields change. Supplying one form of a variant
        replaces the other (for example object_id on a name-pattern
        exception). The result is validated like a new exception.

        Args:
            unique_id: Exception to update
            last_modified_by: Email of whoever makes the change
            clear_scope: Remove any scope restriction
            **changes: Builder fields to change; None values are ignored

        Returns:
            Updated ExceptionRecord

        Raises:
            NotFoundError: If no exception has this ID
            ValidationError: If the merged fields are invalid
            DuplicateError: If the change makes it identical to another
        """
        validate_modifier(last_modified_by)

        unknown = set(changes) - set(RECORD_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown field(s): {', '.join(sorted(unknown))}", rule="unknown-field"
            )
        changes = {k: v for k, v in changes.items() if v is not None}

        records = self._store.load()
        index = self._index_of(records, unique_id)
        current = records[index]

        fields = _record_fields(current)
        if "object_id" in changes:
            fields.update(name_pattern=None, eon_id=None, tenant=None)
        if "name_pattern" in changes:
            fields["object_id"] = None
        if clear_scope or "scope_object_id" in changes or "scope_name_pattern" in changes:
            fields.update(scope_object_id=None, scope_name_pattern=None)
        if "sec_arch_id" in changes:
            fields.update(action_plan_id=None, expires_on=None)
        if "action_plan_id" in changes:
            fields["sec_arch_id"] = None
        fields.update(changes)

        rebuilt = ExceptionBuilder(today=self._clock()).build(
            last_modified_by=last_modified_by, **fields
        )
        updated = ExceptionRecord(
            identity=rebuilt.identity,
            scope_type=rebuilt.scope_type,
            role=rebuilt.role,
            approval=rebuilt.approval,
            scope=rebuilt.scope,
            unique_id=current.unique_id,
            created_on=current.created_on,
            last_modified_on=rebuilt.last_modified_on,
            last_modified_by=rebuilt.last_modified_by,
        )
        ensure_unique(updated, records)

        records[index] = updated
        self._store.save(records)

        logger.info(f"Updated exception {unique_id} by {updated.last_modified_by}")
        return updated

    def delete_exception(self, unique_id: str) -> bool:
        """
        Delete an exception by ID.

        Returns:
            True if deleted, False if no exception had this ID
        """
        records = self._store.load()
        remaining = [r for r in records if r.unique_id != unique_id]
        if len(remaining) == len(records):
            logger.warning(f"No exception with ID {unique_id}")
            return False
        self._store.save(remaining)
        logger.info(f"Deleted exception {unique_id}")
        return True

    def remove_exceptions(
        self,
        object_id: str | None = None,
        name_pattern: str | None = None,
        scope_type: str | None = None,
        role: str | None = None,
        scope_object_id: str | None = None,
        tenant: str | None = None,
    ) -> int:
        """
        Remove every exception matching all supplied criteria.

        Omitted criteria match anything. Values compare without regard
        to case (and, for scope_type and role, separators).

        Returns:
            Number of exceptions removed

        Raises:
            ValidationError: If no criterion is supplied
        """
        criteria = {
            "object_id": object_id,
            "name_pattern": name_pattern,
            "scope_type": scope_type,
            "role": role,
            "scope_object_id": scope_object_id,
            "tenant": tenant,
        }
        criteria = {k: v for k, v in criteria.items() if v not in (None, "")}
        if not criteria:
            raise ValidationError(
                "At least one removal criterion is required", rule="criteria-required"
            )

        records = self._store.load()
        kept = [r for r in records if not self._matches_criteria(r, criteria)]
        removed = len(records) - len(kept)

        if removed == 0:
            logger.warning(
                f"No exceptions matched {criteria}; check filter criteria"
            )
            return 0

        self._store.save(kept)
        logger.info(f"Removed {removed} exception(s) matching {criteria}")
        return removed

    def get_exception(self, unique_id: str) -> ExceptionRecord:
        """
        Get an exception by ID.

        Raises:
            NotFoundError: If no exception has this ID
        """
        records = self._store.load()
        return records[self._index_of(records, unique_id)]

    def list_exceptions(
        self,
        approval_kind: ApprovalKind | None = None,
        include_expired: bool = True,
    ) -> list[ExceptionRecord]:
        """List exceptions in stored order with optional filters."""
        today = self._clock()
        results = self._store.load()
        if approval_kind is not None:
            results = [r for r in results if r.approval_kind == approval_kind]
        if not include_expired:
            results = [r for r in results if not r.is_expired(today)]
        return results

    def expired_exceptions(self) -> list[ExceptionRecord]:
        """Get ActionPlan exceptions whose expiry date has passed."""
        today = self._clock()
        return [r for r in self._store.load() if r.is_expired(today)]

    # Dataset Filtering

    def apply_to_dataset(
        self,
        rows: Iterable["DatasetRow"],
    ) -> "FilterResult":
        """
        Partition a dataset with the stored exceptions.

        Raises:
            FileNotFoundError: If the store does not exist
        """
        from rbacguard.dataset.filter import partition_dataset

        return partition_dataset(rows, self._store.load(), today=self._clock())

    def filter_dataset(
        self,
        rows: Iterable["DatasetRow"],
        mode: "FilterMode",
    ) -> list["DatasetRow"]:
        """Filter a dataset with the stored exceptions."""
        return self.apply_to_dataset(rows).rows(mode)

    @staticmethod
    def _index_of(records: list[ExceptionRecord], unique_id: str) -> int:
        for index, record in enumerate(records):
            if record.unique_id == unique_id:
                return index
        raise NotFoundError(f"Exception not found: {unique_id}")

    @staticmethod
    def _matches_criteria(record: ExceptionRecord, criteria: dict[str, str]) -> bool:
        for name, wanted in criteria.items():
            actual = _criterion_value(record, name)
            if actual is None:
                return False
            if name in ("scope_type", "role"):
                if normalize_token(actual) != normalize_token(wanted):
                    return False
            elif actual.lower() != str(wanted).strip().lower():
                return False
        return True


def create_exception_manager(settings: "Settings") -> ExceptionManager:
    """
    Create a manager for the store named in the settings.

    Args:
        settings: Invocation settings

    Returns:
        ExceptionManager instance
    """
    store = LocalExceptionStore(
        settings.exceptions_path,
        partitioned=settings.partitioned,
    )
    return ExceptionManager(store=store)
