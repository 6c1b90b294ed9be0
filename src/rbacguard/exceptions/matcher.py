"""
Exception matcher for RBAC Guard.

Decides whether an audit dataset row is covered by an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from rbacguard.exceptions.models import (
    ExactIdentity,
    ExceptionRecord,
    PatternIdentity,
    ScopeNamePattern,
    ScopeObject,
    normalize_token,
    utc_today,
)

if TYPE_CHECKING:
    from rbacguard.dataset.models import DatasetRow

logger = logging.getLogger(__name__)


def _equals(left: str | None, right: str | None) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


def _contains(text: str | None, term: str) -> bool:
    return term.lower() in (text or "").lower()


@dataclass
class ExceptionMatch:
    """
    Result of matching a row against the exception list.

    Attributes:
        exception: First matching exception in stored order
        match_count: Number of exceptions that matched
    """

    exception: ExceptionRecord
    match_count: int = 1


class ExceptionMatcher:
    """
    Matches dataset rows against exception records.

    A row is covered when, for one exception, all of these hold:

    - identity: exact object ID, or display name containing the name
      pattern together with the same EonID and tenant
    - scope: exact scope object ID, scope display name containing the
      scope pattern, or no scope restriction at all
    - role and scope type are equal
    - the approval has not expired (ActionPlan expiring today is still
      valid)

    String comparisons ignore case. When several exceptions match, the
    first in stored order wins.
    """

    def __init__(
        self,
        exceptions: list[ExceptionRecord] | None = None,
        today: date | None = None,
    ):
        """
        Initialize the matcher.

        Args:
            exceptions: Exceptions in stored order
            today: Reference date for the expiry gate
        """
        self._exceptions = list(exceptions or [])
        self._today = today or utc_today()

    @property
    def exceptions(self) -> list[ExceptionRecord]:
        """Get list of exceptions."""
        return self._exceptions

    @property
    def today(self) -> date:
        return self._today

    def matches(self, row: "DatasetRow", exception: ExceptionRecord) -> bool:
        """
        Check if a row is covered by one exception.

        Args:
            row: Dataset row to check
            exception: Exception to match

        Returns:
            True if every check passes
        """
        if exception.is_expired(self._today):
            return False
        return (
            self._match_identity(row, exception)
            and self._match_scope(row, exception)
            and self._match_attributes(row, exception)
        )

    def first_match(self, row: "DatasetRow") -> ExceptionRecord | None:
        """Get the first exception in stored order covering the row."""
        for exception in self._exceptions:
            if self.matches(row, exception):
                return exception
        return None

    def all_matches(self, row: "DatasetRow") -> list[ExceptionRecord]:
        """Get every exception covering the row, in stored order."""
        return [e for e in self._exceptions if self.matches(row, e)]

    def check_row(self, row: "DatasetRow") -> ExceptionMatch | None:
        """
        Check a row against all exceptions.

        Returns:
            ExceptionMatch for the first matching exception, or None
        """
        matched = self.all_matches(row)
        if not matched:
            return None
        if len(matched) > 1:
            logger.debug(
                f"Row {row.object_id or row.display_name} matched {len(matched)} "
                f"exceptions, using {matched[0].unique_id}"
            )
        return ExceptionMatch(exception=matched[0], match_count=len(matched))

    def _match_identity(self, row: "DatasetRow", exception: ExceptionRecord) -> bool:
        identity = exception.identity
        if isinstance(identity, ExactIdentity):
            return _equals(row.object_id, identity.object_id)
        if isinstance(identity, PatternIdentity):
            return (
                _contains(row.display_name, identity.search_term)
                and _equals(row.eon_id, identity.eon_id)
                and _equals(row.tenant, identity.tenant)
            )
        return False

    def _match_scope(self, row: "DatasetRow", exception: ExceptionRecord) -> bool:
        scope = exception.scope
        if scope is None:
            return True
        if isinstance(scope, ScopeObject):
            return _equals(row.scope_object_id, scope.scope_object_id)
        if isinstance(scope, ScopeNamePattern):
            return _contains(row.scope_display_name, scope.search_term)
        return False

    def _match_attributes(self, row: "DatasetRow", exception: ExceptionRecord) -> bool:
        return (
            normalize_token(row.role) == normalize_token(exception.role.value)
            and normalize_token(row.scope_type) == normalize_token(exception.scope_type.value)
        )


def match_exception(
    row: "DatasetRow",
    exception: ExceptionRecord,
    today: date | None = None,
) -> bool:
    """
    Check if a row is covered by a single exception.

    Convenience function for one-off matching.
    """
    return ExceptionMatcher([exception], today=today).matches(row, exception)
