"""
Errors raised by the exception store and its operations.
"""

from __future__ import annotations


class ExceptionRecordError(Exception):
    """Base error for exception record operations."""
    pass


class ValidationError(ExceptionRecordError):
    """A record is missing required fields or has conflicting ones."""

    def __init__(self, message: str, rule: str | None = None):
        self.rule = rule
        super().__init__(message)


class DuplicateError(ExceptionRecordError):
    """An identical exception already exists."""

    def __init__(self, message: str, existing_id: str | None = None):
        self.existing_id = existing_id
        super().__init__(message)


class NotFoundError(ExceptionRecordError):
    """No exception with the given unique ID."""
    pass


class ExceptionStoreError(ExceptionRecordError):
    """The backing store file could not be parsed."""

    def __init__(self, message: str, source_path: str | None = None):
        self.source_path = source_path
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


class ConcurrentModificationError(ExceptionStoreError):
    """The store file changed on disk since it was loaded."""
    pass
