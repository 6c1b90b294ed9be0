"""
Exception storage for RBAC Guard.

Persists exception records as a JSON file. Every mutation rewrites the
whole file. There is no locking: two processes writing the same file
concurrently can lose updates (last writer wins). The optional version
check detects, but does not prevent, such a conflict.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from rbacguard.exceptions.errors import (
    ConcurrentModificationError,
    ExceptionStoreError,
    ValidationError,
)
from rbacguard.exceptions.models import ApprovalKind, ExceptionRecord

logger = logging.getLogger(__name__)

SEC_ARCH_KEY = "SecArchExceptions"
ACTION_PLAN_KEY = "ActionPlanExceptions"


class ExceptionStore(ABC):
    """
    Abstract base class for exception storage.

    The store owns the record collection. Records are kept in stored
    order, which is the order the matcher uses for tie-breaks.
    """

    @abstractmethod
    def load(self, create_missing: bool = False) -> list[ExceptionRecord]:
        """
        Load all records from backing storage.

        Args:
            create_missing: Treat a missing backing file as an empty
                store instead of failing

        Returns:
            Records in stored order

        Raises:
            FileNotFoundError: If the file is missing and create_missing
                is False
            ExceptionStoreError: If the file cannot be parsed
        """
        pass

    @abstractmethod
    def save(self, records: list[ExceptionRecord]) -> None:
        """
        Overwrite backing storage with the given records.

        Args:
            records: Full collection to persist
        """
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Check whether backing storage exists."""
        pass


class LocalExceptionStore(ExceptionStore):
    """
    Local file-based exception storage.

    Reads either a JSON array of records or the partitioned layout
    {"SecArchExceptions": [...], "ActionPlanExceptions": [...]}.
    An existing file keeps its layout on save; a new file uses the
    layout given at construction.
    """

    def __init__(
        self,
        file_path: str | Path,
        partitioned: bool = False,
        check_version: bool = False,
    ):
        """
        Initialize the store.

        Args:
            file_path: Path to the JSON file
            partitioned: Write new files in the partitioned layout
            check_version: Refuse to save if the file changed on disk
                since it was last loaded or saved
        """
        self._file_path = Path(file_path)
        self._partitioned = partitioned
        self._check_version = check_version
        self._version: int | None = None

    @property
    def file_path(self) -> Path:
        """Get the backing file path."""
        return self._file_path

    @property
    def partitioned(self) -> bool:
        """Whether saves use the partitioned layout."""
        return self._partitioned

    def exists(self) -> bool:
        return self._file_path.exists()

    def load(self, create_missing: bool = False) -> list[ExceptionRecord]:
        if not self._file_path.exists():
            if not create_missing:
                raise FileNotFoundError(
                    f"Exception store not found: {self._file_path}"
                )
            logger.info(f"Exception store {self._file_path} not found, starting empty")
            self._version = None
            return []

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ExceptionStoreError(f"Cannot read store: {e}", str(self._file_path))

        self._version = self._current_version()

        if not text.strip():
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ExceptionStoreError(f"Invalid JSON: {e}", str(self._file_path))

        items = self._unpack(data)
        records = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ExceptionStoreError(
                    f"Record {index} is not an object", str(self._file_path)
                )
            try:
                records.append(ExceptionRecord.from_dict(item))
            except ValidationError as e:
                raise ExceptionStoreError(
                    f"Record {index} is invalid: {e}", str(self._file_path)
                )

        logger.debug(f"Loaded {len(records)} exception(s) from {self._file_path}")
        return records

    def save(self, records: list[ExceptionRecord]) -> None:
        if self._check_version and self._current_version() != self._version:
            raise ConcurrentModificationError(
                "Store was modified by another writer since it was loaded",
                str(self._file_path),
            )

        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        data = self._pack(records)
        with open(self._file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")

        self._version = self._current_version()
        logger.info(f"Saved {len(records)} exception(s) to {self._file_path}")

    def _unpack(self, data: Any) -> list[Any]:
        """Flatten either file layout into stored order."""
        if isinstance(data, list):
            # An existing flat file stays flat
            self._partitioned = False
            return data
        if isinstance(data, dict) and (SEC_ARCH_KEY in data or ACTION_PLAN_KEY in data):
            # An existing partitioned file stays partitioned
            self._partitioned = True
            sec_arch = data.get(SEC_ARCH_KEY) or []
            action_plan = data.get(ACTION_PLAN_KEY) or []
            if not isinstance(sec_arch, list) or not isinstance(action_plan, list):
                raise ExceptionStoreError(
                    "Partition values must be arrays", str(self._file_path)
                )
            return [*sec_arch, *action_plan]
        raise ExceptionStoreError(
            f"Expected a JSON array or an object with {SEC_ARCH_KEY}/{ACTION_PLAN_KEY}",
            str(self._file_path),
        )

    def _pack(self, records: list[ExceptionRecord]) -> Any:
        if not self._partitioned:
            return [r.to_dict() for r in records]
        return {
            SEC_ARCH_KEY: [
                r.to_dict() for r in records if r.approval_kind == ApprovalKind.SEC_ARCH
            ],
            ACTION_PLAN_KEY: [
                r.to_dict() for r in records if r.approval_kind == ApprovalKind.ACTION_PLAN
            ],
        }

    def _current_version(self) -> int | None:
        try:
            return self._file_path.stat().st_mtime_ns
        except FileNotFoundError:
            return None
