"""
Dataset loading and writing for RBAC Guard.

Reads audit datasets from CSV, picks the latest export from a dataset
directory, and writes filter results back out.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from pathlib import Path
from typing import Iterable

from rbacguard.dataset.models import ANNOTATION_COLUMNS, DATASET_COLUMNS, DatasetRow

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Exception raised when a dataset cannot be read."""

    def __init__(self, message: str, source_path: str | None = None):
        self.source_path = source_path
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


# Normalized header -> attribute
COLUMN_ALIASES = {
    "objectid": "object_id",
    "spnobjectid": "object_id",
    "principalid": "object_id",
    "displayname": "display_name",
    "spnname": "display_name",
    "principalname": "display_name",
    "scopetype": "scope_type",
    "objecttype": "scope_type",
    "scopeobjectid": "scope_object_id",
    "scopeid": "scope_object_id",
    "scopedisplayname": "scope_display_name",
    "scopename": "scope_display_name",
    "eonid": "eon_id",
    "appid": "eon_id",
    "owningappid": "eon_id",
    "owningapplicationid": "eon_id",
    "role": "role",
    "rolename": "role",
    "roledefinitionname": "role",
    "tenant": "tenant",
    "tenantname": "tenant",
}

REQUIRED_ATTRIBUTES = ("object_id", "scope_type", "role")


def _normalize_header(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "", header.lower())


def parse_rows(text: str, source: str | None = None) -> list[DatasetRow]:
    """
    Parse CSV text into dataset rows.

    Args:
        text: CSV content with a header row
        source: Source name used in error messages

    Returns:
        Rows in file order

    Raises:
        DatasetError: If a required column is missing or the CSV is
            malformed
    """
    try:
        return _parse_records(csv.DictReader(io.StringIO(text)), source)
    except csv.Error as e:
        raise DatasetError(f"Malformed CSV: {e}", source)


def _parse_records(reader: csv.DictReader, source: str | None) -> list[DatasetRow]:
    headers = reader.fieldnames or []

    mapping: dict[str, str] = {}
    for header in headers:
        attr = COLUMN_ALIASES.get(_normalize_header(header))
        if attr and attr not in mapping.values():
            mapping[header] = attr

    missing = [a for a in REQUIRED_ATTRIBUTES if a not in mapping.values()]
    if missing:
        raise DatasetError(f"Missing required column(s): {', '.join(missing)}", source)

    rows = []
    for record in reader:
        values: dict[str, str] = {}
        extra: dict[str, str] = {}
        for header, value in record.items():
            if header is None:
                continue
            value = (value or "").strip()
            if header in mapping:
                values[mapping[header]] = value
            else:
                extra[header] = value
        rows.append(DatasetRow(**values, extra=extra))
    return rows


def load_dataset(path: str | Path) -> list[DatasetRow]:
    """
    Load a dataset CSV file.

    Raises:
        FileNotFoundError: If the file does not exist
        DatasetError: If the file is not UTF-8 or not a valid dataset
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Dataset not found: {path}")

    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise DatasetError(f"Not a UTF-8 file: {e}", str(path))

    rows = parse_rows(text, str(path))
    logger.info(f"Loaded {len(rows)} row(s) from {path}")
    return rows


def find_latest_dataset(dataset_dir: str | Path, filename_pattern: str = "") -> Path:
    """
    Find the most recently modified dataset file.

    Args:
        dataset_dir: Directory holding dataset exports
        filename_pattern: Filename prefix to select on

    Returns:
        Path of the newest matching file

    Raises:
        FileNotFoundError: If the directory is missing or nothing matches
    """
    directory = Path(dataset_dir)
    if not directory.is_dir():
        raise FileNotFoundError(f"Dataset directory not found: {directory}")

    candidates = [
        p for p in directory.iterdir()
        if p.is_file() and p.name.startswith(filename_pattern)
    ]
    if not candidates:
        raise FileNotFoundError(
            f"No dataset matching '{filename_pattern}*' in {directory}"
        )

    latest = max(candidates, key=lambda p: (p.stat().st_mtime, p.name))
    logger.info(f"Selected dataset {latest}")
    return latest


def _fieldnames(rows: list[DatasetRow]) -> list[str]:
    names = list(DATASET_COLUMNS)
    for row in rows:
        for key in row.extra:
            if key not in names:
                names.append(key)
    if any(row.annotations for row in rows):
        names.extend(ANNOTATION_COLUMNS)
    return names


def format_csv(rows: Iterable[DatasetRow]) -> str:
    """Format rows as CSV text."""
    rows = list(rows)
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=_fieldnames(rows), restval="")
    writer.writeheader()
    for row in rows:
        writer.writerow(row.to_dict())
    return output.getvalue()


def format_json(rows: Iterable[DatasetRow]) -> str:
    """Format rows as a JSON array."""
    return json.dumps([row.to_dict() for row in rows], indent=2)


def write_dataset(rows: Iterable[DatasetRow], path: str | Path) -> Path:
    """
    Write rows to a CSV or JSON file, chosen by extension.

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = list(rows)
    content = format_json(rows) if path.suffix.lower() == ".json" else format_csv(rows)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    logger.info(f"Wrote {len(rows)} row(s) to {path}")
    return path
