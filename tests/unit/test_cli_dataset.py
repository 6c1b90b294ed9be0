"""
Tests for CLI dataset commands.
"""

from __future__ import annotations

import argparse
import csv
import io
import json
import os
from datetime import date

import pytest

from rbacguard.cli_dataset import add_dataset_parser, cmd_dataset
from rbacguard.config import Settings
from rbacguard.exceptions import ExceptionManager, LocalExceptionStore


def _filter_args(settings, **overrides) -> argparse.Namespace:
    fields = {
        "dataset_action": "filter",
        "settings": settings,
        "dataset": None,
        "dataset_dir": None,
        "filename_pattern": None,
        "mode": "remaining",
        "output": None,
        "format": "csv",
        "date": "2024-06-01",
    }
    fields.update(overrides)
    return argparse.Namespace(**fields)


@pytest.fixture
def populated_settings(store_path, exact_exception, pattern_exception):
    """Settings pointing at a store with both sample exceptions."""
    LocalExceptionStore(store_path).save([exact_exception, pattern_exception])
    return Settings(exceptions_path=str(store_path))


class TestCmdDataset:
    """Tests for cmd_dataset dispatch."""

    def test_no_action_shows_usage(self, capsys):
        result = cmd_dataset(argparse.Namespace(dataset_action=None))
        assert result == 0
        assert "Usage: rbacguard dataset" in capsys.readouterr().out

    def test_unknown_action(self, capsys):
        result = cmd_dataset(argparse.Namespace(dataset_action="bogus"))
        assert result == 1


class TestDatasetFilter:
    """Tests for dataset filter."""

    def test_filter_remaining_csv(self, populated_settings, dataset_file, capsys):
        result = cmd_dataset(_filter_args(populated_settings, dataset=str(dataset_file)))
        assert result == 0

        captured = capsys.readouterr()
        records = list(csv.DictReader(io.StringIO(captured.out)))
        assert [r["ObjectId"] for r in records] == ["spn-99"]
        assert "3 row(s), 2 suppressed, 1 remaining" in captured.err

    def test_filter_suppressed_json(self, populated_settings, dataset_file, capsys):
        result = cmd_dataset(
            _filter_args(
                populated_settings,
                dataset=str(dataset_file),
                mode="suppressed",
                format="json",
            )
        )
        assert result == 0

        data = json.loads(capsys.readouterr().out)
        assert [d["ObjectId"] for d in data] == ["SPN1", "spn-42"]
        assert data[0]["ExceptionId"] == "exc-exact"
        assert data[1]["ApprovalKind"] == "ActionPlan"

    def test_filter_date_expires_action_plan(self, populated_settings, dataset_file, capsys):
        result = cmd_dataset(
            _filter_args(
                populated_settings,
                dataset=str(dataset_file),
                mode="suppressed",
                format="json",
                date="2025-01-01",
            )
        )
        assert result == 0
        data = json.loads(capsys.readouterr().out)
        assert [d["ObjectId"] for d in data] == ["SPN1"]

    def test_filter_to_output_file(self, populated_settings, dataset_file, tmp_path, capsys):
        output = tmp_path / "out" / "remaining.csv"
        result = cmd_dataset(
            _filter_args(populated_settings, dataset=str(dataset_file), output=str(output))
        )
        assert result == 0
        assert output.exists()
        assert "Wrote 1 remaining row(s)" in capsys.readouterr().out

    def test_filter_latest_from_directory(self, populated_settings, tmp_path, capsys):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        old = data_dir / "rbac_audit_old.csv"
        new = data_dir / "rbac_audit_new.csv"
        old.write_text("ObjectId,ScopeType,Role\nold,subscription,Owner\n")
        new.write_text("ObjectId,ScopeType,Role\nnew,subscription,Owner\n")
        os.utime(old, (1_000_000, 1_000_000))
        os.utime(new, (2_000_000, 2_000_000))

        result = cmd_dataset(
            _filter_args(
                populated_settings,
                dataset_dir=str(data_dir),
                filename_pattern="rbac_audit",
            )
        )
        assert result == 0
        captured = capsys.readouterr()
        assert "new" in captured.out
        assert "rbac_audit_new.csv" in captured.err

    def test_filter_csa_not_enforced(self, store_path, dataset_file, capsys):
        """With enforcement off every row is reported as remaining."""
        settings = Settings(exceptions_path=str(store_path), csa_enforced=False)
        result = cmd_dataset(_filter_args(settings, dataset=str(dataset_file)))
        assert result == 0
        assert "0 suppressed, 3 remaining" in capsys.readouterr().err

    def test_filter_missing_store(self, store_path, dataset_file, capsys):
        settings = Settings(exceptions_path=str(store_path))
        result = cmd_dataset(_filter_args(settings, dataset=str(dataset_file)))
        assert result == 1
        assert "Exception store not found" in capsys.readouterr().err

    def test_filter_empty_store(self, store_path, dataset_file, capsys):
        """An empty store leaves the dataset unchanged."""
        LocalExceptionStore(store_path).save([])
        settings = Settings(exceptions_path=str(store_path))
        result = cmd_dataset(_filter_args(settings, dataset=str(dataset_file)))
        assert result == 0

        records = list(csv.DictReader(io.StringIO(capsys.readouterr().out)))
        assert [r["ObjectId"] for r in records] == ["SPN1", "spn-42", "spn-99"]

    def test_filter_no_dataset_configured(self, populated_settings, capsys):
        result = cmd_dataset(_filter_args(populated_settings))
        assert result == 1
        assert "No dataset given" in capsys.readouterr().err

    def test_filter_dataset_not_utf8(self, populated_settings, tmp_path, capsys):
        path = tmp_path / "rbac_audit_bad.csv"
        path.write_bytes(b"ObjectId,ScopeType,Role\n\xff\xfe,resourceGroup,Owner\n")

        result = cmd_dataset(_filter_args(populated_settings, dataset=str(path)))
        assert result == 1
        assert "Error filtering dataset" in capsys.readouterr().err

    def test_filter_bad_date(self, populated_settings, dataset_file, capsys):
        result = cmd_dataset(
            _filter_args(populated_settings, dataset=str(dataset_file), date="tomorrow")
        )
        assert result == 1

    def test_filter_after_remove(self, store_path, dataset_file, capsys):
        manager = ExceptionManager(LocalExceptionStore(store_path), clock=lambda: date(2024, 6, 1))
        manager.add_exception(
            object_id="SPN1",
            scope_type="resourceGroup",
            role="Owner",
            sec_arch_id="SA1",
            last_modified_by="owner@example.com",
        )
        manager.remove_exceptions(object_id="SPN1")

        settings = Settings(exceptions_path=str(store_path))
        result = cmd_dataset(_filter_args(settings, dataset=str(dataset_file)))
        assert result == 0
        assert "0 suppressed, 3 remaining" in capsys.readouterr().err


class TestDatasetLatest:
    """Tests for dataset latest."""

    def test_latest_from_settings(self, dataset_file, capsys):
        settings = Settings(dataset_dir=str(dataset_file.parent), filename_pattern="rbac_audit")
        args = argparse.Namespace(
            dataset_action="latest",
            settings=settings,
            dataset_dir=None,
            filename_pattern=None,
        )
        assert cmd_dataset(args) == 0
        assert capsys.readouterr().out.strip() == str(dataset_file)

    def test_latest_nothing_matches(self, tmp_path, capsys):
        args = argparse.Namespace(
            dataset_action="latest",
            settings=Settings(),
            dataset_dir=str(tmp_path),
            filename_pattern="missing",
        )
        assert cmd_dataset(args) == 1
        assert "No dataset matching" in capsys.readouterr().err


class TestDatasetParser:
    """Tests for the dataset argument parser."""

    def test_parse_filter(self):
        parser = argparse.ArgumentParser()
        subparsers = parser.add_subparsers(dest="command")
        add_dataset_parser(subparsers)

        args = parser.parse_args(
            ["dataset", "filter", "--dataset", "audit.csv", "--mode", "suppressed"]
        )
        assert args.dataset_action == "filter"
        assert args.dataset == "audit.csv"
        assert args.mode == "suppressed"
        assert args.format == "csv"
        assert args.date is None

    def test_parse_filter_rejects_bad_mode(self):
        parser = argparse.ArgumentParser()
        subparsers = parser.add_subparsers(dest="command")
        add_dataset_parser(subparsers)

        with pytest.raises(SystemExit):
            parser.parse_args(["dataset", "filter", "--mode", "everything"])
