"""
Pytest configuration and fixtures for RBAC Guard tests.

This module provides common fixtures used across unit and integration tests.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from rbacguard.dataset import DatasetRow
from rbacguard.exceptions import (
    ActionPlanApproval,
    ExactIdentity,
    ExceptionManager,
    ExceptionRecord,
    LocalExceptionStore,
    PatternIdentity,
    Role,
    ScopeType,
    SecArchApproval,
)


TODAY = date(2024, 6, 1)


@pytest.fixture
def today() -> date:
    """Return the fixed reference date used by the tests."""
    return TODAY


# Sample data fixtures


@pytest.fixture
def exact_exception() -> ExceptionRecord:
    """Return a permanent exact-id exception."""
    return ExceptionRecord(
        identity=ExactIdentity("SPN1"),
        scope_type=ScopeType.RESOURCE_GROUP,
        role=Role.OWNER,
        approval=SecArchApproval("SA1"),
        unique_id="exc-exact",
        created_on=date(2024, 1, 1),
        last_modified_on=date(2024, 1, 1),
        last_modified_by="owner@example.com",
    )


@pytest.fixture
def pattern_exception() -> ExceptionRecord:
    """Return a time-bound name-pattern exception that is still active."""
    return ExceptionRecord(
        identity=PatternIdentity("sampleApp*", "EON1", "prod"),
        scope_type=ScopeType.MANAGEMENT_GROUP,
        role=Role.CONTRIBUTOR,
        approval=ActionPlanApproval("AP1", date(2024, 12, 31)),
        unique_id="exc-pattern",
        created_on=date(2024, 1, 1),
        last_modified_on=date(2024, 2, 1),
        last_modified_by="planner@example.com",
    )


@pytest.fixture
def exact_row() -> DatasetRow:
    """Return a row covered by the exact exception."""
    return DatasetRow(
        object_id="spn1",
        display_name="legacy-deployer",
        scope_type="resourceGroup",
        scope_object_id="/subscriptions/sub1/resourceGroups/rg-app",
        scope_display_name="rg-app",
        eon_id="EON9",
        role="Owner",
        tenant="prod",
    )


@pytest.fixture
def pattern_row() -> DatasetRow:
    """Return a row covered by the pattern exception."""
    return DatasetRow(
        object_id="spn-42",
        display_name="prod-SampleApp-deployer",
        scope_type="managementGroup",
        scope_object_id="mg-root",
        scope_display_name="Root Management Group",
        eon_id="EON1",
        role="Contributor",
        tenant="PROD",
    )


@pytest.fixture
def uncovered_row() -> DatasetRow:
    """Return a row no sample exception covers."""
    return DatasetRow(
        object_id="spn-99",
        display_name="other-app",
        scope_type="subscription",
        scope_object_id="sub-2",
        scope_display_name="Sandbox",
        eon_id="EON5",
        role="UserAccessAdministrator",
        tenant="nonprod",
    )


# Store fixtures


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Return a path for a store file that does not exist yet."""
    return tmp_path / "exceptions.json"


@pytest.fixture
def temp_store(store_path: Path) -> LocalExceptionStore:
    """Create a store backed by a temporary file."""
    return LocalExceptionStore(store_path)


@pytest.fixture
def manager(temp_store: LocalExceptionStore) -> ExceptionManager:
    """Create an exception manager with a temp store and a fixed clock."""
    return ExceptionManager(store=temp_store, clock=lambda: TODAY)


SAMPLE_CSV = (
    "ObjectId,DisplayName,ScopeType,ScopeObjectId,ScopeDisplayName,EonId,Role,Tenant,Owner\n"
    "SPN1,legacy-deployer,resourceGroup,/subscriptions/sub1/resourceGroups/rg-app,"
    "rg-app,EON9,Owner,prod,team-a\n"
    "spn-42,prod-sampleApp-deployer,managementGroup,mg-root,Root,EON1,Contributor,prod,team-b\n"
    "spn-99,other-app,subscription,sub-2,Sandbox,EON5,Owner,nonprod,team-c\n"
)


@pytest.fixture
def dataset_file(tmp_path: Path) -> Path:
    """Write a sample dataset CSV and return its path."""
    path = tmp_path / "rbac_audit_2024-06-01.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path
