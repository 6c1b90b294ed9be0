"""
CLI commands for RBAC exception management.

Provides command-line interface for adding, updating, removing and
inspecting exceptions in the exception store.
"""

from __future__ import annotations

import argparse
import json
import sys

from rbacguard.config import Settings
from rbacguard.exceptions import (
    ApprovalKind,
    ExactIdentity,
    ExceptionRecord,
    ExceptionRecordError,
    Role,
    ScopeNamePattern,
    ScopeObject,
    ScopeType,
    create_exception_manager,
)


def _settings(args: argparse.Namespace) -> Settings:
    return getattr(args, "settings", None) or Settings()


def _identity_label(exc: ExceptionRecord) -> str:
    if isinstance(exc.identity, ExactIdentity):
        return exc.identity.object_id
    return f"*{exc.identity.name_pattern}* ({exc.identity.eon_id}/{exc.identity.tenant})"


def _scope_label(exc: ExceptionRecord) -> str:
    if isinstance(exc.scope, ScopeObject):
        return exc.scope.scope_object_id
    if isinstance(exc.scope, ScopeNamePattern):
        return f"*{exc.scope.scope_name_pattern}*"
    return "all"


def _format_exception_table(exceptions: list[ExceptionRecord]) -> str:
    """Format exceptions as a table."""
    if not exceptions:
        return "No exceptions found."

    rows = []
    for exc in exceptions:
        expiry = "Never"
        if exc.expires_on:
            days = exc.days_until_expiry()
            expiry = "Expired" if days is not None and days < 0 else exc.expires_on.isoformat()
        rows.append(
            (
                exc.unique_id[:8],
                _identity_label(exc),
                exc.scope_type.value,
                _scope_label(exc),
                exc.role.value,
                f"{exc.approval_kind.value}:{exc.approval.approval_id}",
                expiry,
            )
        )

    headers = ("ID", "Identity", "Scope Type", "Scope", "Role", "Approval", "Expiry")
    widths = [max(len(h), *(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip()]
    lines.append("-" * len(lines[0]))
    for row in rows:
        lines.append("  ".join(v.ljust(w) for v, w in zip(row, widths)).rstrip())
    return "\n".join(lines)


def _format_exception_detail(exc: ExceptionRecord) -> str:
    """Format exception details."""
    lines = [f"Exception ID: {exc.unique_id}"]

    if isinstance(exc.identity, ExactIdentity):
        lines.append(f"Object ID: {exc.identity.object_id}")
    else:
        lines.append(f"Name Pattern: {exc.identity.name_pattern}")
        lines.append(f"EonID: {exc.identity.eon_id}")
        lines.append(f"Tenant: {exc.identity.tenant}")

    if isinstance(exc.scope, ScopeObject):
        lines.append(f"Scope Object ID: {exc.scope.scope_object_id}")
    elif isinstance(exc.scope, ScopeNamePattern):
        lines.append(f"Scope Name Pattern: {exc.scope.scope_name_pattern}")
    else:
        lines.append("Scope: all objects of the scope type")

    lines.append(f"Scope Type: {exc.scope_type.value}")
    lines.append(f"Role: {exc.role.value}")
    lines.append(f"Approval: {exc.approval_kind.value} {exc.approval.approval_id}")
    if exc.expires_on:
        lines.append(f"Expires On: {exc.expires_on.isoformat()}")
        lines.append(f"Days Until Expiry: {exc.days_until_expiry()}")
    lines.append(f"Is Active: {exc.is_active()}")
    lines.append(f"Created On: {exc.created_on.isoformat()}")
    lines.append(f"Last Modified On: {exc.last_modified_on.isoformat()}")
    lines.append(f"Last Modified By: {exc.last_modified_by}")
    return "\n".join(lines)


def cmd_exceptions(args: argparse.Namespace) -> int:
    """Handle exceptions commands."""
    action = getattr(args, "exceptions_action", None)

    if action is None:
        print("Usage: rbacguard exceptions <command>")
        print("\nCommands:")
        print("  add          Add an exception")
        print("  update       Update fields of an exception")
        print("  remove       Remove exceptions matching criteria")
        print("  delete       Delete an exception by ID")
        print("  list         List exceptions")
        print("  show         Show exception details")
        print("  expired      List expired ActionPlan exceptions")
        return 0

    handlers = {
        "add": _handle_exceptions_add,
        "update": _handle_exceptions_update,
        "remove": _handle_exceptions_remove,
        "delete": _handle_exceptions_delete,
        "list": _handle_exceptions_list,
        "show": _handle_exceptions_show,
        "expired": _handle_exceptions_expired,
    }

    handler = handlers.get(action)
    if handler:
        return handler(args)

    print(f"Unknown exceptions action: {action}", file=sys.stderr)
    return 1


def _handle_exceptions_add(args: argparse.Namespace) -> int:
    """Add an exception."""
    manager = create_exception_manager(_settings(args))
    output_format = getattr(args, "format", "text")

    try:
        exception = manager.add_exception(
            scope_type=getattr(args, "scope_type", None),
            role=getattr(args, "role", None),
            last_modified_by=getattr(args, "modified_by", None),
            object_id=getattr(args, "object_id", None),
            name_pattern=getattr(args, "name_pattern", None),
            eon_id=getattr(args, "eon_id", None),
            tenant=getattr(args, "tenant", None),
            scope_object_id=getattr(args, "scope_object_id", None),
            scope_name_pattern=getattr(args, "scope_name_pattern", None),
            sec_arch_id=getattr(args, "sec_arch", None),
            action_plan_id=getattr(args, "action_plan", None),
            expires_on=getattr(args, "expires_on", None),
        )
    except (ExceptionRecordError, OSError) as e:
        print(f"Error adding exception: {e}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps(exception.to_dict(), indent=2))
    else:
        print(f"Added exception: {exception.unique_id}")
    return 0


def _handle_exceptions_update(args: argparse.Namespace) -> int:
    """Update an exception."""
    manager = create_exception_manager(_settings(args))
    unique_id = getattr(args, "exception_id", None)
    output_format = getattr(args, "format", "text")

    if not unique_id:
        print("Error: Exception ID is required", file=sys.stderr)
        return 1

    try:
        exception = manager.update_exception(
            unique_id,
            last_modified_by=getattr(args, "modified_by", None),
            clear_scope=getattr(args, "clear_scope", False),
            object_id=getattr(args, "object_id", None),
            name_pattern=getattr(args, "name_pattern", None),
            eon_id=getattr(args, "eon_id", None),
            tenant=getattr(args, "tenant", None),
            scope_object_id=getattr(args, "scope_object_id", None),
            scope_name_pattern=getattr(args, "scope_name_pattern", None),
            scope_type=getattr(args, "scope_type", None),
            role=getattr(args, "role", None),
            sec_arch_id=getattr(args, "sec_arch", None),
            action_plan_id=getattr(args, "action_plan", None),
            expires_on=getattr(args, "expires_on", None),
        )
    except (ExceptionRecordError, OSError) as e:
        print(f"Error updating exception: {e}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps(exception.to_dict(), indent=2))
    else:
        print(f"Updated exception: {exception.unique_id}")
    return 0


def _handle_exceptions_remove(args: argparse.Namespace) -> int:
    """Remove exceptions matching criteria."""
    manager = create_exception_manager(_settings(args))

    try:
        count = manager.remove_exceptions(
            object_id=getattr(args, "object_id", None),
            name_pattern=getattr(args, "name_pattern", None),
            scope_type=getattr(args, "scope_type", None),
            role=getattr(args, "role", None),
            scope_object_id=getattr(args, "scope_object_id", None),
            tenant=getattr(args, "tenant", None),
        )
    except (ExceptionRecordError, OSError) as e:
        print(f"Error removing exceptions: {e}", file=sys.stderr)
        return 1

    if count == 0:
        print("Warning: no exceptions removed, check filter criteria", file=sys.stderr)
    else:
        print(f"Removed {count} exception(s)")
    return 0


def _handle_exceptions_delete(args: argparse.Namespace) -> int:
    """Delete an exception by ID."""
    manager = create_exception_manager(_settings(args))
    unique_id = getattr(args, "exception_id", None)

    if not unique_id:
        print("Error: Exception ID is required", file=sys.stderr)
        return 1

    try:
        deleted = manager.delete_exception(unique_id)
    except (ExceptionRecordError, OSError) as e:
        print(f"Error deleting exception: {e}", file=sys.stderr)
        return 1

    if not deleted:
        print(f"Exception not found: {unique_id}", file=sys.stderr)
        return 1

    print(f"Deleted exception: {unique_id}")
    return 0


def _handle_exceptions_list(args: argparse.Namespace) -> int:
    """List exceptions."""
    manager = create_exception_manager(_settings(args))
    output_format = getattr(args, "format", "table")
    kind_filter = getattr(args, "kind", None)
    active_only = getattr(args, "active", False)

    try:
        exceptions = manager.list_exceptions(
            approval_kind=ApprovalKind.parse(kind_filter) if kind_filter else None,
            include_expired=not active_only,
        )
    except (ExceptionRecordError, OSError) as e:
        print(f"Error listing exceptions: {e}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps([e.to_dict() for e in exceptions], indent=2))
    else:
        print(_format_exception_table(exceptions))
        print(f"\nTotal: {len(exceptions)} exception(s)")
    return 0


def _handle_exceptions_show(args: argparse.Namespace) -> int:
    """Show exception details."""
    manager = create_exception_manager(_settings(args))
    exception_id = getattr(args, "exception_id", None)
    output_format = getattr(args, "format", "text")

    if not exception_id:
        print("Error: Exception ID is required", file=sys.stderr)
        return 1

    try:
        # Support partial IDs
        all_exceptions = manager.list_exceptions()
    except (ExceptionRecordError, OSError) as e:
        print(f"Error showing exception: {e}", file=sys.stderr)
        return 1

    matches = [e for e in all_exceptions if e.unique_id.startswith(exception_id)]

    if not matches:
        print(f"Exception not found: {exception_id}", file=sys.stderr)
        return 1

    if len(matches) > 1:
        print(f"Multiple exceptions match '{exception_id}':", file=sys.stderr)
        for e in matches:
            print(f"  {e.unique_id[:12]} ({_identity_label(e)})", file=sys.stderr)
        return 1

    exc = matches[0]
    if output_format == "json":
        print(json.dumps(exc.to_dict(), indent=2))
    else:
        print(_format_exception_detail(exc))
    return 0


def _handle_exceptions_expired(args: argparse.Namespace) -> int:
    """List expired ActionPlan exceptions."""
    manager = create_exception_manager(_settings(args))
    output_format = getattr(args, "format", "table")

    try:
        exceptions = manager.expired_exceptions()
    except (ExceptionRecordError, OSError) as e:
        print(f"Error listing expired exceptions: {e}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps([e.to_dict() for e in exceptions], indent=2))
    else:
        print(_format_exception_table(exceptions))
        print(f"\nExpired: {len(exceptions)} exception(s)")
    return 0


def _add_identity_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--object-id",
        help="Exact object ID of the Service Principal or Azure object",
    )
    parser.add_argument(
        "--name-pattern",
        help="Display name pattern (substring match, '*' is ignored)",
    )
    parser.add_argument(
        "--eon-id",
        help="Owning application EonID (required with --name-pattern)",
    )
    parser.add_argument(
        "--tenant",
        help="Tenant (required with --name-pattern)",
    )


def _add_scope_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--scope-object-id",
        help="Restrict to one scope object ID",
    )
    parser.add_argument(
        "--scope-name-pattern",
        help="Restrict to scopes whose display name contains the pattern",
    )


def _add_approval_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--sec-arch",
        help="SecArch approval ID (permanent exception)",
    )
    parser.add_argument(
        "--action-plan",
        help="ActionPlan ID (time-bound exception)",
    )
    parser.add_argument(
        "--expires-on",
        help="ActionPlan expiry date (YYYY-MM-DD)",
    )


def add_exceptions_parser(subparsers: argparse._SubParsersAction) -> None:
    """Add exceptions parser to CLI subparsers."""
    exc_parser = subparsers.add_parser(
        "exceptions",
        help="Manage RBAC exceptions",
        description="Add, update, remove and inspect approved RBAC exceptions.",
    )

    exc_subparsers = exc_parser.add_subparsers(
        dest="exceptions_action",
        title="Exception Commands",
    )

    scope_types = [s.value for s in ScopeType]
    roles = [r.value for r in Role]

    # add
    add_parser = exc_subparsers.add_parser("add", help="Add an exception")
    _add_identity_arguments(add_parser)
    _add_scope_arguments(add_parser)
    add_parser.add_argument(
        "--scope-type",
        required=True,
        choices=scope_types,
        help="Scope level",
    )
    add_parser.add_argument(
        "--role",
        required=True,
        choices=roles,
        help="Role covered by the exception",
    )
    _add_approval_arguments(add_parser)
    add_parser.add_argument(
        "--modified-by",
        required=True,
        help="Email of the requester",
    )
    add_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )

    # update
    update_parser = exc_subparsers.add_parser(
        "update", help="Update fields of an exception"
    )
    update_parser.add_argument("exception_id", help="Exception unique ID")
    _add_identity_arguments(update_parser)
    _add_scope_arguments(update_parser)
    update_parser.add_argument(
        "--clear-scope",
        action="store_true",
        help="Remove the scope restriction",
    )
    update_parser.add_argument("--scope-type", choices=scope_types, help="Scope level")
    update_parser.add_argument("--role", choices=roles, help="Role")
    _add_approval_arguments(update_parser)
    update_parser.add_argument(
        "--modified-by",
        required=True,
        help="Email of whoever makes the change",
    )
    update_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )

    # remove
    remove_parser = exc_subparsers.add_parser(
        "remove", help="Remove exceptions matching all given criteria"
    )
    remove_parser.add_argument("--object-id", help="Object ID")
    remove_parser.add_argument("--name-pattern", help="Name pattern")
    remove_parser.add_argument("--scope-type", choices=scope_types, help="Scope level")
    remove_parser.add_argument("--role", choices=roles, help="Role")
    remove_parser.add_argument("--scope-object-id", help="Scope object ID")
    remove_parser.add_argument("--tenant", help="Tenant")

    # delete
    delete_parser = exc_subparsers.add_parser("delete", help="Delete an exception by ID")
    delete_parser.add_argument("exception_id", help="Exception unique ID")

    # list
    list_parser = exc_subparsers.add_parser("list", help="List exceptions")
    list_parser.add_argument(
        "--kind",
        choices=[k.value for k in ApprovalKind],
        help="Filter by approval kind",
    )
    list_parser.add_argument(
        "--active",
        action="store_true",
        help="Only show exceptions that have not expired",
    )
    list_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format",
    )

    # show
    show_parser = exc_subparsers.add_parser("show", help="Show exception details")
    show_parser.add_argument("exception_id", help="Exception ID (prefix accepted)")
    show_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )

    # expired
    expired_parser = exc_subparsers.add_parser(
        "expired", help="List expired ActionPlan exceptions"
    )
    expired_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format",
    )
