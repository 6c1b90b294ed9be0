"""
Observability for RBAC Guard.
"""

from rbacguard.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
)

__all__ = [
    "HumanReadableFormatter",
    "StructuredFormatter",
    "configure_logging",
]
