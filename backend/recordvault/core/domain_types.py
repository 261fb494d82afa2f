"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - RecordId and PrincipalId wrap ints — never use bare int for identity in domain logic
    - LogicalTable is a caller-chosen category name, never a physical relation name
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (audit blobs, diagnostic reports)
"""

from enum import Enum
from typing import Any, NewType


# ─── Identity Types ──────────────────────────────────────────────

RecordId = NewType("RecordId", int)
PrincipalId = NewType("PrincipalId", int)
LogicalTable = NewType("LogicalTable", str)


# ─── Value Types ─────────────────────────────────────────────────

# Schema-less record body: validated only as "is a mapping"
Payload = dict[str, Any]
Ciphertexts = dict[str, str]


# ─── Enums ───────────────────────────────────────────────────────

class AuditAction(str, Enum):
    """Mutation kinds recorded in the audit trail — maps to `audit_logs.action`."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class HealthStatus(str, Enum):
    """Aggregate diagnostic outcome."""
    HEALTHY = "healthy"
    ISSUES_DETECTED = "issues_detected"


class SortDirection(str, Enum):
    """Record listing direction."""
    ASC = "asc"
    DESC = "desc"


class OrderField(str, Enum):
    """Columns a record page may be ordered by (whitelist — never raw SQL)."""
    ID = "id"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class DiagnosticCheck(str, Enum):
    """Sub-checks composed by run_diagnostics, in execution order."""
    SCHEMA = "schema"
    PERMISSIONS = "permissions"
    PERFORMANCE = "performance"
    INTEGRITY = "integrity"


# Capability probes evaluated by check_permissions, in report order
CAPABILITY_PROBES: tuple[str, ...] = (
    "can_select_users",
    "can_insert_users",
    "can_update_users",
    "can_delete_users",
    "can_create_tables",
    "can_connect",
)

REDACTED = "[REDACTED]"
