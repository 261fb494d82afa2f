"""Error Hierarchy — typed, categorized exceptions for all RecordVault failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Codes are stable and machine-checkable; messages are human-readable
    - to_response() produces the structured error envelope
    - No internal details leaked in messages (stack traces go to logs only)

Design Decisions:
    - Single hierarchy with RecordVaultError base: callers catch one type (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - NotFoundOrForbidden deliberately carries no id/owner detail: existence is never leaked
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and caller handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    SCHEMA = "schema"
    PERMISSION = "permission"
    INTEGRITY = "integrity"
    ENCRYPTION = "encryption"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    logical_table: str | None = None
    record_id: int | None = None
    check: str | None = None
    debug_info: dict[str, Any] | None = None


class RecordVaultError(Exception):
    """Base exception for all RecordVault errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    @property
    def recoverable(self) -> bool:
        return self.severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING)

    def to_response(self) -> dict:
        """Convert to standardized error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Caller Errors ───────────────────────────────────────────────

class ValidationError(RecordVaultError):
    """Malformed payload shape or invalid query arguments."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )
        self.field = field


class NotFoundOrForbidden(RecordVaultError):
    """Id/owner mismatch on update or delete — indistinguishable from not-found."""
    MESSAGE = "Record not found or access denied"

    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            self.MESSAGE, "NOT_FOUND_OR_FORBIDDEN",
            ErrorCategory.RESOURCE_NOT_FOUND, ErrorSeverity.ERROR, context,
        )


# ─── Reported (non-fatal) Conditions ─────────────────────────────

class SchemaViolation(RecordVaultError):
    """Structural drift between the live catalog and the schema descriptor."""
    def __init__(
        self,
        missing_tables: list[str],
        missing_columns: dict[str, list[str]] | None = None,
        context: ErrorContext | None = None,
    ):
        missing_columns = missing_columns or {}
        parts = []
        if missing_tables:
            parts.append(f"missing tables: {', '.join(missing_tables)}")
        for table, columns in missing_columns.items():
            parts.append(f"{table} missing columns: {', '.join(columns)}")
        super().__init__(
            "Schema drift detected (" + "; ".join(parts) + ")",
            "SCHEMA_VIOLATION", ErrorCategory.SCHEMA,
            ErrorSeverity.WARNING, context,
        )
        self.missing_tables = missing_tables
        self.missing_columns = missing_columns


class PermissionDenied(RecordVaultError):
    """One or more capability probes returned false."""
    def __init__(self, denied: list[str], context: ErrorContext | None = None):
        super().__init__(
            f"Missing capabilities: {', '.join(denied)}",
            "PERMISSION_DENIED", ErrorCategory.PERMISSION,
            ErrorSeverity.WARNING, context,
        )
        self.denied = denied


class IntegrityViolation(RecordVaultError):
    """Orphaned rows reference principals that no longer exist."""
    def __init__(self, total_orphaned: int, context: ErrorContext | None = None):
        super().__init__(
            f"Orphaned records detected: {total_orphaned}",
            "INTEGRITY_VIOLATION", ErrorCategory.INTEGRITY,
            ErrorSeverity.WARNING, context,
        )
        self.total_orphaned = total_orphaned


class EncryptionError(RecordVaultError):
    """A single field failed to decrypt — degrades that field only."""
    def __init__(
        self, field_name: str | None = None, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Failed to decrypt field '{field_name}'" if field_name
            else "Failed to decrypt ciphertext",
            "ENCRYPTION_ERROR", ErrorCategory.ENCRYPTION,
            ErrorSeverity.WARNING, context,
        )
        self.field_name = field_name


# ─── Infrastructure Errors ───────────────────────────────────────

class ConnectivityError(RecordVaultError):
    """Store unreachable — fatal to the calling operation."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Store unreachable: {message}",
            "CONNECTIVITY_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context,
        )


class DatabaseError(RecordVaultError):
    """Database statement failed after a connection was established."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context,
        )
        self.operation = operation
