"""Diagnostic Results — structured, serializable outcomes of health checks and repairs.

Invariants:
    - A CheckResult either succeeded or carries the RecordVaultError that explains why not
    - DiagnosticReport.health is HEALTHY iff every sub-check succeeded
    - as_dict() output is JSON-serializable (datetimes as ISO strings)

Design Decisions:
    - Frozen dataclasses over pydantic: internal values, not an IO boundary
    - Failures stored as typed errors, rendered via to_response() — callers get
      stable codes, never stack traces
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from recordvault.core.domain_types import HealthStatus
from recordvault.core.errors import RecordVaultError


@dataclass(frozen=True)
class ConnectionHealth:
    """Result of a successful connectivity probe."""
    latency_ms: float
    server_version: str
    current_user: str | None
    current_database: str | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "latency_ms": round(self.latency_ms, 3),
            "server_version": self.server_version,
            "current_user": self.current_user,
            "current_database": self.current_database,
        }


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one diagnostic sub-check."""
    name: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    error: RecordVaultError | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }
        if self.error is not None:
            payload["error"] = self.error.to_response()["error"]
        return payload


@dataclass(frozen=True)
class DiagnosticReport:
    """Aggregate of all sub-checks behind a successful probe."""
    connection: ConnectionHealth
    checks: dict[str, CheckResult]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def health(self) -> HealthStatus:
        return derive_health(self.checks.values())

    @property
    def failed_checks(self) -> list[str]:
        return [name for name, check in self.checks.items() if not check.success]

    def as_dict(self) -> dict[str, Any]:
        return {
            "health": self.health.value,
            "connection": self.connection.as_dict(),
            "diagnostics": {name: c.as_dict() for name, c in self.checks.items()},
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RepairOutcome:
    """Per-table result of an index rebuild."""
    table: str
    success: bool
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"table": self.table, "success": self.success, "message": self.message}


def derive_health(checks) -> HealthStatus:
    """HEALTHY iff every check succeeded."""
    if all(check.success for check in checks):
        return HealthStatus.HEALTHY
    return HealthStatus.ISSUES_DETECTED
