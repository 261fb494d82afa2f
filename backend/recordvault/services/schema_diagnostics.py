"""Schema Diagnostics — probes, structural checks and repairs of the live store.

Invariants:
    - probe() is bounded by probe_timeout; failure or timeout is ConnectivityError
    - run_diagnostics() runs no sub-check unless the probe succeeded
    - Sub-checks are captured independently: one failing check never hides the others
    - validate_schema/check_* never mutate the store
    - auto_fix() steps each run in their own transaction; a failed step is
      reported as a message and never aborts later steps
    - auto_fix() with no intervening drift returns []

Design Decisions:
    - Live catalog read through the SQLAlchemy inspector (run_sync): portable
      across PostgreSQL and SQLite; dialect-only questions go to the StoreCatalog
    - Tables and indexes created from the canonical ORM definitions, never from
      hand-written DDL
    - Orphan cleanup skipped in a run that just created the principal table:
      an empty principal table would otherwise orphan every owned row
    - ConnectivityError propagates out of every method: a lost store is fatal
      to the call, not a finding
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from sqlalchemy import delete, func, inspect, select, text
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncConnection

from recordvault.config import normalize_database_url
from recordvault.core.domain_types import CAPABILITY_PROBES, DiagnosticCheck
from recordvault.core.diagnostic_results import (
    CheckResult, ConnectionHealth, DiagnosticReport, RepairOutcome,
)
from recordvault.core.errors import (
    ConnectivityError, DatabaseError, ErrorContext, IntegrityViolation,
    PermissionDenied, RecordVaultError, SchemaViolation, ValidationError,
)
from recordvault.core.schema_descriptor import SchemaDescriptor, TableSpec
from recordvault.core.schema_drift import (
    find_missing_columns, find_missing_indexes, find_missing_tables,
)
from recordvault.db.schema import index_definition, table_definition
from recordvault.infrastructure.database import DatabaseSessionManager
from recordvault.models.stored_record import StoredRecord

logger = logging.getLogger(__name__)

SLOW_OPERATION_THRESHOLD_MS = 100.0
SLOW_OPERATION_LIMIT = 10


@dataclass
class CatalogSnapshot:
    """Live tables, columns and index names, restricted to descriptor tables."""
    tables: list[str]
    columns: dict[str, list[str]] = field(default_factory=dict)
    indexes: dict[str, list[str]] = field(default_factory=dict)


def _read_catalog(sync_conn, wanted: tuple[str, ...]) -> CatalogSnapshot:
    inspector = inspect(sync_conn)
    tables = inspector.get_table_names()
    present = [name for name in wanted if name in tables]
    return CatalogSnapshot(
        tables=tables,
        columns={
            name: [c["name"] for c in inspector.get_columns(name)] for name in present
        },
        indexes={
            name: [i["name"] for i in inspector.get_indexes(name) if i.get("name")]
            for name in present
        },
    )


class SchemaDiagnostics:
    """Health checks and repairs driven by the SchemaDescriptor."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        descriptor: SchemaDescriptor,
        probe_timeout: float = 5.0,
    ):
        self.db = db
        self.descriptor = descriptor
        self.probe_timeout = probe_timeout

    # ─── Connectivity ────────────────────────────────────────────

    async def probe(self) -> ConnectionHealth:
        """Measure round-trip latency and identify the server."""
        return await self._probe(self.db)

    async def test_connection(self, database_url: str) -> ConnectionHealth:
        """Probe an arbitrary store URL with a short-lived engine."""
        if not isinstance(database_url, str) or not database_url:
            raise ValidationError("database_url must be a non-empty string", field="database_url")
        try:
            target = DatabaseSessionManager(
                normalize_database_url(database_url), pool_size=1, max_overflow=0,
                connect_timeout=self.probe_timeout,
            )
        except (ArgumentError, InvalidRequestError, ImportError, ValueError) as e:
            logger.warning(f"Rejected test connection URL: {e.__class__.__name__}")
            raise ValidationError(
                "Unsupported or malformed database URL", field="database_url",
            ) from e
        try:
            return await self._probe(target)
        finally:
            await target.dispose()

    async def _probe(self, db: DatabaseSessionManager) -> ConnectionHealth:
        try:
            return await asyncio.wait_for(self._identify(db), timeout=self.probe_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Probe timed out after {self.probe_timeout}s")
            raise ConnectivityError(f"probe timed out after {self.probe_timeout}s") from e
        except DatabaseError as e:
            raise ConnectivityError(e.message) from e

    async def _identify(self, db: DatabaseSessionManager) -> ConnectionHealth:
        started = time.perf_counter()
        async with db.connection() as conn:
            await conn.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - started) * 1000
            identity = await db.catalog.server_identity(conn)
        return ConnectionHealth(
            latency_ms=latency_ms,
            server_version=identity.get("version") or "unknown",
            current_user=identity.get("user"),
            current_database=identity.get("database"),
        )

    # ─── Read-only checks ────────────────────────────────────────

    async def validate_schema(self) -> CheckResult:
        """Compare the live catalog with the descriptor."""
        snapshot = await self._snapshot()
        missing_tables = find_missing_tables(self.descriptor, snapshot.tables)
        missing_columns = find_missing_columns(self.descriptor, snapshot.columns)
        data = {
            "existing_tables": [t for t in self.descriptor.table_names if t in snapshot.columns],
            "missing_tables": missing_tables,
            "per_table_columns": snapshot.columns,
            "missing_columns": missing_columns,
        }
        if missing_tables or missing_columns:
            error = SchemaViolation(
                missing_tables, missing_columns,
                ErrorContext(check=DiagnosticCheck.SCHEMA.value),
            )
            return CheckResult(DiagnosticCheck.SCHEMA.value, False, error.message, data, error)
        return CheckResult(
            DiagnosticCheck.SCHEMA.value, True,
            f"All {len(self.descriptor.tables)} required tables present", data,
        )

    async def check_permissions(self) -> CheckResult:
        """Evaluate every capability probe against the principal table."""
        async with self.db.connection() as conn:
            capabilities = await self.db.catalog.capabilities(
                conn, self.descriptor.principal_table.table_name,
            )
        data = {probe: bool(capabilities.get(probe)) for probe in CAPABILITY_PROBES}
        denied = [probe for probe, granted in data.items() if not granted]
        if denied:
            error = PermissionDenied(
                denied, ErrorContext(check=DiagnosticCheck.PERMISSIONS.value),
            )
            return CheckResult(DiagnosticCheck.PERMISSIONS.value, False, error.message, data, error)
        return CheckResult(
            DiagnosticCheck.PERMISSIONS.value, True, "All capabilities granted", data,
        )

    async def check_performance(self) -> CheckResult:
        """Activity, storage size and (when available) slow statements."""
        catalog = self.db.catalog
        async with self.db.connection() as conn:
            data = {
                "active_connections": await catalog.active_connections(conn),
                "storage_size_bytes": await catalog.storage_size(conn),
                "slow_operations": await catalog.slow_operations(
                    conn, SLOW_OPERATION_THRESHOLD_MS, SLOW_OPERATION_LIMIT,
                ),
            }
        return CheckResult(
            DiagnosticCheck.PERFORMANCE.value, True,
            f"{data['active_connections']} active connections, "
            f"{len(data['slow_operations'])} slow operations",
            data,
        )

    async def check_integrity(self) -> CheckResult:
        """Count rows whose owner reference points at a missing principal."""
        snapshot = await self._snapshot()
        principal = self.descriptor.principal_table
        if principal.table_name not in snapshot.columns:
            error = SchemaViolation(
                [principal.table_name],
                context=ErrorContext(check=DiagnosticCheck.INTEGRITY.value),
            )
            return CheckResult(
                DiagnosticCheck.INTEGRITY.value, False, error.message,
                {"orphans": {}, "total_orphaned": 0}, error,
            )

        orphans: dict[str, int] = {}
        by_logical_table: dict[str, int] = {}
        async with self.db.connection() as conn:
            for spec in self._present_owned_tables(snapshot):
                count = await conn.scalar(
                    select(func.count())
                    .select_from(table_definition(self.descriptor, spec.table_name))
                    .where(self._orphan_condition(spec))
                )
                orphans[spec.table_name] = int(count or 0)
                if spec.table_name == StoredRecord.__tablename__ and count:
                    by_logical_table = await self._orphans_by_logical_table(conn, spec)

        total = sum(orphans.values())
        data = {
            "orphans": orphans,
            "total_orphaned": total,
            "orphans_by_logical_table": by_logical_table,
        }
        if total:
            error = IntegrityViolation(
                total, ErrorContext(check=DiagnosticCheck.INTEGRITY.value),
            )
            return CheckResult(DiagnosticCheck.INTEGRITY.value, False, error.message, data, error)
        return CheckResult(DiagnosticCheck.INTEGRITY.value, True, "No orphaned records", data)

    async def run_diagnostics(self) -> DiagnosticReport:
        """Probe, then every sub-check with partial results."""
        started = time.perf_counter()
        connection = await self.probe()
        checks: dict[str, CheckResult] = {}
        steps: list[tuple[DiagnosticCheck, Callable[[], Awaitable[CheckResult]]]] = [
            (DiagnosticCheck.SCHEMA, self.validate_schema),
            (DiagnosticCheck.PERMISSIONS, self.check_permissions),
            (DiagnosticCheck.PERFORMANCE, self.check_performance),
            (DiagnosticCheck.INTEGRITY, self.check_integrity),
        ]
        for check, run in steps:
            try:
                result = await run()
            except ConnectivityError:
                raise
            except RecordVaultError as e:
                result = CheckResult(check.value, False, e.message, error=e)
            if not result.success:
                logger.warning(
                    f"Diagnostic check {check.value} failed: {result.message}",
                    extra={
                        "check": check.value,
                        "error_code": result.error.code if result.error else None,
                    },
                )
            checks[check.value] = result

        report = DiagnosticReport(connection=connection, checks=checks)
        logger.info(
            f"Diagnostics complete: {report.health.value}",
            extra={"duration_ms": round((time.perf_counter() - started) * 1000, 3)},
        )
        return report

    # ─── Repairs ─────────────────────────────────────────────────

    async def initialize(self) -> list[str]:
        """Create every missing required table and index."""
        fixes, _ = await self._create_missing_structure()
        return fixes

    async def auto_fix(self) -> list[str]:
        """Create missing tables, then missing indexes, then delete orphans."""
        fixes, created_tables = await self._create_missing_structure()

        principal = self.descriptor.principal_table.table_name
        if principal in created_tables:
            logger.warning(
                f"Skipping orphan cleanup: principal table {principal} was just created",
                extra={"fix": "orphans"},
            )
            return fixes

        snapshot = await self._snapshot()
        if principal not in snapshot.columns:
            return fixes
        for spec in self._present_owned_tables(snapshot):
            fixes.extend(await self._delete_orphans(spec))
        return fixes

    async def repair_indexes(self) -> list[RepairOutcome]:
        """Rebuild indexes table by table, then refresh planner statistics."""
        catalog = self.db.catalog
        snapshot = await self._snapshot()
        outcomes = []
        for name in self.descriptor.table_names:
            if name not in snapshot.columns:
                outcomes.append(RepairOutcome(name, False, f"Table {name} does not exist"))
                continue
            try:
                async with self.db.begin() as conn:
                    await conn.execute(text(catalog.reindex_statement(name)))
            except DatabaseError as e:
                logger.error(
                    f"Failed to reindex {name}: {e.message}",
                    extra={"fix": "reindex", "error_code": e.code},
                )
                outcomes.append(RepairOutcome(name, False, f"Failed to reindex {name}: {e.message}"))
                continue
            outcomes.append(RepairOutcome(name, True, f"Reindexed {name}"))

        try:
            async with self.db.begin() as conn:
                await conn.execute(text(catalog.analyze_statement()))
        except DatabaseError as e:
            logger.error(
                f"Failed to refresh statistics: {e.message}",
                extra={"fix": "analyze", "error_code": e.code},
            )
        return outcomes

    # ─── Internals ───────────────────────────────────────────────

    async def _snapshot(self) -> CatalogSnapshot:
        async with self.db.connection() as conn:
            return await conn.run_sync(_read_catalog, self.descriptor.table_names)

    def _present_owned_tables(self, snapshot: CatalogSnapshot) -> list[TableSpec]:
        return [t for t in self.descriptor.owned_tables if t.table_name in snapshot.columns]

    def _orphan_condition(self, spec: TableSpec):
        table = table_definition(self.descriptor, spec.table_name)
        principal = table_definition(self.descriptor, self.descriptor.principal_table.table_name)
        owner = table.c[spec.owner_column]
        principal_id = next(iter(principal.primary_key.columns))
        return owner.is_not(None) & ~select(principal_id).where(principal_id == owner).exists()

    async def _orphans_by_logical_table(
        self, conn: AsyncConnection, spec: TableSpec,
    ) -> dict[str, int]:
        table = table_definition(self.descriptor, spec.table_name)
        rows = await conn.execute(
            select(table.c.table_name, func.count())
            .where(self._orphan_condition(spec))
            .group_by(table.c.table_name)
            .order_by(table.c.table_name)
        )
        return {name: int(count) for name, count in rows.all()}

    async def _create_missing_structure(self) -> tuple[list[str], list[str]]:
        fixes: list[str] = []
        created: list[str] = []

        snapshot = await self._snapshot()
        for name in find_missing_tables(self.descriptor, snapshot.tables):
            table = table_definition(self.descriptor, name)
            try:
                async with self.db.begin() as conn:
                    await conn.run_sync(table.create)
            except DatabaseError as e:
                self._log_fix(f"Failed to create table {name}: {e.message}", "create_table", e)
                fixes.append(f"Failed to create table {name}: {e.message}")
                continue
            created.append(name)
            fixes.append(f"Created missing table: {name}")
            self._log_fix(f"Created missing table: {name}", "create_table")

        # Tables created above bring their indexes with them
        snapshot = await self._snapshot()
        missing_indexes = [
            spec for spec in find_missing_indexes(self.descriptor, snapshot.indexes)
            if spec.table in snapshot.columns
        ]
        for spec in missing_indexes:
            name = spec.name
            index = index_definition(self.descriptor, spec)
            try:
                async with self.db.begin() as conn:
                    await conn.run_sync(index.create)
            except DatabaseError as e:
                self._log_fix(f"Failed to create index {name}: {e.message}", "create_index", e)
                fixes.append(f"Failed to create index {name}: {e.message}")
                continue
            fixes.append(f"Created missing index: {name}")
            self._log_fix(f"Created missing index: {name}", "create_index")

        return fixes, created

    async def _delete_orphans(self, spec: TableSpec) -> list[str]:
        table = table_definition(self.descriptor, spec.table_name)
        try:
            async with self.db.begin() as conn:
                result = await conn.execute(
                    delete(table).where(self._orphan_condition(spec))
                )
                removed = result.rowcount or 0
        except DatabaseError as e:
            message = f"Failed to clean orphaned records from {spec.table_name}: {e.message}"
            self._log_fix(message, "orphans", e)
            return [message]
        if not removed:
            return []
        message = f"Cleaned up {removed} orphaned records from {spec.table_name}"
        self._log_fix(message, "orphans")
        return [message]

    def _log_fix(self, message: str, fix: str, error: RecordVaultError | None = None) -> None:
        if error is None:
            logger.info(message, extra={"fix": fix})
        else:
            logger.error(message, extra={"fix": fix, "error_code": error.code})
