"""Schema Diagnostics — verifies probes, checks, auto-fix idempotence and index repair.

Invariants:
    - A missing table is recreated by auto_fix and a second run returns []
    - Probe failure or timeout raises ConnectivityError and runs no sub-check
    - Orphans are reported by check_integrity and removed by auto_fix
"""

import asyncio

import pytest
from sqlalchemy import text

from recordvault.core.domain_types import HealthStatus
from recordvault.core.errors import ConnectivityError, ValidationError
from recordvault.infrastructure.database import DatabaseSessionManager
from recordvault.models.audit_entry import AuditEntry
from recordvault.models.principal import Principal
from recordvault.services.schema_diagnostics import SchemaDiagnostics


async def _drop_table(db, table) -> None:
    async with db.begin() as conn:
        await conn.run_sync(table.drop)


# ─── Probe ───────────────────────────────────────────────────────

async def test_probe_reports_server_identity(diagnostics):
    health = await diagnostics.probe()

    assert health.latency_ms >= 0
    assert health.server_version.startswith("SQLite")
    assert health.current_database == ":memory:"


async def test_probe_timeout_is_connectivity_error(db, descriptor, monkeypatch):
    async def slow_identity(conn):
        await asyncio.sleep(1)

    monkeypatch.setattr(db.catalog, "server_identity", slow_identity)
    diagnostics = SchemaDiagnostics(db, descriptor, probe_timeout=0.05)

    with pytest.raises(ConnectivityError):
        await diagnostics.probe()


async def test_unreachable_store_fails_run_diagnostics(descriptor, tmp_path):
    db = DatabaseSessionManager(
        f"sqlite+aiosqlite:///{tmp_path}/missing-dir/store.db", connect_timeout=1.0,
    )
    diagnostics = SchemaDiagnostics(db, descriptor, probe_timeout=1.0)
    try:
        with pytest.raises(ConnectivityError) as exc:
            await diagnostics.run_diagnostics()
        assert exc.value.code == "CONNECTIVITY_ERROR"
    finally:
        await db.dispose()


async def test_test_connection_probes_other_store(diagnostics):
    health = await diagnostics.test_connection("sqlite+aiosqlite:///:memory:")
    assert health.server_version.startswith("SQLite")


async def test_test_connection_accepts_plain_postgres_url(diagnostics):
    # Plain postgresql:// resolves to the async driver; port 1 refuses connections
    with pytest.raises(ConnectivityError):
        await diagnostics.test_connection("postgresql://u:p@127.0.0.1:1/db")


async def test_test_connection_rejects_unknown_dialect(diagnostics):
    with pytest.raises(ValidationError):
        await diagnostics.test_connection("nosuchdialect://host/db")


# ─── Read-only checks ────────────────────────────────────────────

async def test_healthy_store_reports_healthy(diagnostics):
    report = await diagnostics.run_diagnostics()

    assert report.health is HealthStatus.HEALTHY
    assert set(report.checks) == {"schema", "permissions", "performance", "integrity"}
    body = report.as_dict()
    assert body["health"] == "healthy"
    assert body["diagnostics"]["performance"]["data"]["slow_operations"] == []


async def test_validate_schema_reports_missing_table(diagnostics, db):
    await _drop_table(db, AuditEntry.__table__)

    result = await diagnostics.validate_schema()

    assert result.success is False
    assert result.data["missing_tables"] == ["audit_logs"]
    assert result.error.code == "SCHEMA_VIOLATION"


async def test_validate_schema_reports_missing_columns(diagnostics, db):
    async with db.begin() as conn:
        await conn.execute(text("DROP TABLE connection_strings"))
        await conn.execute(text(
            "CREATE TABLE connection_strings (id INTEGER PRIMARY KEY, name VARCHAR(100))"
        ))

    result = await diagnostics.validate_schema()

    assert result.success is False
    assert result.data["missing_tables"] == []
    assert "user_id" in result.data["missing_columns"]["connection_strings"]


async def test_missing_table_gives_issues_detected_with_details(diagnostics, db):
    await _drop_table(db, AuditEntry.__table__)

    report = await diagnostics.run_diagnostics()

    assert report.health is HealthStatus.ISSUES_DETECTED
    assert report.failed_checks == ["schema"]
    assert report.checks["permissions"].success is True


async def test_read_only_store_denies_write_capabilities(diagnostics, db):
    async with db.connection() as conn:
        await conn.execute(text("PRAGMA query_only = 1"))
    try:
        result = await diagnostics.check_permissions()
    finally:
        async with db.connection() as conn:
            await conn.execute(text("PRAGMA query_only = 0"))

    assert result.success is False
    assert result.data["can_select_users"] is True
    assert "can_insert_users" in result.error.denied


async def test_integrity_counts_orphans_by_logical_table(store, diagnostics, add_principal):
    owner = await add_principal("alice")
    await store.insert("inventory", {"n": 1}, owner_id=owner)
    await store.insert("inventory", {"n": 2}, owner_id=owner + 100)
    await store.insert("accounts", {"n": 3}, owner_id=owner + 100)
    await store.insert("inventory", {"n": 4})

    result = await diagnostics.check_integrity()

    assert result.success is False
    assert result.data["orphans"]["data_storage"] == 2
    assert result.data["total_orphaned"] == 2
    assert result.data["orphans_by_logical_table"] == {"accounts": 1, "inventory": 1}
    assert result.error.total_orphaned == 2


# ─── Repairs ─────────────────────────────────────────────────────

async def test_auto_fix_recreates_missing_table_then_is_idempotent(diagnostics, db):
    await _drop_table(db, AuditEntry.__table__)

    fixes = await diagnostics.auto_fix()
    assert "Created missing table: audit_logs" in fixes

    assert await diagnostics.auto_fix() == []
    result = await diagnostics.validate_schema()
    assert result.success is True


async def test_auto_fix_on_healthy_store_does_nothing(diagnostics):
    assert await diagnostics.auto_fix() == []


async def test_auto_fix_creates_missing_index(diagnostics, db):
    async with db.begin() as conn:
        await conn.execute(text("DROP INDEX idx_data_storage_user_id"))

    fixes = await diagnostics.auto_fix()

    assert fixes == ["Created missing index: idx_data_storage_user_id"]
    assert await diagnostics.auto_fix() == []


async def test_auto_fix_cleans_orphans(store, diagnostics, add_principal):
    owner = await add_principal("bob")
    kept = await store.insert("inventory", {"n": 1}, owner_id=owner)
    await store.insert("inventory", {"n": 2}, owner_id=owner + 100)

    fixes = await diagnostics.auto_fix()

    assert fixes == ["Cleaned up 1 orphaned records from data_storage"]
    page = await store.get("inventory")
    assert [r.id for r in page.data] == [kept.id]
    assert (await diagnostics.check_integrity()).success is True


async def test_auto_fix_skips_orphan_cleanup_after_creating_principal_table(
    store, diagnostics, db,
):
    await store.insert("inventory", {"n": 1}, owner_id=42)
    await _drop_table(db, Principal.__table__)

    fixes = await diagnostics.auto_fix()

    assert fixes == ["Created missing table: users"]
    page = await store.get("inventory")
    assert page.pagination.total == 1


async def test_initialize_creates_everything_on_empty_store(descriptor):
    db = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    diagnostics = SchemaDiagnostics(db, descriptor)
    try:
        created = await diagnostics.initialize()
        assert sorted(created) == sorted(
            f"Created missing table: {name}" for name in descriptor.table_names
        )
        assert await diagnostics.initialize() == []
        assert (await diagnostics.validate_schema()).success is True
    finally:
        await db.dispose()


async def test_repair_indexes_reports_every_table(diagnostics, descriptor):
    outcomes = await diagnostics.repair_indexes()

    assert [o.table for o in outcomes] == list(descriptor.table_names)
    assert all(o.success for o in outcomes)


async def test_repair_indexes_continues_past_missing_table(diagnostics, db):
    await _drop_table(db, AuditEntry.__table__)

    outcomes = {o.table: o for o in await diagnostics.repair_indexes()}

    assert outcomes["audit_logs"].success is False
    assert outcomes["data_storage"].success is True
