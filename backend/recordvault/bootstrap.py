"""RecordVault Bootstrap — wires settings, logging, store handle, cipher and services.

Invariants:
    - One DatabaseSessionManager per RecordVault, shared by every service
    - Cipher, policy and descriptor are built once and never mutated
    - lifespan() always disposes the engine, even when startup fails

Design Decisions:
    - Lifespan async context manager: same startup/shutdown shape as an ASGI app,
      usable from any host process
    - Startup diagnostics run before the vault is handed out; auto-fix only when
      explicitly enabled (auto_fix_on_startup)
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine

from recordvault.config import Settings, get_settings
from recordvault.core.diagnostic_results import DiagnosticReport
from recordvault.core.domain_types import HealthStatus
from recordvault.core.field_policy import SensitiveFieldPolicy
from recordvault.core.repository_protocols import SymmetricCipher
from recordvault.core.schema_descriptor import SchemaDescriptor
from recordvault.db.schema import build_schema_descriptor
from recordvault.infrastructure.cipher import FernetCipher
from recordvault.infrastructure.database import DatabaseSessionManager
from recordvault.infrastructure.observability import setup_logging
from recordvault.services.audit_trail import AuditTrail
from recordvault.services.record_store import RecordStore
from recordvault.services.schema_diagnostics import SchemaDiagnostics

logger = logging.getLogger(__name__)


@dataclass
class RecordVault:
    """The wired engine: one store handle and the services built on it."""
    settings: Settings
    db: DatabaseSessionManager
    cipher: SymmetricCipher
    policy: SensitiveFieldPolicy
    descriptor: SchemaDescriptor
    diagnostics: SchemaDiagnostics
    records: RecordStore
    audit: AuditTrail

    async def close(self) -> None:
        await self.db.dispose()


def create_services(
    settings: Settings | None = None,
    engine: AsyncEngine | None = None,
    cipher: SymmetricCipher | None = None,
) -> RecordVault:
    """Build every service from settings (engine and cipher injectable)."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    db = DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        connect_timeout=settings.connect_timeout_seconds,
        engine=engine,
    )
    cipher = cipher or FernetCipher(settings.encryption_key.get_secret_value())
    policy = SensitiveFieldPolicy.from_names(settings.sensitive_fields)
    descriptor = build_schema_descriptor()
    audit = AuditTrail(
        db,
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
    )

    return RecordVault(
        settings=settings,
        db=db,
        cipher=cipher,
        policy=policy,
        descriptor=descriptor,
        diagnostics=SchemaDiagnostics(
            db, descriptor, probe_timeout=settings.probe_timeout_seconds,
        ),
        records=RecordStore(
            db, cipher, policy, audit,
            default_limit=settings.default_page_limit,
            export_limit=settings.export_limit,
            max_limit=settings.max_page_limit,
        ),
        audit=audit,
    )


async def startup(vault: RecordVault) -> DiagnosticReport:
    """Run startup diagnostics; auto-fix and re-check when enabled."""
    report = await vault.diagnostics.run_diagnostics()
    if report.health is HealthStatus.HEALTHY:
        logger.info("RecordVault started: store healthy")
        return report

    logger.warning(
        f"Startup diagnostics found issues: {', '.join(report.failed_checks)}",
    )
    if not vault.settings.auto_fix_on_startup:
        return report

    fixes = await vault.diagnostics.auto_fix()
    for fix in fixes:
        logger.info(f"Startup fix: {fix}", extra={"fix": "startup"})
    return await vault.diagnostics.run_diagnostics()


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
    engine: AsyncEngine | None = None,
) -> AsyncGenerator[RecordVault, None]:
    """Startup/shutdown lifecycle."""
    vault = create_services(settings, engine=engine)
    try:
        await startup(vault)
        yield vault
    finally:
        logger.info("RecordVault shutting down")
        await vault.close()
