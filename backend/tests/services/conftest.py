"""Service test fixtures — in-memory store, session manager and services.

Invariants:
    - Every test gets a fresh in-memory SQLite database with the full schema
    - Services share one DatabaseSessionManager, as bootstrap wires them

Design Decisions:
    - SQLite in-memory through StaticPool: fast, no external dependency; the
      PostgreSQL catalog is not exercised here
    - ReversingCipher stands in for Fernet where tests need to read or forge
      ciphertexts; FernetCipher used where the real round-trip matters
"""

import pytest
from sqlalchemy import func, select

from recordvault.core.errors import EncryptionError
from recordvault.core.field_policy import SensitiveFieldPolicy
from recordvault.db.base import Base
from recordvault.db.schema import build_schema_descriptor
from recordvault.infrastructure.cipher import FernetCipher
from recordvault.infrastructure.database import DatabaseSessionManager, create_engine_for
from recordvault.models.audit_entry import AuditEntry
from recordvault.models.principal import Principal
from recordvault.services.audit_trail import AuditTrail
from recordvault.services.record_store import RecordStore
from recordvault.services.schema_diagnostics import SchemaDiagnostics


class ReversingCipher:
    """Deterministic fake cipher: 'enc:' + reversed plaintext."""

    def encrypt(self, plaintext: str) -> str:
        return "enc:" + plaintext[::-1]

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext.startswith("enc:"):
            raise EncryptionError()
        return ciphertext[4:][::-1]


@pytest.fixture
async def test_engine():
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(test_engine):
    return DatabaseSessionManager(engine=test_engine)


@pytest.fixture
def descriptor():
    return build_schema_descriptor()


@pytest.fixture
def policy():
    return SensitiveFieldPolicy.from_names()


@pytest.fixture
def cipher():
    return ReversingCipher()


@pytest.fixture
def audit(db):
    return AuditTrail(db)


@pytest.fixture
def store(db, cipher, policy, audit):
    return RecordStore(db, cipher, policy, audit)


@pytest.fixture
def fernet_store(db, policy, audit):
    return RecordStore(db, FernetCipher("test-secret"), policy, audit)


@pytest.fixture
def diagnostics(db, descriptor):
    return SchemaDiagnostics(db, descriptor, probe_timeout=2.0)


@pytest.fixture
def count_audit_entries(db):
    """Return an async callable counting audit_logs rows."""
    async def _count() -> int:
        async with db.session() as session:
            return await session.scalar(select(func.count()).select_from(AuditEntry))
    return _count


@pytest.fixture
def add_principal(db):
    """Return an async callable inserting a principal and returning its id."""
    async def _add(username: str) -> int:
        async with db.transaction() as session:
            principal = Principal(
                username=username,
                email=f"{username}@example.com",
                password_hash="x",
            )
            session.add(principal)
            await session.flush()
            return principal.id
    return _add
