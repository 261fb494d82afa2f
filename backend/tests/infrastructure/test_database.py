"""Database Session Manager — verifies error mapping and transactional blocks."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from recordvault.core.errors import ConnectivityError, DatabaseError, ValidationError
from recordvault.infrastructure.database import (
    DatabaseSessionManager, create_engine_for, map_store_error,
)


@pytest.fixture
async def db():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    async with manager.begin() as conn:
        await conn.execute(text("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT UNIQUE)"))
    yield manager
    await manager.dispose()


def test_map_interface_error_to_connectivity():
    err = map_store_error(InterfaceError("stmt", {}, Exception("gone")), "query")
    assert isinstance(err, ConnectivityError)


def test_map_integrity_error_to_database_error():
    err = map_store_error(IntegrityError("stmt", {}, Exception("dup")), "query")
    assert isinstance(err, DatabaseError)
    assert "Integrity constraint violated" in err.message
    assert "dup" not in err.message


def test_map_operational_error_to_database_error():
    err = map_store_error(OperationalError("stmt", {}, Exception("x")), "execute")
    assert isinstance(err, DatabaseError)
    assert err.operation == "execute"


def test_manager_requires_url_or_engine():
    with pytest.raises(ValueError):
        DatabaseSessionManager()


def test_memory_engine_uses_single_connection_pool():
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    assert engine.pool.__class__.__name__ == "StaticPool"


async def test_transaction_commits_on_success(db):
    async with db.transaction() as session:
        await session.execute(text("INSERT INTO t (v) VALUES ('a')"))

    async with db.connection() as conn:
        assert (await conn.execute(text("SELECT count(*) FROM t"))).scalar_one() == 1


async def test_transaction_rolls_back_domain_error(db):
    with pytest.raises(ValidationError):
        async with db.transaction() as session:
            await session.execute(text("INSERT INTO t (v) VALUES ('a')"))
            raise ValidationError("stop")

    async with db.connection() as conn:
        assert (await conn.execute(text("SELECT count(*) FROM t"))).scalar_one() == 0


async def test_statement_failure_mapped_and_rolled_back(db):
    with pytest.raises(DatabaseError):
        async with db.transaction() as session:
            await session.execute(text("INSERT INTO t (v) VALUES ('a')"))
            await session.execute(text("INSERT INTO t (v) VALUES ('a')"))

    async with db.connection() as conn:
        assert (await conn.execute(text("SELECT count(*) FROM t"))).scalar_one() == 0


async def test_health_check(db):
    assert await db.health_check() is True
