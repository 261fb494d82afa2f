"""Store Catalogs — verifies identifier quoting, dialect dispatch and the
PostgreSQL catalog queries against a scripted connection."""

import pytest
from sqlalchemy.exc import ProgrammingError

from recordvault.infrastructure.catalog import (
    PostgresCatalog, SqliteCatalog, catalog_for, quote_identifier,
)


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return self

    def all(self):
        return list(self.rows)

    def one(self):
        return self.rows[0]

    def scalar_one(self):
        return self.rows[0]


class FakeSavepoint:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.savepoints += 1
        return self

    async def __aexit__(self, *exc_info):
        if exc_info[0] is not None:
            self.conn.rolled_back += 1
        return False


class FakeConnection:
    """Replays canned rows, or raises the given error, for every execute()."""

    def __init__(self, rows=(), error=None):
        self.rows = rows
        self.error = error
        self.statements = []
        self.savepoints = 0
        self.rolled_back = 0

    def begin_nested(self):
        return FakeSavepoint(self)

    async def execute(self, statement, params=None):
        self.statements.append((str(statement), params))
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)


def test_quote_identifier_accepts_plain_names():
    assert quote_identifier("data_storage") == '"data_storage"'


@pytest.mark.parametrize("name", ['users"; DROP TABLE users; --', "1abc", "a b", ""])
def test_quote_identifier_rejects_anything_else(name):
    with pytest.raises(ValueError):
        quote_identifier(name)


def test_catalog_for_known_dialects():
    assert isinstance(catalog_for("postgresql"), PostgresCatalog)
    assert isinstance(catalog_for("sqlite"), SqliteCatalog)


def test_catalog_for_unknown_dialect():
    with pytest.raises(ValueError, match="Unsupported store dialect"):
        catalog_for("mysql")


def test_reindex_statements_per_dialect():
    assert PostgresCatalog().reindex_statement("users") == 'REINDEX TABLE "users"'
    assert SqliteCatalog().reindex_statement("users") == 'REINDEX "users"'


# ─── PostgreSQL catalog ──────────────────────────────────────────

async def test_slow_operations_without_statistics_extension_is_empty():
    conn = FakeConnection(error=ProgrammingError(
        "SELECT ... FROM pg_stat_statements", {},
        Exception('relation "pg_stat_statements" does not exist'),
    ))

    assert await PostgresCatalog().slow_operations(conn, 100.0, 10) == []
    assert conn.savepoints == 1
    assert conn.rolled_back == 1


async def test_slow_operations_maps_rows():
    conn = FakeConnection(rows=[
        {"query": "SELECT * FROM data_storage", "mean_ms": 250.5, "calls": 3},
    ])

    slow = await PostgresCatalog().slow_operations(conn, 100.0, 10)

    assert slow == [{"query": "SELECT * FROM data_storage", "mean_ms": 250.5, "calls": 3}]
    _, params = conn.statements[0]
    assert params == {"threshold": 100.0, "limit": 10}


async def test_capabilities_are_booleans_per_probe():
    conn = FakeConnection(rows=[{
        "can_select_users": True,
        "can_insert_users": 1,
        "can_update_users": None,
        "can_delete_users": False,
        "can_create_tables": True,
        "can_connect": True,
    }])

    caps = await PostgresCatalog().capabilities(conn, "users")

    assert caps["can_insert_users"] is True
    assert caps["can_update_users"] is False
    assert conn.statements[0][1] == {"t": "users"}


async def test_storage_size_of_missing_relation_is_zero():
    conn = FakeConnection(rows=[None])
    assert await PostgresCatalog().storage_size(conn, "audit_logs") == 0

    conn = FakeConnection(rows=[4096])
    assert await PostgresCatalog().storage_size(conn) == 4096
