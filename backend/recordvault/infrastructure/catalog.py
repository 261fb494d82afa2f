"""Store Catalogs — dialect adapters for catalog, privilege and statistics questions.

Invariants:
    - Adapters are stateless; every method receives the live AsyncConnection
    - Optional facilities (pg_stat_statements) degrade to empty results, never raise
    - Identifiers interpolated into DDL are validated plain names, never caller input

Design Decisions:
    - SQL-standard questions go through the SQLAlchemy inspector in the service;
      only what information_schema cannot answer portably lives here
    - SQLite is a first-class target (tests, single-node deployments): it has no
      privilege system, so capabilities derive from table existence and query_only
    - Optional statistics queried inside a SAVEPOINT: a failure there must not
      poison the caller's transaction on PostgreSQL
"""

import logging
import re
from typing import Any

from sqlalchemy import extract, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from recordvault.core.repository_protocols import StoreCatalog

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Double-quote a plain identifier; reject anything else."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


class PostgresCatalog:
    """StoreCatalog for PostgreSQL."""

    dialect = "postgresql"

    async def server_identity(self, conn: AsyncConnection) -> dict[str, str | None]:
        row = (await conn.execute(text(
            "SELECT version() AS version, current_user AS current_user_name, "
            "current_database() AS database_name"
        ))).mappings().one()
        return {
            "version": row["version"],
            "user": row["current_user_name"],
            "database": row["database_name"],
        }

    async def capabilities(
        self, conn: AsyncConnection, principal_table: str,
    ) -> dict[str, bool]:
        row = (await conn.execute(text(
            "SELECT "
            "has_table_privilege(CAST(:t AS text), 'SELECT') AS can_select_users, "
            "has_table_privilege(CAST(:t AS text), 'INSERT') AS can_insert_users, "
            "has_table_privilege(CAST(:t AS text), 'UPDATE') AS can_update_users, "
            "has_table_privilege(CAST(:t AS text), 'DELETE') AS can_delete_users, "
            "has_schema_privilege(current_schema(), 'CREATE') AS can_create_tables, "
            "has_database_privilege(current_database(), 'CONNECT') AS can_connect"
        ), {"t": principal_table})).mappings().one()
        return {key: bool(value) for key, value in row.items()}

    async def active_connections(self, conn: AsyncConnection) -> int:
        result = await conn.execute(text(
            "SELECT count(*) FROM pg_stat_activity WHERE state = 'active'"
        ))
        return int(result.scalar_one())

    async def storage_size(self, conn: AsyncConnection, table: str | None = None) -> int:
        if table is None:
            result = await conn.execute(text(
                "SELECT pg_database_size(current_database())"
            ))
        else:
            result = await conn.execute(text(
                "SELECT coalesce(pg_total_relation_size(to_regclass(CAST(:t AS text))), 0)"
            ), {"t": table})
        return int(result.scalar_one() or 0)

    async def slow_operations(
        self, conn: AsyncConnection, threshold_ms: float, limit: int,
    ) -> list[dict[str, Any]]:
        try:
            async with conn.begin_nested():
                result = await conn.execute(text(
                    "SELECT query, mean_exec_time AS mean_ms, calls "
                    "FROM pg_stat_statements WHERE mean_exec_time > :threshold "
                    "ORDER BY mean_exec_time DESC LIMIT :limit"
                ), {"threshold": threshold_ms, "limit": limit})
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            logger.info(f"pg_stat_statements unavailable: {e.__class__.__name__}")
            return []
        return [
            {"query": r["query"], "mean_ms": float(r["mean_ms"]), "calls": int(r["calls"])}
            for r in rows
        ]

    def reindex_statement(self, table: str) -> str:
        return f"REINDEX TABLE {quote_identifier(table)}"

    def analyze_statement(self) -> str:
        return "ANALYZE"

    def seconds_between(self, later, earlier):
        return extract("epoch", later - earlier)


class SqliteCatalog:
    """StoreCatalog for SQLite (in-process, no privilege system)."""

    dialect = "sqlite"

    async def server_identity(self, conn: AsyncConnection) -> dict[str, str | None]:
        version = (await conn.execute(text("SELECT sqlite_version()"))).scalar_one()
        databases = (await conn.execute(text("PRAGMA database_list"))).all()
        main = next((row for row in databases if row[1] == "main"), None)
        return {
            "version": f"SQLite {version}",
            "user": None,
            "database": (main[2] or ":memory:") if main else None,
        }

    async def capabilities(
        self, conn: AsyncConnection, principal_table: str,
    ) -> dict[str, bool]:
        exists = bool((await conn.execute(text(
            "SELECT count(*) FROM sqlite_master WHERE type = 'table' AND name = :t"
        ), {"t": principal_table})).scalar_one())
        read_only = bool((await conn.execute(text("PRAGMA query_only"))).scalar_one())
        writable = exists and not read_only
        return {
            "can_select_users": exists,
            "can_insert_users": writable,
            "can_update_users": writable,
            "can_delete_users": writable,
            "can_create_tables": not read_only,
            "can_connect": True,
        }

    async def active_connections(self, conn: AsyncConnection) -> int:
        # In-process engine: the probing connection is the only one visible
        return 1

    async def storage_size(self, conn: AsyncConnection, table: str | None = None) -> int:
        # Per-table sizes need the optional dbstat table; report the whole file
        page_count = (await conn.execute(text("PRAGMA page_count"))).scalar_one()
        page_size = (await conn.execute(text("PRAGMA page_size"))).scalar_one()
        return int(page_count) * int(page_size)

    async def slow_operations(
        self, conn: AsyncConnection, threshold_ms: float, limit: int,
    ) -> list[dict[str, Any]]:
        return []

    def reindex_statement(self, table: str) -> str:
        return f"REINDEX {quote_identifier(table)}"

    def analyze_statement(self) -> str:
        return "ANALYZE"

    def seconds_between(self, later, earlier):
        return (func.julianday(later) - func.julianday(earlier)) * 86400.0


_CATALOGS: dict[str, type] = {
    PostgresCatalog.dialect: PostgresCatalog,
    SqliteCatalog.dialect: SqliteCatalog,
}


def catalog_for(dialect_name: str) -> StoreCatalog:
    """Pick the catalog adapter for a SQLAlchemy dialect name."""
    try:
        return _CATALOGS[dialect_name]()
    except KeyError:
        raise ValueError(
            f"Unsupported store dialect: {dialect_name} "
            f"(supported: {', '.join(sorted(_CATALOGS))})"
        ) from None
