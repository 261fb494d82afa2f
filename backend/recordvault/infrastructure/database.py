"""Database Session Manager — the explicit store handle shared by every service.

Invariants:
    - Every session/connection auto-rolls-back on exception (no partial commits leak)
    - Connection acquisition is bounded by connect_timeout: an unreachable store
      raises ConnectivityError, never hangs
    - All SQLAlchemy exceptions mapped to ConnectivityError or DatabaseError (core/errors.py)
    - Domain errors raised inside a block roll back and propagate unchanged

Design Decisions:
    - Passed into service constructors, no module-level singleton: several stores
      (e.g. test_connection targets) can coexist in one process
    - Sessions bound to an explicitly acquired connection: the acquisition step is
      where connectivity failures are told apart from statement failures
    - expire_on_commit=False: prevents lazy-load issues in async context
    - In-memory SQLite uses StaticPool: every checkout must see the same database
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, InterfaceError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncConnection, AsyncEngine, AsyncSession, create_async_engine,
)
from sqlalchemy.pool import StaticPool

from recordvault.core.errors import ConnectivityError, DatabaseError, RecordVaultError
from recordvault.core.repository_protocols import StoreCatalog
from recordvault.infrastructure.catalog import catalog_for

logger = logging.getLogger(__name__)


def create_engine_for(
    database_url: str, pool_size: int = 10, max_overflow: int = 10,
    connect_timeout: float = 10.0,
) -> AsyncEngine:
    """Create an async engine with pool settings suited to the dialect."""
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite+aiosqlite:"):
            return create_async_engine(
                database_url, poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(database_url, connect_args={"timeout": connect_timeout})
    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={"timeout": connect_timeout},
    )


def map_store_error(e: SQLAlchemyError, operation: str) -> RecordVaultError:
    """Translate a SQLAlchemy exception into the engine's error taxonomy."""
    if isinstance(e, InterfaceError) or (
        isinstance(e, DBAPIError) and e.connection_invalidated
    ):
        logger.error(f"DB connection lost during {operation}: {e}")
        return ConnectivityError("connection lost")
    if isinstance(e, IntegrityError):
        logger.error(f"DB integrity error: {e}")
        return DatabaseError("Integrity constraint violated", operation)
    if isinstance(e, DBAPIError):
        logger.error(f"DB driver error: {e}")
        return DatabaseError("Database driver error", operation)
    logger.error(f"SQLAlchemy error: {e}")
    return DatabaseError("Database operation failed", operation)


class DatabaseSessionManager:
    """Owns the async engine; hands out connections and sessions with error mapping."""

    def __init__(
        self,
        database_url: str | None = None,
        pool_size: int = 10,
        max_overflow: int = 10,
        connect_timeout: float = 10.0,
        engine: AsyncEngine | None = None,
    ):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine_for(
                database_url, pool_size, max_overflow, connect_timeout,
            )
        self.engine = engine
        self.connect_timeout = connect_timeout
        self.catalog: StoreCatalog = catalog_for(engine.dialect.name)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def connect(self) -> AsyncConnection:
        """Acquire a connection or raise ConnectivityError within connect_timeout."""
        try:
            return await asyncio.wait_for(
                self.engine.connect().start(), timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"DB connect timed out after {self.connect_timeout}s")
            raise ConnectivityError(
                f"timed out after {self.connect_timeout}s",
            ) from e
        except (OSError, SQLAlchemyError) as e:
            logger.error(f"DB connect failed: {e}")
            raise ConnectivityError(e.__class__.__name__) from e

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[AsyncConnection, None]:
        """Provide a raw connection; uncommitted work is rolled back on close."""
        conn = await self.connect()
        try:
            yield conn
        except SQLAlchemyError as e:
            raise map_store_error(e, "execute") from e
        finally:
            await conn.close()

    @asynccontextmanager
    async def begin(self) -> AsyncGenerator[AsyncConnection, None]:
        """Provide a connection inside a transaction committed on success."""
        async with self.connection() as conn:
            async with conn.begin():
                yield conn

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        conn = await self.connect()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            raise map_store_error(e, "query") from e
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()
            await conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session whose work commits atomically when the block exits cleanly."""
        async with self.session() as session:
            yield session
            await session.commit()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.connection() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except RecordVaultError as e:
            logger.error(f"DB health check failed: {e.message}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
