"""Database Layer — SQLAlchemy declarative Base and portable column types.

Invariants:
    - One Base.metadata describes every physical relation the engine requires
    - All sessions are async (AsyncSession)

Design Decisions:
    - asyncpg driver for PostgreSQL, aiosqlite for SQLite (ADR: native async, no thread pool overhead)
"""
