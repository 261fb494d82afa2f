"""SQLAlchemy Declarative Base — shared base class and column types for all ORM models.

Invariants:
    - All models inherit from Base
    - Base.metadata is the single source of truth for the required schema
      (the SchemaDescriptor is derived from it, never declared twice)

Design Decisions:
    - Separate file for Base: avoids circular imports between models
    - Dialect variants instead of PostgreSQL-only types: the same models run on
      PostgreSQL (JSONB, BIGINT) and SQLite (JSON, INTEGER rowid autoincrement)
"""

from sqlalchemy import JSON, BigInteger, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# SQLite only autoincrements an INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

JSONBlob = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all RecordVault ORM models."""
    pass
