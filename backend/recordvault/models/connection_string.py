"""ConnectionString ORM — saved store connection strings owned by a principal.

Invariants:
    - user_id is a soft reference to users.id (no FK): orphans are possible
      and are found by the integrity check

Design Decisions:
    - No CRUD surface in this engine: the table participates in schema
      validation and orphan cleanup only
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recordvault.db.base import Base, BigIntPK


class ConnectionString(Base):
    """Saved connection string entry."""
    __tablename__ = "connection_strings"
    __table_args__ = (
        Index("idx_connection_strings_user_id", "user_id"),
        Index("idx_connection_strings_name", "name"),
        {"info": {"owner_column": "user_id"}},
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    connection_string: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_string: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    test_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="unknown",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_tested: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
