"""StoredRecord ORM — the single physical relation backing every logical table.

Invariants:
    - table_name is the caller-chosen logical table, not a physical relation
    - keys(data) and keys(encrypted_fields) are disjoint; their union is the
      record's full logical field set
    - user_id is a soft reference to users.id (no FK): orphans are possible

Design Decisions:
    - JSON blobs (JSONB on PostgreSQL) for data/encrypted_fields/metadata: the
      payload shape belongs to the caller's domain
    - `metadata` column mapped to record_metadata: DeclarativeBase reserves `metadata`
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from recordvault.db.base import Base, BigIntPK, JSONBlob


class StoredRecord(Base):
    """Record row — cleartext payload plus per-field ciphertexts."""
    __tablename__ = "data_storage"
    __table_args__ = (
        Index("idx_data_storage_table_name", "table_name"),
        Index("idx_data_storage_user_id", "user_id"),
        {"info": {"owner_column": "user_id"}},
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSONBlob, nullable=False, default=dict)
    encrypted_fields: Mapped[dict | None] = mapped_column(
        JSONBlob, nullable=True, default=dict,
    )
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    record_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSONBlob, nullable=True, default=dict,
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
