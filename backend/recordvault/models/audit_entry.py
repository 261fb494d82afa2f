"""AuditEntry ORM — append-only log of record mutations.

Invariants:
    - Exactly one row per successful insert/update/delete, written in the same
      transaction as the mutation
    - Rows are never updated or deleted by the engine
    - old_values/new_values never hold sensitive plaintext (redacted views)

Design Decisions:
    - table_name holds the logical table of the mutated record
    - record_id is not a FK: the entry outlives a deleted record
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from recordvault.db.base import Base, BigIntPK, JSONBlob


class AuditEntry(Base):
    """Audit log entry — before/after views of one mutation."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_user_id", "user_id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    table_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    record_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    old_values: Mapped[dict | None] = mapped_column(JSONBlob, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSONBlob, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
