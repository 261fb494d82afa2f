"""Audit Trail — append-only log of record mutations and its read surface.

Invariants:
    - append() writes through the caller's session: the entry commits or rolls
      back together with the mutation it describes
    - append() never commits on its own
    - list_entries() is a pure read, newest first (created_at DESC, id DESC)

Design Decisions:
    - Filters validated through AuditQuery (pydantic): unknown actions are
      rejected before any query runs
    - No update/delete surface: entries are immutable once written
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from recordvault.core.domain_types import AuditAction, Payload
from recordvault.infrastructure.database import DatabaseSessionManager
from recordvault.models.audit_entry import AuditEntry
from recordvault.schemas.records import (
    MAX_PAGE_LIMIT, AuditEntryView, AuditPage, AuditQuery, PageInfo, Pagination,
    parse_args, parse_pagination,
)

logger = logging.getLogger(__name__)


class AuditTrail:
    """Writes and reads audit_logs."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        default_limit: int = 100,
        max_limit: int = MAX_PAGE_LIMIT,
    ):
        self.db = db
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def append(
        self,
        session: AsyncSession,
        *,
        principal: int | None,
        action: AuditAction,
        logical_table: str,
        record_id: int,
        before: Payload | None,
        after: Payload | None,
    ) -> AuditEntry:
        """Stage one entry inside the caller's transaction."""
        entry = AuditEntry(
            user_id=principal,
            action=action.value,
            table_name=logical_table,
            record_id=record_id,
            old_values=before,
            new_values=after,
        )
        session.add(entry)
        await session.flush()
        logger.debug(
            f"Audit {action.value} staged",
            extra={
                "action": action.value,
                "logical_table": logical_table,
                "record_id": record_id,
            },
        )
        return entry

    async def list_entries(
        self,
        query: AuditQuery | dict | None = None,
        pagination: Pagination | dict | None = None,
    ) -> AuditPage:
        """List entries matching every given filter, newest first."""
        query = parse_args(AuditQuery, query, "query")
        pagination = parse_pagination(pagination, self.default_limit, self.max_limit)

        conditions = []
        if query.principal is not None:
            conditions.append(AuditEntry.user_id == query.principal)
        if query.action is not None:
            conditions.append(AuditEntry.action == query.action.value)
        if query.logical_table is not None:
            conditions.append(AuditEntry.table_name == query.logical_table)

        async with self.db.session() as session:
            total = await session.scalar(
                select(func.count()).select_from(AuditEntry).where(*conditions)
            )
            result = await session.scalars(
                select(AuditEntry)
                .where(*conditions)
                .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
            entries = result.all()

        views = [_entry_view(e) for e in entries]
        total = int(total or 0)
        return AuditPage(
            data=views,
            pagination=PageInfo(
                limit=pagination.limit,
                offset=pagination.offset,
                total=total,
                count=len(views),
                has_more=pagination.offset + len(views) < total,
            ),
        )


def _entry_view(entry: AuditEntry) -> AuditEntryView:
    return AuditEntryView(
        id=entry.id,
        acting_principal=entry.user_id,
        action=AuditAction(entry.action),
        logical_table=entry.table_name,
        record_id=entry.record_id,
        before=entry.old_values,
        after=entry.new_values,
        created_at=entry.created_at,
    )
