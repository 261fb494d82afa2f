"""Record Store — encrypted CRUD, search, statistics and export over logical tables.

Invariants:
    - Sensitive fields (SensitiveFieldPolicy) reach the store only as ciphertext
    - Every mutation and its audit entry commit in one transaction, or neither does
    - update/delete match on id AND owner; a mismatch is NotFoundOrForbidden,
      indistinguishable from a missing record, with no audit entry written
    - A field that fails to decrypt is omitted and logged; the rest of the
      record is returned normally
    - Omitting owner_id on reads is the unscoped administrative view

Design Decisions:
    - Values JSON-encoded before encryption: decrypt returns the exact type written
    - Row locked (SELECT ... FOR UPDATE) then mutated by a statement conditioned
      on id+owner whose rowcount must be 1 (ADR: atomic ownership check)
    - Search runs after decryption in keyset batches: criteria may target
      encrypted fields, which the store cannot compare
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recordvault.core.domain_types import (
    AuditAction, Ciphertexts, LogicalTable, Payload, PrincipalId, RecordId, SortDirection,
)
from recordvault.core.errors import (
    EncryptionError, ErrorContext, NotFoundOrForbidden, ValidationError,
)
from recordvault.core.field_policy import (
    SensitiveFieldPolicy, audit_view, ensure_mapping, merge_ciphertexts,
)
from recordvault.core.repository_protocols import SymmetricCipher
from recordvault.core.search_match import matches_criteria, normalize_criteria
from recordvault.infrastructure.database import DatabaseSessionManager
from recordvault.models.stored_record import StoredRecord
from recordvault.schemas.records import (
    MAX_PAGE_LIMIT, DecryptedRecord, DeleteResult, InsertResult, Ordering, PageInfo,
    Pagination, RecordPage, RecordStatistics, SearchResult, UpdateResult, parse_args,
    parse_pagination,
)
from recordvault.services.audit_trail import AuditTrail

logger = logging.getLogger(__name__)

LOGICAL_TABLE_MAX_LENGTH = 100
SEARCH_BATCH_SIZE = 200


def validate_logical_table(logical_table: Any) -> str:
    """Reject empty, non-string or over-long logical table names."""
    if not isinstance(logical_table, str) or not logical_table.strip():
        raise ValidationError(
            "logical_table must be a non-empty string", field="logical_table",
        )
    if len(logical_table) > LOGICAL_TABLE_MAX_LENGTH:
        raise ValidationError(
            f"logical_table exceeds {LOGICAL_TABLE_MAX_LENGTH} characters",
            field="logical_table",
        )
    return logical_table


def validate_owner(owner_id: Any, required: bool = False) -> int | None:
    if owner_id is None and not required:
        return None
    if isinstance(owner_id, bool) or not isinstance(owner_id, int):
        raise ValidationError("owner_id must be an integer", field="owner_id")
    return owner_id


class RecordStore:
    """Encrypted record operations over the data_storage relation."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        cipher: SymmetricCipher,
        policy: SensitiveFieldPolicy,
        audit: AuditTrail,
        default_limit: int = 100,
        export_limit: int = 1000,
        max_limit: int = MAX_PAGE_LIMIT,
    ):
        self.db = db
        self.cipher = cipher
        self.policy = policy
        self.audit = audit
        self.default_limit = default_limit
        self.export_limit = export_limit
        self.max_limit = max_limit

    # ─── Mutations ───────────────────────────────────────────────

    async def insert(
        self,
        logical_table: LogicalTable,
        payload: Payload,
        owner_id: PrincipalId | None = None,
        metadata: Payload | None = None,
    ) -> InsertResult:
        """Encrypt sensitive fields, persist the record and its CREATE entry."""
        logical_table = validate_logical_table(logical_table)
        payload = ensure_mapping(payload, "payload")
        metadata = ensure_mapping(metadata, "metadata") if metadata is not None else {}
        owner_id = validate_owner(owner_id)
        cleartext, ciphertexts = self._seal(payload)
        _ensure_json(metadata, "metadata")

        async with self.db.transaction() as session:
            row = StoredRecord(
                table_name=logical_table,
                data=cleartext,
                encrypted_fields=ciphertexts,
                user_id=owner_id,
                record_metadata=metadata,
            )
            session.add(row)
            await session.flush()
            await self.audit.append(
                session,
                principal=owner_id,
                action=AuditAction.CREATE,
                logical_table=logical_table,
                record_id=row.id,
                before=None,
                after=audit_view(cleartext, ciphertexts),
            )

        logger.info(
            f"Inserted record {row.id} into {logical_table}",
            extra={"logical_table": logical_table, "record_id": row.id, "action": "CREATE"},
        )
        return InsertResult(id=row.id, logical_table=logical_table, created_at=row.created_at)

    async def update(
        self, record_id: RecordId, payload: Payload, owner_id: PrincipalId,
    ) -> UpdateResult:
        """Replace the cleartext payload and merge new ciphertexts (owner only)."""
        payload = ensure_mapping(payload, "payload")
        owner_id = validate_owner(owner_id, required=True)
        cleartext, ciphertexts = self._seal(payload)
        now = datetime.now(timezone.utc)

        async with self.db.transaction() as session:
            row = await self._lock_owned(session, record_id, owner_id)
            prior_encrypted = row.encrypted_fields or {}
            before = audit_view(row.data or {}, prior_encrypted)
            logical_table = row.table_name
            merged = merge_ciphertexts(prior_encrypted, ciphertexts, cleartext.keys())

            result = await session.execute(
                update(StoredRecord)
                .where(StoredRecord.id == record_id, StoredRecord.user_id == owner_id)
                .values(data=cleartext, encrypted_fields=merged, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundOrForbidden(ErrorContext(record_id=record_id))

            await self.audit.append(
                session,
                principal=owner_id,
                action=AuditAction.UPDATE,
                logical_table=logical_table,
                record_id=record_id,
                before=before,
                after=audit_view(cleartext, merged),
            )

        logger.info(
            f"Updated record {record_id}",
            extra={"logical_table": logical_table, "record_id": record_id, "action": "UPDATE"},
        )
        return UpdateResult(id=record_id, updated_at=now)

    async def delete(self, record_id: RecordId, owner_id: PrincipalId) -> DeleteResult:
        """Delete a record (owner only) and append its DELETE entry."""
        owner_id = validate_owner(owner_id, required=True)

        async with self.db.transaction() as session:
            row = await self._lock_owned(session, record_id, owner_id)
            before = audit_view(row.data or {}, row.encrypted_fields or {})
            logical_table = row.table_name

            result = await session.execute(
                delete(StoredRecord)
                .where(StoredRecord.id == record_id, StoredRecord.user_id == owner_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundOrForbidden(ErrorContext(record_id=record_id))

            await self.audit.append(
                session,
                principal=owner_id,
                action=AuditAction.DELETE,
                logical_table=logical_table,
                record_id=record_id,
                before=before,
                after=None,
            )

        logger.info(
            f"Deleted record {record_id}",
            extra={"logical_table": logical_table, "record_id": record_id, "action": "DELETE"},
        )
        return DeleteResult(id=record_id)

    # ─── Reads ───────────────────────────────────────────────────

    async def get(
        self,
        logical_table: LogicalTable,
        owner_id: PrincipalId | None = None,
        pagination: Pagination | dict | None = None,
        ordering: Ordering | dict | None = None,
    ) -> RecordPage:
        """One ordered page of decrypted records plus the scope total."""
        logical_table = validate_logical_table(logical_table)
        owner_id = validate_owner(owner_id)
        pagination = self._pagination(pagination)
        ordering = parse_args(Ordering, ordering, "ordering")
        scope = _scope(logical_table, owner_id)

        column = getattr(StoredRecord, ordering.field.value)
        if ordering.direction is SortDirection.ASC:
            order_by = (column.asc(), StoredRecord.id.asc())
        else:
            order_by = (column.desc(), StoredRecord.id.desc())

        async with self.db.session() as session:
            total = await session.scalar(
                select(func.count()).select_from(StoredRecord).where(*scope)
            )
            rows = (await session.scalars(
                select(StoredRecord)
                .where(*scope)
                .order_by(*order_by)
                .limit(pagination.limit)
                .offset(pagination.offset)
            )).all()

        records = [self._open(row, include_metadata=True) for row in rows]
        total = int(total or 0)
        return RecordPage(
            data=records,
            pagination=PageInfo(
                limit=pagination.limit,
                offset=pagination.offset,
                total=total,
                count=len(records),
                has_more=pagination.offset + len(records) < total,
            ),
        )

    async def search(
        self,
        logical_table: LogicalTable,
        criteria: dict[str, Any] | None = None,
        owner_id: PrincipalId | None = None,
        pagination: Pagination | dict | None = None,
    ) -> SearchResult:
        """Records whose decrypted fields contain every criterion (newest first)."""
        logical_table = validate_logical_table(logical_table)
        owner_id = validate_owner(owner_id)
        criteria = normalize_criteria(criteria)
        pagination = self._pagination(pagination)
        scope = _scope(logical_table, owner_id)

        matched: list[DecryptedRecord] = []
        skipped = 0
        wanted = pagination.limit + 1  # one extra tells us has_more
        last_id: int | None = None

        async with self.db.session() as session:
            while len(matched) < wanted:
                stmt = select(StoredRecord).where(*scope)
                if last_id is not None:
                    stmt = stmt.where(StoredRecord.id < last_id)
                rows = (await session.scalars(
                    stmt.order_by(StoredRecord.id.desc()).limit(SEARCH_BATCH_SIZE)
                )).all()
                if not rows:
                    break
                last_id = rows[-1].id
                for row in rows:
                    record = self._open(row, include_metadata=True)
                    if not matches_criteria(record.data, criteria):
                        continue
                    if skipped < pagination.offset:
                        skipped += 1
                        continue
                    matched.append(record)
                    if len(matched) >= wanted:
                        break

        has_more = len(matched) > pagination.limit
        page = matched[:pagination.limit]
        return SearchResult(
            data=page,
            criteria=criteria,
            pagination=PageInfo(
                limit=pagination.limit,
                offset=pagination.offset,
                count=len(page),
                has_more=has_more,
            ),
        )

    async def statistics(
        self, logical_table: LogicalTable, owner_id: PrincipalId | None = None,
    ) -> RecordStatistics:
        """Live aggregates for one logical table (optionally one owner)."""
        logical_table = validate_logical_table(logical_table)
        owner_id = validate_owner(owner_id)
        scope = _scope(logical_table, owner_id)
        catalog = self.db.catalog
        latency = catalog.seconds_between(StoredRecord.updated_at, StoredRecord.created_at)

        async with self.db.session() as session:
            row = (await session.execute(
                select(
                    func.count(StoredRecord.id),
                    func.count(distinct(StoredRecord.user_id)),
                    func.min(StoredRecord.created_at),
                    func.max(StoredRecord.created_at),
                    func.avg(latency),
                ).where(*scope)
            )).one()
            conn = await session.connection()
            size = await catalog.storage_size(conn, StoredRecord.__tablename__)

        total, owners, earliest, latest, avg_latency = row
        return RecordStatistics(
            total_records=int(total or 0),
            distinct_owners=int(owners or 0),
            earliest_created_at=earliest,
            latest_created_at=latest,
            average_update_latency_seconds=float(avg_latency or 0.0),
            storage_size_bytes=size,
        )

    async def export_selection(
        self,
        logical_table: LogicalTable,
        owner_id: PrincipalId | None = None,
        limit: int | None = None,
        include_metadata: bool = True,
    ) -> list[DecryptedRecord]:
        """Decrypted records for export, newest first."""
        logical_table = validate_logical_table(logical_table)
        owner_id = validate_owner(owner_id)
        limit = self.export_limit if limit is None else limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be a positive integer", field="limit")

        async with self.db.session() as session:
            rows = (await session.scalars(
                select(StoredRecord)
                .where(*_scope(logical_table, owner_id))
                .order_by(StoredRecord.created_at.desc(), StoredRecord.id.desc())
                .limit(limit)
            )).all()

        return [self._open(row, include_metadata=include_metadata) for row in rows]

    # ─── Helpers ─────────────────────────────────────────────────

    def _pagination(self, pagination: Pagination | dict | None) -> Pagination:
        return parse_pagination(pagination, self.default_limit, self.max_limit)

    def _seal(self, payload: Payload) -> tuple[Payload, Ciphertexts]:
        """Split a payload and encrypt each sensitive value independently."""
        cleartext, sensitive = self.policy.split(payload)
        _ensure_json(cleartext, "payload")
        ciphertexts = {
            name: self.cipher.encrypt(_encode(name, value))
            for name, value in sensitive.items()
        }
        return cleartext, ciphertexts

    def _open(self, row: StoredRecord, include_metadata: bool) -> DecryptedRecord:
        """Decrypt a stored row into its logical view, degrading bad fields."""
        data = dict(row.data or {})
        undecryptable = []
        for name, ciphertext in (row.encrypted_fields or {}).items():
            try:
                data[name] = self._decrypt_value(name, ciphertext)
            except EncryptionError as e:
                undecryptable.append(name)
                logger.warning(
                    f"Omitting field '{name}' of record {row.id}: {e.message}",
                    extra={
                        "error_code": e.code,
                        "logical_table": row.table_name,
                        "record_id": row.id,
                    },
                )
        return DecryptedRecord(
            id=row.id,
            logical_table=row.table_name,
            owner_id=row.user_id,
            data=data,
            metadata=(row.record_metadata or {}) if include_metadata else None,
            created_at=row.created_at,
            updated_at=row.updated_at,
            undecryptable_fields=undecryptable,
        )

    def _decrypt_value(self, name: str, ciphertext: Any) -> Any:
        if not isinstance(ciphertext, str):
            raise EncryptionError(name)
        try:
            plaintext = self.cipher.decrypt(ciphertext)
        except EncryptionError:
            raise EncryptionError(name) from None
        try:
            return json.loads(plaintext)
        except ValueError:
            # Written by a tool that stored the bare string
            return plaintext

    async def _lock_owned(
        self, session: AsyncSession, record_id: Any, owner_id: int,
    ) -> StoredRecord:
        if isinstance(record_id, bool) or not isinstance(record_id, int):
            raise NotFoundOrForbidden(ErrorContext(debug_info={"record_id": repr(record_id)}))
        row = await session.scalar(
            select(StoredRecord)
            .where(StoredRecord.id == record_id, StoredRecord.user_id == owner_id)
            .with_for_update()
        )
        if row is None:
            logger.info(
                f"Record {record_id} not found or not owned",
                extra={"record_id": record_id, "error_code": "NOT_FOUND_OR_FORBIDDEN"},
            )
            raise NotFoundOrForbidden(ErrorContext(record_id=record_id))
        return row


def _scope(logical_table: str, owner_id: int | None) -> list:
    conditions = [StoredRecord.table_name == logical_table]
    if owner_id is not None:
        conditions.append(StoredRecord.user_id == owner_id)
    return conditions


def _encode(name: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Field '{name}' is not JSON-serializable", field=f"payload.{name}",
        ) from None


def _ensure_json(values: Payload, field: str) -> None:
    try:
        json.dumps(values)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} values must be JSON-serializable", field=field) from None
