"""Record Schemas — Pydantic models for record store arguments and results.

Invariants:
    - Pagination.limit is 1..1000, offset >= 0; parse_pagination narrows the
      ceiling to the configured max_page_limit
    - Ordering is restricted to whitelisted columns (OrderField) — never raw SQL
    - Result models are the only shapes the record store returns
    - Record payloads are dynamic dicts: no static typing of caller data

Design Decisions:
    - Literal/Enum fields over str: Pydantic rejects bad input before any query runs
    - parse_args() converts pydantic errors into the engine's ValidationError so
      callers see one error taxonomy
"""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from recordvault.core.domain_types import AuditAction, OrderField, SortDirection
from recordvault.core.errors import ValidationError

MAX_PAGE_LIMIT = 1000

M = TypeVar("M", bound=BaseModel)


def parse_args(model: type[M], value: M | dict | None, field: str) -> M:
    """Coerce caller arguments into a schema model or raise ValidationError."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid {field}: {loc + ': ' if loc else ''}{first['msg']}",
            field=f"{field}.{loc}" if loc else field,
        ) from None


# --- Arguments ---------------------------------------------------------------

class Pagination(BaseModel):
    """Page window over an ordered result set."""
    limit: int = Field(100, ge=1, le=MAX_PAGE_LIMIT)
    offset: int = Field(0, ge=0)


def parse_pagination(
    value: Pagination | dict | None, default_limit: int, max_limit: int,
) -> Pagination:
    """Parse a page window; an omitted limit takes the default, none may exceed max_limit."""
    if value is None:
        value = {}
    if isinstance(value, dict) and "limit" not in value:
        value = {**value, "limit": min(default_limit, max_limit)}
    pagination = parse_args(Pagination, value, "pagination")
    if pagination.limit > max_limit:
        raise ValidationError(
            f"Invalid pagination: limit exceeds {max_limit}", field="pagination.limit",
        )
    return pagination


class Ordering(BaseModel):
    """Sort order for record pages."""
    field: OrderField = OrderField.CREATED_AT
    direction: SortDirection = SortDirection.DESC


class AuditQuery(BaseModel):
    """Filters for the audit trail; every filter is optional."""
    principal: int | None = None
    action: AuditAction | None = None
    logical_table: str | None = Field(None, min_length=1, max_length=100)


# --- Results -----------------------------------------------------------------

class DecryptedRecord(BaseModel):
    """A record with every readable ciphertext decrypted back into data."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    logical_table: str
    owner_id: int | None
    data: dict[str, Any]
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    undecryptable_fields: list[str] = Field(default_factory=list)


class InsertResult(BaseModel):
    id: int
    logical_table: str
    created_at: datetime


class UpdateResult(BaseModel):
    id: int
    updated_at: datetime


class DeleteResult(BaseModel):
    id: int


class PageInfo(BaseModel):
    limit: int
    offset: int
    total: int | None = None
    count: int
    has_more: bool


class RecordPage(BaseModel):
    """Result of get(): one page plus the total for the scope."""
    success: bool = True
    data: list[DecryptedRecord]
    pagination: PageInfo


class SearchResult(BaseModel):
    """Result of search(): matches are never an error, even when empty."""
    success: bool = True
    data: list[DecryptedRecord]
    criteria: dict[str, str]
    pagination: PageInfo


class RecordStatistics(BaseModel):
    total_records: int
    distinct_owners: int
    earliest_created_at: datetime | None
    latest_created_at: datetime | None
    average_update_latency_seconds: float
    storage_size_bytes: int


class AuditEntryView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    acting_principal: int | None
    action: AuditAction
    logical_table: str | None
    record_id: int | None
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    created_at: datetime


class AuditPage(BaseModel):
    success: bool = True
    data: list[AuditEntryView]
    pagination: PageInfo
