"""Schema Drift — pure comparison of a live catalog snapshot against the SchemaDescriptor.

Invariants:
    - Pure functions: inputs are plain collections read from the catalog, no IO
    - Results preserve descriptor order (creation order), so repairs apply in a safe order
    - Indexes on missing tables are reported as missing indexes too

Design Decisions:
    - Column comparison by name only: type names differ across dialects
      (JSONB vs JSON, BIGINT vs INTEGER) and are reported, not enforced
"""

from collections.abc import Iterable, Mapping

from recordvault.core.schema_descriptor import IndexSpec, SchemaDescriptor


def find_missing_tables(
    descriptor: SchemaDescriptor, existing_tables: Iterable[str],
) -> list[str]:
    """Required tables absent from the live catalog, in creation order."""
    existing = set(existing_tables)
    return [name for name in descriptor.table_names if name not in existing]


def find_missing_columns(
    descriptor: SchemaDescriptor, live_columns: Mapping[str, Iterable[str]],
) -> dict[str, list[str]]:
    """Required columns absent from tables that do exist."""
    missing: dict[str, list[str]] = {}
    for table in descriptor.tables:
        if table.table_name not in live_columns:
            continue
        present = set(live_columns[table.table_name])
        absent = [c for c in table.column_names if c not in present]
        if absent:
            missing[table.table_name] = absent
    return missing


def find_missing_indexes(
    descriptor: SchemaDescriptor, live_indexes: Mapping[str, Iterable[str]],
) -> list[IndexSpec]:
    """Required indexes absent from the live catalog.

    ``live_indexes`` maps table name to the index names present on it; a
    table missing from the mapping has no indexes.
    """
    missing = []
    for spec in descriptor.required_indexes:
        if spec.name not in set(live_indexes.get(spec.table, ())):
            missing.append(spec)
    return missing
