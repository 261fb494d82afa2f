"""Schema Builder — derives the SchemaDescriptor from populated ORM metadata.

Invariants:
    - Every table in Base.metadata becomes one TableSpec, in dependency order
    - Only named indexes are required (unique-constraint indexes are the
      dialect's business)

Design Decisions:
    - Ownership/identity read from Table.info, declared next to each model
    - build_schema_descriptor() imports recordvault.models so the metadata is
      complete no matter who calls it first
"""

from sqlalchemy import Column, Index, MetaData, Table

from recordvault.core.schema_descriptor import (
    ColumnSpec, IndexSpec, SchemaDescriptor, TableSpec,
)


def build_schema_descriptor(metadata: MetaData | None = None) -> SchemaDescriptor:
    """Build the descriptor; defaults to the application's Base.metadata."""
    if metadata is None:
        import recordvault.models  # noqa: F401  populates Base.metadata
        from recordvault.db.base import Base
        metadata = Base.metadata
    tables = metadata.sorted_tables
    return SchemaDescriptor(
        tables=tuple(_table_spec(t) for t in tables),
        definitions={t.name: t for t in tables},
    )


def table_definition(descriptor: SchemaDescriptor, table_name: str) -> Table:
    """Return the canonical Table object for a required table."""
    return descriptor.definitions[table_name]


def index_definition(descriptor: SchemaDescriptor, spec: IndexSpec) -> Index:
    """Return the canonical Index object for a required index."""
    table = table_definition(descriptor, spec.table)
    for index in table.indexes:
        if index.name == spec.name:
            return index
    raise KeyError(spec.name)


def _table_spec(table: Table) -> TableSpec:
    return TableSpec(
        table_name=table.name,
        required_columns=tuple(_column_spec(c) for c in table.columns),
        required_indexes=tuple(
            IndexSpec(
                name=index.name,
                table=table.name,
                columns=tuple(c.name for c in index.columns),
            )
            for index in sorted(table.indexes, key=lambda i: i.name or "")
            if index.name
        ),
        owner_column=table.info.get("owner_column"),
        is_principal=bool(table.info.get("principal")),
    )


def _column_spec(column: Column) -> ColumnSpec:
    return ColumnSpec(
        name=column.name,
        type=column.type.__class__.__name__.upper(),
        nullable=bool(column.nullable),
    )
