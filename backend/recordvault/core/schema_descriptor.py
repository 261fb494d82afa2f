"""Schema Descriptor — static declaration of the tables, columns and indexes the engine requires.

Invariants:
    - Never mutated after construction (frozen dataclasses)
    - Table order is creation order: creating tables in descriptor order never
      references a table that does not exist yet
    - Exactly one table is the principal (identity) table
    - owner_column is set only on tables whose rows are owned by a principal

Design Decisions:
    - Pure data, no SQLAlchemy import: built from ORM metadata by db/schema.py
    - Canonical definitions carried opaquely (compare=False) so repair can emit
      dialect-correct DDL without core knowing what a Table is
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ColumnSpec:
    """A required column."""
    name: str
    type: str
    nullable: bool


@dataclass(frozen=True)
class IndexSpec:
    """A required named index."""
    name: str
    table: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class TableSpec:
    """A required physical relation."""
    table_name: str
    required_columns: tuple[ColumnSpec, ...]
    required_indexes: tuple[IndexSpec, ...] = ()
    owner_column: str | None = None
    is_principal: bool = False

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.required_columns)


@dataclass(frozen=True)
class SchemaDescriptor:
    """The full required schema plus canonical definitions for repair."""
    tables: tuple[TableSpec, ...]
    definitions: dict[str, object] = field(
        default_factory=dict, compare=False, repr=False,
    )

    def __post_init__(self):
        principals = [t for t in self.tables if t.is_principal]
        if len(principals) != 1:
            raise ValueError(
                f"Exactly one principal table required, found {len(principals)}",
            )

    @property
    def table_names(self) -> tuple[str, ...]:
        return tuple(t.table_name for t in self.tables)

    @property
    def principal_table(self) -> TableSpec:
        return next(t for t in self.tables if t.is_principal)

    @property
    def owned_tables(self) -> tuple[TableSpec, ...]:
        """Tables whose rows reference a principal and can be orphaned."""
        return tuple(t for t in self.tables if t.owner_column)

    @property
    def required_indexes(self) -> tuple[IndexSpec, ...]:
        return tuple(i for t in self.tables for i in t.required_indexes)

    def get(self, table_name: str) -> TableSpec | None:
        return next((t for t in self.tables if t.table_name == table_name), None)
