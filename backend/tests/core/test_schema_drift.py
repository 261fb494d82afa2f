"""Schema Drift — verifies comparison of live catalog snapshots with the descriptor."""

import pytest

from recordvault.core.schema_descriptor import (
    ColumnSpec, IndexSpec, SchemaDescriptor, TableSpec,
)
from recordvault.core.schema_drift import (
    find_missing_columns, find_missing_indexes, find_missing_tables,
)


def _col(name: str) -> ColumnSpec:
    return ColumnSpec(name=name, type="STRING", nullable=True)


@pytest.fixture
def descriptor():
    return SchemaDescriptor(tables=(
        TableSpec(
            "users", (_col("id"), _col("username")),
            (IndexSpec("idx_users_username", "users", ("username",)),),
            is_principal=True,
        ),
        TableSpec(
            "items", (_col("id"), _col("user_id")),
            (IndexSpec("idx_items_user_id", "items", ("user_id",)),),
            owner_column="user_id",
        ),
    ))


def test_missing_tables_in_descriptor_order(descriptor):
    assert find_missing_tables(descriptor, ["other"]) == ["users", "items"]
    assert find_missing_tables(descriptor, ["items", "users"]) == []


def test_missing_columns_only_for_present_tables(descriptor):
    missing = find_missing_columns(descriptor, {"users": ["id"]})
    assert missing == {"users": ["username"]}


def test_missing_indexes_include_absent_tables(descriptor):
    missing = find_missing_indexes(descriptor, {"users": ["idx_users_username"]})
    assert [i.name for i in missing] == ["idx_items_user_id"]


def test_descriptor_requires_one_principal():
    with pytest.raises(ValueError):
        SchemaDescriptor(tables=(TableSpec("items", (_col("id"),)),))


def test_descriptor_accessors(descriptor):
    assert descriptor.principal_table.table_name == "users"
    assert [t.table_name for t in descriptor.owned_tables] == ["items"]
    assert descriptor.get("nope") is None
    assert len(descriptor.required_indexes) == 2
