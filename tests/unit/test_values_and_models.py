from __future__ import annotations

from datetime import datetime, timezone

import pytest

from storelens.models import (
    AccessMode,
    Column,
    DatabaseMetadata,
    DisplayMode,
    EntityDescriptor,
    Property,
    Record,
    Table,
    storage_type,
)
from storelens.values import NULL, Array, Float, Integer, SmallInt, Text, Timestamp, ValueKind, is_value


def test_integer_kinds_are_range_checked():
    assert SmallInt(-32768).value == -32768
    with pytest.raises(ValueError):
        SmallInt(32768)
    with pytest.raises(ValueError):
        Integer(2**63)


def test_float_rounds_to_single_precision():
    assert Float(1.5).value == 1.5
    assert Float(0.1).value == pytest.approx(0.1, rel=1e-7)
    assert Float(0.1).value != 0.1


def test_value_helpers():
    assert Timestamp(0).to_datetime() == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert Timestamp(0).isoformat() == "1970-01-01T00:00:00+00:00"
    assert Timestamp(1e20).isoformat() == "1e+20"
    assert Array((Integer(1), Text("a"), NULL)).to_python() == [1, "a", None]
    assert Text("x").kind is ValueKind.TEXT
    assert is_value(NULL)
    assert not is_value("x")


def test_storage_type_trims_size_suffix():
    assert storage_type("VARCHAR(255)") == "VARCHAR"
    assert storage_type("DECIMAL (10, 2)") == "DECIMAL"
    assert storage_type("varchar") == "varchar"


def test_table_primary_key_is_ordered_by_rank():
    table = Table(
        name="t",
        columns=[
            Column("b", "TEXT", primary_key_rank=2),
            Column("v", "TEXT"),
            Column("a", "INTEGER", primary_key_rank=1),
        ],
        record_count=0,
    )
    assert [c.name for c in table.primary_key] == ["a", "b"]
    assert table.column_names == ("b", "v", "a")
    assert table.column("v") == Column("v", "TEXT")
    assert table.column("missing") is None


def test_tables_compare_structurally():
    cols = (Column("id", "INTEGER", primary_key_rank=1),)
    assert Table("t", cols, 3) == Table("t", list(cols), 3)
    assert Table("t", cols, 3) != Table("t", cols, 4)


def test_records_compare_by_synthetic_id():
    a = Record({"x": Integer(1)}, row_id=1)
    b = Record({"x": Integer(1)}, row_id=1)
    assert a != b

    changed = a.replace(x=Integer(2))
    assert changed == a
    assert changed.row_id == 1
    assert changed.get("x") == Integer(2)
    assert a.get("x") == Integer(1)
    assert a.get("missing") is NULL

    assert len({a, changed, b}) == 2


def test_property_and_entity_descriptor():
    column = Column("ZNAME", "VARCHAR")
    prop = Property(name="name", type_name="String?", column=column)
    entity = EntityDescriptor("Person", Table("ZPERSON", (column,), 2), {"name": prop})

    assert prop.display_name == "name: String?"
    assert entity.table_name == "ZPERSON"
    assert hash(entity) == hash(EntityDescriptor("Person", Table("ZPERSON", (column,), 2), {}))


@pytest.mark.parametrize(
    "version, mode",
    [
        (None, DisplayMode.SQLITE),
        (641, DisplayMode.CORE_DATA),
        (800, DisplayMode.CORE_DATA),
        (801, DisplayMode.SWIFT_DATA),
    ],
)
def test_display_mode_from_persistence_version(version, mode):
    assert DatabaseMetadata(persistence_version=version).display_mode is mode


def test_only_read_write_is_writable():
    assert AccessMode.READ_WRITE.writable
    assert not AccessMode.READ_ONLY_FALLBACK.writable
    assert not AccessMode.READ_ONLY_REQUESTED.writable
