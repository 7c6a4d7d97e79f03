from __future__ import annotations

import sqlite3

import pytest

from storelens import introspect
from storelens.connection import ConnectionManager
from storelens.exceptions import DecodeError, NotConnectedError, TableNotFoundError
from storelens.introspect import SchemaIntrospector, _column_from_row, quote_identifier
from storelens.models import Column


@pytest.fixture
def schema(fast_config):
    manager = ConnectionManager(fast_config)
    yield manager, SchemaIntrospector(manager)
    manager.close()


def _execute(path, *statements):
    conn = sqlite3.connect(path)
    try:
        for sql in statements:
            conn.execute(sql)
        conn.commit()
    finally:
        conn.close()


def test_people_example(schema, people_db):
    manager, introspector = schema
    manager.connect(people_db)

    assert introspector.list_tables() == ["people"]
    assert introspector.row_count("people") == 2

    table = introspector.describe_table("people")
    assert table.columns == (
        Column("id", "INTEGER", not_null=False, primary_key_rank=1),
        Column("name", "TEXT"),
    )
    assert table.record_count == 2


def test_reserved_tables_are_hidden_and_names_sorted(schema, tmp_path):
    path = tmp_path / "many.db"
    _execute(
        path,
        "CREATE TABLE zebra (id INTEGER PRIMARY KEY AUTOINCREMENT)",
        "CREATE TABLE apple (x)",
        "CREATE TABLE sqliteish (y)",
        "INSERT INTO zebra DEFAULT VALUES",
    )
    manager, introspector = schema
    manager.connect(path)

    assert introspector.list_tables() == ["apple", "sqliteish", "zebra"]


def test_composite_and_missing_primary_keys(schema, tmp_path):
    path = tmp_path / "keys.db"
    _execute(
        path,
        "CREATE TABLE pair (b TEXT NOT NULL, a INTEGER, v TEXT, PRIMARY KEY (a, b))",
        "CREATE TABLE loose (v VARCHAR(20))",
    )
    manager, introspector = schema
    manager.connect(path)

    pair = introspector.describe_table("pair")
    assert [(c.name, c.primary_key_rank) for c in pair.columns] == [("b", 2), ("a", 1), ("v", 0)]
    assert pair.columns[0].not_null
    assert [c.name for c in pair.primary_key] == ["a", "b"]

    loose = introspector.describe_table("loose")
    assert loose.primary_key == ()
    assert loose.columns[0].storage_type == "VARCHAR"


def test_untyped_columns_have_empty_declared_type(schema, tmp_path):
    path = tmp_path / "untyped.db"
    _execute(path, "CREATE TABLE t (anything)")
    manager, introspector = schema
    manager.connect(path)

    assert introspector.columns("t") == [Column("anything", "")]


def test_unknown_table_raises(schema, people_db):
    manager, introspector = schema
    manager.connect(people_db)

    with pytest.raises(TableNotFoundError) as excinfo:
        introspector.describe_table("nope")
    assert excinfo.value.recovery_suggestion
    with pytest.raises(TableNotFoundError):
        introspector.row_count("nope")


def test_describe_all_follows_list_order(schema, people_db):
    manager, introspector = schema
    manager.connect(people_db)

    assert [t.name for t in introspector.describe_all()] == ["people"]
    assert introspector.describe_all([]) == []


def test_queries_need_a_connection(schema):
    _manager, introspector = schema
    with pytest.raises(NotConnectedError):
        introspector.list_tables()


def test_column_rows_that_do_not_decode_are_skipped(schema, people_db, monkeypatch, caplog):
    manager, introspector = schema
    manager.connect(people_db)
    real = introspect._column_from_row

    def flaky(row):
        if row[1] == "name":
            raise DecodeError("broken column")
        return real(row)

    monkeypatch.setattr(introspect, "_column_from_row", flaky)

    assert [c.name for c in introspector.columns("people")] == ["id"]
    assert any("broken column" in rec.message for rec in caplog.records)


@pytest.mark.parametrize(
    "row",
    [
        (0, "short"),
        (0, 7, "TEXT", 0, None, 0),
        (0, "c", 12, 0, None, 0),
        (0, "c", "TEXT", "no", None, 0),
    ],
)
def test_column_from_row_rejects_malformed_rows(row):
    with pytest.raises(DecodeError):
        _column_from_row(row)


def test_quote_identifier_escapes_quotes():
    assert quote_identifier('we"ird') == '"we""ird"'
