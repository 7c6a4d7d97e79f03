from __future__ import annotations

from storelens.display import format_value, record_to_dict, render_rows
from storelens.models import Column, Record, Table
from storelens.values import NULL, Array, Float, Image, Integer, Real, Text, Timestamp


def test_format_value():
    assert format_value(NULL) == "NULL"
    assert format_value(Integer(5)) == "5"
    assert format_value(Real(1.5)) == "1.5"
    assert format_value(Float(0.5)) == "0.5"
    assert format_value(Text("a\nb")) == "a\\nb"
    assert format_value(Timestamp(0)) == "1970-01-01T00:00:00+00:00"
    assert format_value(Image(b"1234", "PNG")) == "<PNG 4 bytes>"
    assert format_value(Array((Integer(1), Text("x"), NULL))) == "[1, x, NULL]"


def test_format_value_truncates():
    assert format_value(Text("x" * 100), max_width=10) == "xxxxxxx..."
    assert len(format_value(Text("x" * 100), max_width=0)) == 100


def test_record_to_dict_follows_table_order():
    table = Table("t", (Column("b", "TEXT"), Column("a", "TIMESTAMP"), Column("c", "BLOB")))
    record = Record({"a": Timestamp(0), "b": Text("x")}, row_id=7)

    assert record_to_dict(record, table) == {
        "row_id": 7,
        "b": "x",
        "a": "1970-01-01T00:00:00+00:00",
        "c": None,
    }


def test_render_rows_aligns_columns():
    lines = render_rows(["id", "name"], [["1", "Ann"], ["10", "Bo"]])
    assert lines == ["id  name", "--  ----", "1   Ann", "10  Bo"]


def test_timestamp_beyond_datetime_range_shows_raw_seconds():
    table = Table("ev", (Column("at", "TIMESTAMP"),))
    record = Record({"at": Timestamp(1e20)}, row_id=1)

    assert format_value(Timestamp(1e20)) == "1e+20"
    assert format_value(Timestamp(-1e20)) == "-1e+20"
    assert record_to_dict(record, table) == {"row_id": 1, "at": "1e+20"}
