"""Plain-text and JSON-friendly rendering of values and records."""

from __future__ import annotations

from typing import Any, Dict, List

from .models import Record, Table
from .values import Array, Float, Image, Integer, Null, Real, SmallInt, Text, Timestamp, Value

NULL_TEXT = "NULL"


def format_value(value: Value, max_width: int = 60) -> str:
    """One-line rendering of a value, truncated to ``max_width`` characters."""
    if isinstance(value, Null):
        text = NULL_TEXT
    elif isinstance(value, (SmallInt, Integer)):
        text = str(value.value)
    elif isinstance(value, (Float, Real)):
        text = repr(value.value)
    elif isinstance(value, Text):
        text = value.value.replace("\n", "\\n")
    elif isinstance(value, Timestamp):
        text = value.isoformat()
    elif isinstance(value, Image):
        text = f"<{value.format or 'image'} {len(value.data)} bytes>"
    elif isinstance(value, Array):
        text = "[" + ", ".join(format_value(item, max_width=0) for item in value.items) + "]"
    else:
        text = str(value)

    if max_width and len(text) > max_width:
        return text[: max_width - 3] + "..."
    return text


def record_to_dict(record: Record, table: Table) -> Dict[str, Any]:
    """JSON-serialisable mapping of a record, columns in table order."""
    data: Dict[str, Any] = {"row_id": record.row_id}
    for name in table.column_names:
        value = record.get(name)
        data[name] = value.isoformat() if isinstance(value, Timestamp) else value.to_python()
    return data


def render_rows(header: List[str], rows: List[List[str]]) -> List[str]:
    """Left-aligned columns separated by two spaces."""
    widths = [len(h) for h in header]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def line(cells: List[str]) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells)).rstrip()

    lines = [line(header), line(["-" * w for w in widths])]
    lines.extend(line(row) for row in rows)
    return lines
