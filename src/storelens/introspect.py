"""Tables, columns and row counts read from the database catalog."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, List, Optional, Sequence

from .exceptions import DecodeError, TableNotFoundError
from .models import Column, Table

_logger = logging.getLogger(__name__)

# Tables SQLite keeps for itself (sqlite_sequence, sqlite_stat1, ...)
RESERVED_PREFIX = "sqlite_"


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def _column_from_row(row: Sequence[Any]) -> Column:
    """Build a Column from a ``PRAGMA table_info`` row (cid, name, type, notnull, dflt, pk)."""
    try:
        _cid, name, declared_type, notnull, _default, pk = row[:6]
    except ValueError as exc:
        raise DecodeError(f"unexpected table_info row {tuple(row)!r}") from exc
    if not isinstance(name, str):
        raise DecodeError(f"column name is not text: {name!r}")
    if declared_type is None:
        declared_type = ""
    if not isinstance(declared_type, str):
        raise DecodeError(f"column type of {name!r} is not text: {declared_type!r}")
    if not isinstance(notnull, int) or not isinstance(pk, int):
        raise DecodeError(f"flags of column {name!r} are not integers")
    return Column(name=name, declared_type=declared_type, not_null=bool(notnull), primary_key_rank=pk)


class SchemaIntrospector:
    """Catalog queries against the handle currently owned by a ConnectionManager.

    The handle is looked up on every call and never kept.
    """

    def __init__(self, connections):
        self._connections = connections

    def list_tables(self) -> List[str]:
        """User table names in ascending order, reserved tables excluded."""
        cur = self._connections.handle.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE ? ESCAPE '\\' "
            "ORDER BY name",
            (RESERVED_PREFIX.replace("_", "\\_") + "%",),
        )
        return [name for (name,) in cur.fetchall()]

    def table_exists(self, name: str) -> bool:
        cur = self._connections.handle.execute(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name = ?",
            (name,),
        )
        return cur.fetchone() is not None

    def columns(self, name: str) -> List[Column]:
        """Columns in declaration order; rows that do not decode are skipped."""
        cur = self._connections.handle.execute(f"PRAGMA table_info({quote_identifier(name)})")
        columns: List[Column] = []
        for row in cur.fetchall():
            try:
                columns.append(_column_from_row(row))
            except DecodeError as exc:
                _logger.warning("Skipping column of table %s: %s", name, exc)
        return columns

    def row_count(self, name: str) -> int:
        try:
            row = self._connections.handle.execute(
                f"SELECT COUNT(*) FROM {quote_identifier(name)}"
            ).fetchone()
        except sqlite3.OperationalError as exc:
            if not self.table_exists(name):
                raise TableNotFoundError(name) from exc
            raise
        return int(row[0]) if row is not None else 0

    def describe_table(self, name: str) -> Table:
        if not self.table_exists(name):
            raise TableNotFoundError(name)
        return Table(name=name, columns=tuple(self.columns(name)), record_count=self.row_count(name))

    def describe_all(self, names: Optional[Sequence[str]] = None) -> List[Table]:
        """Every user table, described, in name order."""
        return [self.describe_table(n) for n in (names if names is not None else self.list_tables())]
