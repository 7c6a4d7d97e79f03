"""Insert, update and delete rows of a table.

Rows are addressed by their primary-key values when the table declares a
primary key, otherwise by the rowid captured when the record was fetched.
Every statement is committed on its own.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .codec import encode_value
from .exceptions import MutationError, PreconditionViolation
from .introspect import quote_identifier
from .models import Record, Table
from .values import Null

_logger = logging.getLogger(__name__)

READ_ONLY_SUGGESTION = (
    "The file is open read-only. Close any application that is writing to it "
    "and reconnect without forcing read-only mode."
)


def where_clause(table: Table, record: Record) -> Tuple[str, List[Any]]:
    """WHERE clause (without the keyword) and parameters addressing one row.

    Raises
    ------
    PreconditionViolation
        If the record carries neither the table's primary-key values nor a
        row id.
    """
    pk_columns = table.primary_key
    if pk_columns and all(c.name in record.values for c in pk_columns):
        terms: List[str] = []
        params: List[Any] = []
        for col in pk_columns:
            value = record.values[col.name]
            if isinstance(value, Null):
                terms.append(f"{quote_identifier(col.name)} IS NULL")
            else:
                terms.append(f"{quote_identifier(col.name)} = ?")
                params.append(encode_value(value))
        return " AND ".join(terms), params

    if record.row_id is not None:
        return "rowid = ?", [record.row_id]

    raise PreconditionViolation(
        f"Cannot address a row of {table.name!r}: the record has no primary-key values and no row id"
    )


class RecordStore:
    """Write path against the handle owned by a ConnectionManager."""

    def __init__(self, connections):
        self._connections = connections

    def insert(self, table: Table, record: Record) -> Optional[int]:
        """Insert the record's values for the table's columns; returns the new rowid."""
        names = [c.name for c in table.columns if c.name in record.values]
        if names:
            columns = ", ".join(quote_identifier(n) for n in names)
            placeholders = ", ".join("?" for _ in names)
            sql = f"INSERT INTO {quote_identifier(table.name)} ({columns}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {quote_identifier(table.name)} DEFAULT VALUES"
        params = [encode_value(record.values[n]) for n in names]
        cur = self._run(sql, params, action=f"insert into {table.name}")
        return cur.lastrowid

    def update(
        self,
        table: Table,
        record: Record,
        columns: Optional[Sequence[str]] = None,
    ) -> int:
        """Write the record's values back to its row.

        ``columns`` limits the update to those column names; by default every
        table column present in the record is written. Returns the number of
        rows changed.
        """
        wanted = set(columns) if columns is not None else None
        names = [
            c.name
            for c in table.columns
            if c.name in record.values and (wanted is None or c.name in wanted)
        ]
        if not names:
            _logger.debug("Nothing to update in %s", table.name)
            return 0

        where, where_params = where_clause(table, record)
        assignments = ", ".join(f"{quote_identifier(n)} = ?" for n in names)
        sql = f"UPDATE {quote_identifier(table.name)} SET {assignments} WHERE {where}"
        params = [encode_value(record.values[n]) for n in names] + where_params
        return self._run(sql, params, action=f"update {table.name}").rowcount

    def delete(self, table: Table, records: Iterable[Record]) -> int:
        """Delete records one statement at a time, in order.

        Every record is addressed before anything is deleted. If a statement
        fails, rows deleted by earlier statements stay deleted and the
        raised MutationError reports how many statements completed.
        """
        statements = [where_clause(table, r) for r in records]
        deleted = 0
        for done, (where, params) in enumerate(statements):
            sql = f"DELETE FROM {quote_identifier(table.name)} WHERE {where}"
            try:
                deleted += self._run(sql, params, action=f"delete from {table.name}").rowcount
            except MutationError as exc:
                exc.completed = done
                raise
        return deleted

    # --------------------------- Internal helpers --------------------

    def _run(self, sql: str, params: Sequence[Any], *, action: str) -> sqlite3.Cursor:
        mode = self._connections.access_mode
        handle = self._connections.handle
        if mode is not None and not mode.writable:
            raise MutationError(
                f"Cannot {action}: database is open {mode.value}",
                suggestion=READ_ONLY_SUGGESTION,
            )

        _logger.debug("Executing %s with %d parameters", sql, len(params))
        try:
            with handle:
                return handle.execute(sql, params)
        except sqlite3.Error as exc:
            raise MutationError(f"Cannot {action}: {exc}") from exc
