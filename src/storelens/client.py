"""Serialized access to one database connection.

``DatabaseClient`` owns a single worker thread. Every operation is queued
as a request and executed by that thread in submission order, so at most
one connect, close, query or mutation runs against the handle at a time
and the handle never leaves the thread that opened it.

Synchronous methods wait for their request; ``submit`` returns the
``Future`` for callers that must not block. ``AsyncDatabaseClient`` wraps
the same queue for asyncio code.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import sqlite3
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from .codec import decode_cell
from .config import StoreLensConfig
from .connection import ConnectionManager
from .exceptions import ClientClosedError, TableNotFoundError
from .introspect import SchemaIntrospector, quote_identifier
from .modelcache import ModelCacheLoader, resolve_entities
from .models import (
    AccessMode,
    DatabaseMetadata,
    DisplayedObject,
    DisplayMode,
    EntityDescriptor,
    EntityObject,
    ModelObject,
    Record,
    Table,
    TableObject,
)
from .records import RecordStore
from .values import Value

_logger = logging.getLogger(__name__)

TableRef = Union[str, Table]


@dataclass
class _Request:
    fn: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    future: Future = field(default_factory=Future)


class DatabaseClient:
    """Public entry point: connect, introspect, fetch and edit one database."""

    def __init__(
        self,
        config: Optional[StoreLensConfig] = None,
        *,
        model_cache_loader: Optional[ModelCacheLoader] = None,
        name: str = "storelens-db",
    ):
        self.config = config or StoreLensConfig.from_env()
        self._connections = ConnectionManager(self.config, model_cache_loader)
        self._schema = SchemaIntrospector(self._connections)
        self._records = RecordStore(self._connections)

        self._requests: "queue.Queue[Optional[_Request]]" = queue.Queue()
        self._closed = False
        self._submit_lock = threading.Lock()
        self._worker = threading.Thread(target=self._run, name=name, daemon=True)
        self._worker.start()

    # --------------------------- Request queue -----------------------

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                break
            if not request.future.set_running_or_notify_cancel():
                continue
            try:
                result = request.fn(*request.args, **request.kwargs)
            except BaseException as exc:
                request.future.set_exception(exc)
            else:
                request.future.set_result(result)
        self._connections.close()
        _logger.debug("Worker %s stopped", threading.current_thread().name)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Queue ``fn`` to run on the worker thread and return its future."""
        with self._submit_lock:
            if self._closed:
                raise ClientClosedError()
            request = _Request(fn=fn, args=args, kwargs=kwargs)
            self._requests.put(request)
        return request.future

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        # Already on the worker: run inline instead of waiting on ourselves
        if threading.current_thread() is self._worker:
            return fn(*args, **kwargs)
        return self.submit(fn, *args, **kwargs).result()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work, close the connection and stop the worker.

        Requests queued before shutdown still run.
        """
        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
            self._requests.put(None)
        if wait and threading.current_thread() is not self._worker:
            self._worker.join()

    def __enter__(self) -> DatabaseClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    # --------------------------- Connection --------------------------

    def connect(self, path: Path | str, force_read_only: Optional[bool] = None) -> AccessMode:
        return self._call(self._connections.connect, path, force_read_only)

    def close(self) -> None:
        self._call(self._connections.close)

    @property
    def is_connected(self) -> bool:
        return self._call(lambda: self._connections.is_open)

    @property
    def access_mode(self) -> Optional[AccessMode]:
        return self._call(lambda: self._connections.access_mode)

    @property
    def path(self) -> Optional[Path]:
        return self._call(lambda: self._connections.path)

    def current_metadata(self) -> Optional[DatabaseMetadata]:
        return self._call(lambda: self._connections.metadata)

    # --------------------------- Schema ------------------------------

    def list_tables(self) -> List[str]:
        return self._call(self._schema.list_tables)

    def describe_table(self, name: str) -> Table:
        return self._call(self._schema.describe_table, name)

    def row_count(self, name: str) -> int:
        return self._call(self._schema.row_count, name)

    def tables(self) -> List[Table]:
        """Every user table with its columns and row count."""
        return self._call(self._schema.describe_all)

    def load_object_graph_schema(self) -> Optional[List[EntityDescriptor]]:
        """Entities of the embedded model resolved to tables; None without a model."""
        return self._call(self._load_entities)

    def display_mode(self, open_as_sqlite: bool = False) -> DisplayMode:
        return self._call(self._display_mode, open_as_sqlite)

    def displayed_objects(self, open_as_sqlite: bool = False) -> List[DisplayedObject]:
        """Tables, CoreData entities or SwiftData models, depending on the store."""
        return self._call(self._displayed_objects, open_as_sqlite)

    # --------------------------- Records -----------------------------

    def fetch_records(
        self,
        table: TableRef,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Record]:
        return self._call(self._fetch_records, table, limit, offset)

    def insert(self, table: TableRef, record: Record) -> Optional[int]:
        return self._call(lambda: self._records.insert(self._table(table), record))

    def update(
        self,
        table: TableRef,
        record: Record,
        columns: Optional[Sequence[str]] = None,
    ) -> int:
        return self._call(lambda: self._records.update(self._table(table), record, columns))

    def delete(self, table: TableRef, records: Iterable[Record]) -> int:
        records = list(records)
        return self._call(lambda: self._records.delete(self._table(table), records))

    # --------------------------- Worker-side helpers -----------------

    def _table(self, table: TableRef) -> Table:
        if isinstance(table, Table):
            return table
        return self._schema.describe_table(table)

    def _fetch_records(self, table: TableRef, limit: Optional[int], offset: int) -> List[Record]:
        # Re-read the columns so records always follow the current schema
        name = table.name if isinstance(table, Table) else table
        described = self._schema.describe_table(name)
        by_name = {c.name: c for c in described.columns}

        paging = ""
        params: List[int] = []
        if limit is not None:
            paging = " LIMIT ? OFFSET ?"
            params = [int(limit), int(offset)]
        elif offset:
            paging = " LIMIT -1 OFFSET ?"
            params = [int(offset)]

        handle = self._connections.handle
        quoted = quote_identifier(name)
        try:
            cur = handle.execute(f"SELECT *, ROWID AS row_id FROM {quoted}{paging}", params)
            has_rowid = True
        except sqlite3.OperationalError as exc:
            # WITHOUT ROWID tables have no rowid to select
            if "rowid" not in str(exc).lower():
                if not self._schema.table_exists(name):
                    raise TableNotFoundError(name) from exc
                raise
            cur = handle.execute(f"SELECT * FROM {quoted}{paging}", params)
            has_rowid = False

        names = [d[0] for d in cur.description]
        if has_rowid:
            names = names[:-1]

        records: List[Record] = []
        for row in cur:
            values: Dict[str, Value] = {}
            for index, column_name in enumerate(names):
                column = by_name.get(column_name)
                declared = column.declared_type if column is not None else ""
                values[column_name] = decode_cell(declared, row[index])
            row_id = row[-1] if has_rowid else None
            records.append(Record(values=values, row_id=row_id))
        _logger.debug("Fetched %d records from %s", len(records), name)
        return records

    def _load_entities(self) -> Optional[List[EntityDescriptor]]:
        model = self._connections.model
        if model is None:
            return None
        return resolve_entities(model, self._schema.list_tables(), self._schema.describe_table)

    def _display_mode(self, open_as_sqlite: bool) -> DisplayMode:
        metadata = self._connections.metadata
        if open_as_sqlite or metadata is None:
            return DisplayMode.SQLITE
        return metadata.display_mode

    def _displayed_objects(self, open_as_sqlite: bool) -> List[DisplayedObject]:
        mode = self._display_mode(open_as_sqlite)
        entities = self._load_entities() if mode is not DisplayMode.SQLITE else None
        if entities is None:
            return [TableObject(t) for t in self._schema.describe_all()]
        if mode is DisplayMode.SWIFT_DATA:
            return [ModelObject(e) for e in entities]
        return [EntityObject(e) for e in entities]


class AsyncDatabaseClient:
    """asyncio view of a DatabaseClient; operations await the worker's futures."""

    def __init__(self, client: Optional[DatabaseClient] = None, **kwargs: Any):
        self.client = client or DatabaseClient(**kwargs)

    async def _await(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.wrap_future(self.client.submit(fn, *args))

    async def connect(self, path: Path | str, force_read_only: Optional[bool] = None) -> AccessMode:
        return await self._await(self.client.connect, path, force_read_only)

    async def close(self) -> None:
        await self._await(self.client.close)

    async def list_tables(self) -> List[str]:
        return await self._await(self.client.list_tables)

    async def describe_table(self, name: str) -> Table:
        return await self._await(self.client.describe_table, name)

    async def row_count(self, name: str) -> int:
        return await self._await(self.client.row_count, name)

    async def tables(self) -> List[Table]:
        return await self._await(self.client.tables)

    async def fetch_records(
        self,
        table: TableRef,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Record]:
        future = self.client.submit(self.client.fetch_records, table, limit=limit, offset=offset)
        return await asyncio.wrap_future(future)

    async def insert(self, table: TableRef, record: Record) -> Optional[int]:
        return await self._await(self.client.insert, table, record)

    async def update(self, table: TableRef, record: Record, columns: Optional[Sequence[str]] = None) -> int:
        return await self._await(self.client.update, table, record, columns)

    async def delete(self, table: TableRef, records: Iterable[Record]) -> int:
        return await self._await(self.client.delete, table, list(records))

    async def load_object_graph_schema(self) -> Optional[List[EntityDescriptor]]:
        return await self._await(self.client.load_object_graph_schema)

    async def current_metadata(self) -> Optional[DatabaseMetadata]:
        return await self._await(self.client.current_metadata)

    async def displayed_objects(self, open_as_sqlite: bool = False) -> List[DisplayedObject]:
        return await self._await(self.client.displayed_objects, open_as_sqlite)

    async def shutdown(self) -> None:
        await asyncio.get_running_loop().run_in_executor(None, self.client.shutdown)
