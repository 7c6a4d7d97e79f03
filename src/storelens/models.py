"""Schema, record and connection types shared across storelens."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from uuid import UUID, uuid4

from .values import NULL, Value

# Above this NSPersistenceFrameworkVersion a store was written by SwiftData
SWIFT_DATA_MIN_VERSION = 800


def storage_type(declared_type: str) -> str:
    """Declared column type without its size/precision suffix.

    ``VARCHAR(255)`` becomes ``VARCHAR``. Case is preserved.
    """
    head, _, _ = declared_type.partition("(")
    return head.strip()


@dataclass(frozen=True)
class Column:
    """A physical column as reported by the catalog."""

    name: str
    declared_type: str
    not_null: bool = False
    # 0 when not part of the primary key, else 1-based position in the key
    primary_key_rank: int = 0

    @property
    def is_primary_key(self) -> bool:
        return self.primary_key_rank > 0

    @property
    def storage_type(self) -> str:
        return storage_type(self.declared_type)


@dataclass(frozen=True)
class Table:
    """Snapshot of a table: columns in declaration order and its row count."""

    name: str
    columns: Tuple[Column, ...] = ()
    record_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def primary_key(self) -> Tuple[Column, ...]:
        """Primary-key columns ordered by their rank."""
        return tuple(sorted((c for c in self.columns if c.is_primary_key), key=lambda c: c.primary_key_rank))

    def column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None


@dataclass(frozen=True, eq=False)
class Record:
    """One fetched row.

    ``id`` is process-local and only identifies the record while it is held
    in memory. ``row_id`` is the storage engine's rowid when it was fetched.
    Two records are equal when they share the same ``id``.
    """

    values: Mapping[str, Value] = field(default_factory=dict)
    row_id: Optional[int] = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", dict(self.values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def get(self, column: str) -> Value:
        return self.values.get(column, NULL)

    def replace(self, **values: Value) -> Record:
        """Copy with some values changed, keeping ``id`` and ``row_id``."""
        merged: Dict[str, Value] = dict(self.values)
        merged.update(values)
        return Record(values=merged, row_id=self.row_id, id=self.id)


@dataclass(frozen=True)
class Property:
    """A logical model attribute paired with the column that stores it."""

    name: str
    type_name: str
    column: Column

    @property
    def display_name(self) -> str:
        return f"{self.name}: {self.type_name}"


@dataclass(frozen=True)
class EntityDescriptor:
    """A model entity resolved against the table that stores it."""

    display_name: str
    table: Table
    properties: Mapping[str, Property] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", dict(self.properties))

    @property
    def table_name(self) -> str:
        return self.table.name

    def __hash__(self) -> int:
        return hash((self.display_name, self.table))


class AccessMode(str, Enum):
    READ_WRITE = "read-write"
    READ_ONLY_FALLBACK = "read-only-fallback"
    READ_ONLY_REQUESTED = "read-only-requested"

    @property
    def writable(self) -> bool:
        return self is AccessMode.READ_WRITE


@dataclass(frozen=True)
class ConnectionState:
    """Either closed (no handle) or open with a handle and access mode."""

    handle: Optional[sqlite3.Connection] = field(default=None, repr=False, compare=False)
    access_mode: Optional[AccessMode] = None
    path: Optional[Path] = None

    @property
    def is_open(self) -> bool:
        return self.handle is not None


CLOSED = ConnectionState()


class DisplayMode(str, Enum):
    SQLITE = "SQLite"
    CORE_DATA = "CoreData"
    SWIFT_DATA = "SwiftData"


@dataclass(frozen=True)
class DatabaseMetadata:
    """Persistence metadata of an object-graph store."""

    persistence_version: Optional[int] = None
    raw_plist: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def display_mode(self) -> DisplayMode:
        if self.persistence_version is None:
            return DisplayMode.SQLITE
        if self.persistence_version > SWIFT_DATA_MIN_VERSION:
            return DisplayMode.SWIFT_DATA
        return DisplayMode.CORE_DATA


@dataclass(frozen=True)
class TableObject:
    table: Table

    @property
    def name(self) -> str:
        return self.table.name


@dataclass(frozen=True)
class EntityObject:
    """A CoreData entity shown in place of its table."""

    entity: EntityDescriptor

    @property
    def name(self) -> str:
        return self.entity.display_name

    @property
    def table(self) -> Table:
        return self.entity.table


@dataclass(frozen=True)
class ModelObject:
    """A SwiftData model shown in place of its table."""

    entity: EntityDescriptor

    @property
    def name(self) -> str:
        return self.entity.display_name

    @property
    def table(self) -> Table:
        return self.entity.table


DisplayedObject = Union[TableObject, EntityObject, ModelObject]
