"""Metadata and model cache of CoreData/SwiftData stores.

Object-graph stores are ordinary SQLite files with a few reserved tables:

- ``Z_METADATA.Z_PLIST`` holds the store metadata as a property list
  (``NSPersistenceFrameworkVersion`` tells CoreData and SwiftData apart).
- ``Z_MODELCACHE.Z_CONTENT`` holds the zlib-compressed keyed archive of the
  managed object model.

Loading is best effort. Missing tables or corrupt blobs yield no metadata
or no model; the connection itself is never failed because of them.
"""

from __future__ import annotations

import logging
import plistlib
import sqlite3
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .archive import ManagedObjectModel, read_object_model
from .exceptions import MetadataError
from .models import Column, DatabaseMetadata, EntityDescriptor, Property, Table

_logger = logging.getLogger(__name__)

METADATA_TABLE = "Z_METADATA"
METADATA_COLUMN = "Z_PLIST"
MODEL_CACHE_TABLE = "Z_MODELCACHE"
MODEL_CACHE_COLUMN = "Z_CONTENT"
VERSION_KEY = "NSPersistenceFrameworkVersion"

# Prefix CoreData puts in front of entity and attribute names
_STORAGE_PREFIX = "Z"

MetadataProbe = Callable[[sqlite3.Connection], Optional[DatabaseMetadata]]


@dataclass(frozen=True)
class ObjectGraph:
    """What was recovered from an object-graph store; either part may be missing."""

    metadata: Optional[DatabaseMetadata] = None
    model: Optional[ManagedObjectModel] = None


def _first_blob(handle: sqlite3.Connection, table: str, column: str) -> Optional[bytes]:
    try:
        row = handle.execute(f'SELECT "{column}" FROM "{table}" LIMIT 1').fetchone()
    except sqlite3.Error as exc:
        raise MetadataError(f"Cannot read {table}.{column}: {exc}") from exc
    if row is None or row[0] is None:
        return None
    value = row[0]
    if isinstance(value, str):
        return value.encode("utf-8")
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise MetadataError(f"{table}.{column} does not hold binary data")
    return bytes(value)


def read_store_metadata(handle: sqlite3.Connection) -> Optional[DatabaseMetadata]:
    """Default metadata probe: parse the plist stored in ``Z_METADATA``."""
    blob = _first_blob(handle, METADATA_TABLE, METADATA_COLUMN)
    if not blob:
        return None
    try:
        plist = plistlib.loads(blob)
    except Exception as exc:  # plistlib raises a wide range of errors on junk input
        raise MetadataError(f"Store metadata is not a property list: {exc}") from exc
    if not isinstance(plist, dict):
        raise MetadataError("Store metadata is not a dictionary")

    version = plist.get(VERSION_KEY)
    if isinstance(version, bool) or not isinstance(version, int):
        version = None
    return DatabaseMetadata(persistence_version=version, raw_plist=plist)


def decompress_model_cache(blob: bytes) -> bytes:
    """Inflate a model-cache blob, with or without the zlib header."""
    errors: List[str] = []
    # zlib/gzip header auto-detected first, then a raw deflate stream
    for wbits in (zlib.MAX_WBITS | 32, -zlib.MAX_WBITS):
        try:
            return zlib.decompress(blob, wbits)
        except zlib.error as exc:
            errors.append(str(exc))
    raise MetadataError(f"Model cache does not inflate: {'; '.join(errors)}")


class ModelCacheLoader:
    """Read metadata and the managed object model from an open handle."""

    def __init__(self, metadata_probe: Optional[MetadataProbe] = None):
        self._probe = metadata_probe or read_store_metadata

    def load_metadata(self, handle: sqlite3.Connection) -> Optional[DatabaseMetadata]:
        try:
            return self._probe(handle)
        except MetadataError as exc:
            _logger.warning("Store metadata unavailable: %s", exc)
            return None

    def load_model(self, handle: sqlite3.Connection) -> Optional[ManagedObjectModel]:
        try:
            blob = _first_blob(handle, MODEL_CACHE_TABLE, MODEL_CACHE_COLUMN)
            if not blob:
                _logger.info("No model cache in this store")
                return None
            return read_object_model(decompress_model_cache(blob))
        except MetadataError as exc:
            _logger.warning("Model cache unavailable: %s", exc)
            return None
        except (TypeError, ValueError, AttributeError) as exc:
            _logger.warning("Model cache is malformed: %s", exc)
            return None

    def load(self, handle: sqlite3.Connection) -> ObjectGraph:
        return ObjectGraph(metadata=self.load_metadata(handle), model=self.load_model(handle))


# ----------------------------------------------------------------------
# Entity resolution
# ----------------------------------------------------------------------
def match_table(entity_name: str, table_names: Sequence[str]) -> Optional[str]:
    """Table storing an entity.

    ``Z<NAME>`` wins when present; otherwise the first table, in ascending
    name order, whose uppercased name contains the uppercased entity name.
    """
    wanted = entity_name.upper()
    ordered = sorted(table_names)
    for name in ordered:
        if name.upper() == _STORAGE_PREFIX + wanted:
            return name
    for name in ordered:
        if wanted in name.upper():
            return name
    return None


def match_column(attribute_name: str, columns: Iterable[Column]) -> Optional[Column]:
    """First column whose name, lowercased and minus its first character, is the attribute name."""
    wanted = attribute_name.lower()
    for column in columns:
        if column.name[1:].lower() == wanted:
            return column
    return None


def resolve_entities(
    model: ManagedObjectModel,
    table_names: Sequence[str],
    describe: Callable[[str], Table],
) -> List[EntityDescriptor]:
    """Pair each archived entity with its table and attribute columns.

    Entities without a matching table and attributes without a matching
    column are left out.
    """
    resolved: List[EntityDescriptor] = []
    for entity in model.entities:
        table_name = match_table(entity.name, table_names)
        if table_name is None:
            _logger.debug("No table found for entity %s", entity.name)
            continue

        table = describe(table_name)
        properties: Dict[str, Property] = {}
        for attr in entity.attributes:
            column = match_column(attr.name, table.columns)
            if column is None:
                _logger.debug("No column for %s.%s in %s", entity.name, attr.name, table_name)
                continue
            properties[attr.name] = Property(name=attr.name, type_name=attr.type_name, column=column)

        resolved.append(EntityDescriptor(display_name=entity.name, table=table, properties=properties))
    return resolved
