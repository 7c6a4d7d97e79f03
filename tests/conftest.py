from __future__ import annotations

import plistlib
import sqlite3
import zlib
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import pytest

from storelens import DatabaseClient, StoreLensConfig

# (attribute name, NSAttributeType code, optional)
AttributeSpec = Tuple[str, int, bool]


def build_keyed_archive(
    entities: Dict[str, Sequence[AttributeSpec]],
    root_class: str = "NSManagedObjectModel",
) -> bytes:
    """Binary keyed archive of a managed object model with the given entities."""
    objects: List[object] = ["$null"]

    def add(obj: object) -> plistlib.UID:
        objects.append(obj)
        return plistlib.UID(len(objects) - 1)

    def add_class(name: str) -> plistlib.UID:
        return add({"$classname": name, "$classes": [name, "NSObject"]})

    dict_class = add_class("NSDictionary")
    attribute_class = add_class("NSAttributeDescription")
    entity_class = add_class("NSEntityDescription")

    entity_keys: List[plistlib.UID] = []
    entity_refs: List[plistlib.UID] = []
    for entity_name, attributes in entities.items():
        name_ref = add(entity_name)
        prop_keys: List[plistlib.UID] = []
        prop_refs: List[plistlib.UID] = []
        for attr_name, attr_type, optional in attributes:
            attr_name_ref = add(attr_name)
            prop_keys.append(attr_name_ref)
            prop_refs.append(
                add(
                    {
                        "$class": attribute_class,
                        "NSPropertyName": attr_name_ref,
                        "NSAttributeType": attr_type,
                        "NSIsOptional": optional,
                    }
                )
            )
        properties = add({"$class": dict_class, "NS.keys": prop_keys, "NS.objects": prop_refs})
        entity_keys.append(name_ref)
        entity_refs.append(
            add({"$class": entity_class, "NSEntityName": name_ref, "NSProperties": properties})
        )

    all_entities = add({"$class": dict_class, "NS.keys": entity_keys, "NS.objects": entity_refs})
    root = add({"$class": add_class(root_class), "NSEntities": all_entities})

    archive = {
        "$version": 100000,
        "$archiver": "NSKeyedArchiver",
        "$top": {"root": root},
        "$objects": objects,
    }
    return plistlib.dumps(archive, fmt=plistlib.FMT_BINARY)


def write_store(
    path: Path,
    *,
    persistence_version: Optional[int] = 641,
    model_cache: Optional[bytes] = None,
) -> Path:
    """CoreData-style store: a ZPERSON table plus metadata and model cache tables."""
    if model_cache is None:
        model_cache = zlib.compress(
            build_keyed_archive({"Person": [("name", 700, True), ("age", 200, False)]})
        )

    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "CREATE TABLE ZPERSON (Z_PK INTEGER PRIMARY KEY, Z_ENT INTEGER, Z_OPT INTEGER, "
            "ZAGE INTEGER, ZNAME VARCHAR)"
        )
        conn.executemany(
            "INSERT INTO ZPERSON (Z_ENT, Z_OPT, ZAGE, ZNAME) VALUES (1, 1, ?, ?)",
            [(34, "Ann"), (27, "Bo")],
        )
        conn.execute("CREATE TABLE Z_METADATA (Z_VERSION INTEGER PRIMARY KEY, Z_UUID VARCHAR(255), Z_PLIST BLOB)")
        if persistence_version is not None:
            plist = plistlib.dumps({"NSPersistenceFrameworkVersion": persistence_version, "NSStoreType": "SQLite"})
            conn.execute("INSERT INTO Z_METADATA VALUES (1, 'uuid', ?)", (plist,))
        conn.execute("CREATE TABLE Z_MODELCACHE (Z_CONTENT BLOB)")
        conn.execute("INSERT INTO Z_MODELCACHE VALUES (?)", (model_cache,))
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def fast_config() -> StoreLensConfig:
    return StoreLensConfig(busy_timeout=0.1)


@pytest.fixture
def people_db(tmp_path: Path) -> Path:
    """people(id INTEGER PRIMARY KEY, name TEXT) holding Ann and Bo."""
    path = tmp_path / "people.db"
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT)")
        conn.executemany("INSERT INTO people (id, name) VALUES (?, ?)", [(1, "Ann"), (2, "Bo")])
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def core_data_store(tmp_path: Path) -> Path:
    return write_store(tmp_path / "Model.store")


@pytest.fixture
def client(fast_config: StoreLensConfig) -> Iterator[DatabaseClient]:
    c = DatabaseClient(fast_config)
    try:
        yield c
    finally:
        c.shutdown()


@pytest.fixture
def keyed_archive():
    """Factory building binary keyed archives of object models."""
    return build_keyed_archive


@pytest.fixture
def make_store():
    """Factory writing CoreData-style store files."""
    return write_store
