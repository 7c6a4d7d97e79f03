"""Reader for the model description archived inside a CoreData store.

The decompressed model cache is a keyed archive: a binary property list
whose ``$objects`` array holds every archived object, with references
expressed as ``plistlib.UID`` indexes into that array. This module only
understands the handful of classes needed to recover entity and attribute
names and attribute types. Objects of any other class are ignored and are
never instantiated.
"""

from __future__ import annotations

import logging
import plistlib
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .exceptions import ArchiveError

_logger = logging.getLogger(__name__)

ROOT_KEY = "root"
MODEL_CLASS = "NSManagedObjectModel"
ENTITY_CLASS = "NSEntityDescription"
ATTRIBUTE_CLASS = "NSAttributeDescription"

_DICT_CLASSES = frozenset({"NSDictionary", "NSMutableDictionary"})
_LIST_CLASSES = frozenset({"NSArray", "NSMutableArray", "NSSet", "NSMutableSet", "NSOrderedSet"})
_STRING_CLASSES = frozenset({"NSString", "NSMutableString"})

# NSAttributeType codes and the logical type they are shown as
ATTRIBUTE_TYPE_NAMES: Dict[int, str] = {
    100: "Int",  # 16-bit
    200: "Int",  # 32-bit
    300: "Int",  # 64-bit
    400: "Decimal",
    500: "Double",
    600: "Float",
    700: "String",
    800: "Bool",
    900: "Date",
    1000: "Data",
}


@dataclass(frozen=True)
class AttributeDescription:
    name: str
    attribute_type: int = 0
    optional: bool = False

    @property
    def type_name(self) -> str:
        name = ATTRIBUTE_TYPE_NAMES.get(self.attribute_type, "String")
        return f"{name}?" if self.optional else name


@dataclass(frozen=True)
class EntityDescription:
    name: str
    attributes: Tuple[AttributeDescription, ...] = ()


@dataclass(frozen=True)
class ManagedObjectModel:
    """Entities of the archived model, sorted by name."""

    entities: Tuple[EntityDescription, ...] = ()

    @property
    def entity_names(self) -> Tuple[str, ...]:
        return tuple(e.name for e in self.entities)


class _KeyedArchive:
    """Typed lookups over the ``$objects`` table of a keyed archive."""

    def __init__(self, objects: List[Any]):
        self._objects = objects

    def deref(self, ref: Any) -> Any:
        if not isinstance(ref, plistlib.UID):
            return ref
        index = ref.data
        if not 0 <= index < len(self._objects):
            raise ArchiveError(f"Archive reference {index} is out of range")
        obj = self._objects[index]
        if obj == "$null":
            return None
        return obj

    def classname(self, obj: Any) -> Optional[str]:
        if not isinstance(obj, dict):
            return None
        cls = self.deref(obj.get("$class"))
        if not isinstance(cls, dict):
            return None
        name = cls.get("$classname")
        return name if isinstance(name, str) else None

    def string(self, ref: Any) -> Optional[str]:
        obj = self.deref(ref)
        if isinstance(obj, str):
            return obj
        if self.classname(obj) in _STRING_CLASSES:
            value = obj.get("NS.string")
            return value if isinstance(value, str) else None
        return None

    def mapping(self, ref: Any) -> Iterator[Tuple[Optional[str], Any]]:
        """(key, value-ref) pairs of an archived dictionary; empty otherwise."""
        obj = self.deref(ref)
        if self.classname(obj) not in _DICT_CLASSES:
            return iter(())
        keys = obj.get("NS.keys") or []
        values = obj.get("NS.objects") or []
        if not isinstance(keys, list) or not isinstance(values, list) or len(keys) != len(values):
            raise ArchiveError("Archived dictionary has malformed keys or values")
        return ((self.string(k), v) for k, v in zip(keys, values))

    def members(self, ref: Any) -> List[Any]:
        """Value refs of an archived dictionary, array or set."""
        obj = self.deref(ref)
        name = self.classname(obj)
        if name in _DICT_CLASSES:
            return [value for _, value in self.mapping(obj)]
        if name in _LIST_CLASSES:
            items = obj.get("NS.objects") or []
            return list(items) if isinstance(items, list) else []
        return []


def _integer(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


def _read_attribute(archive: _KeyedArchive, key: Optional[str], obj: dict) -> Optional[AttributeDescription]:
    name = archive.string(obj.get("NSPropertyName")) or key
    if not name:
        return None
    optional = obj.get("NSIsOptional")
    return AttributeDescription(
        name=name,
        attribute_type=_integer(archive.deref(obj.get("NSAttributeType"))),
        optional=bool(optional) if isinstance(optional, (bool, int)) else False,
    )


def _read_entity(archive: _KeyedArchive, obj: dict) -> Optional[EntityDescription]:
    name = archive.string(obj.get("NSEntityName"))
    if not name:
        _logger.debug("Skipping archived entity without a name")
        return None

    attributes: List[AttributeDescription] = []
    for key, ref in archive.mapping(obj.get("NSProperties")):
        prop = archive.deref(ref)
        # Relationships and fetched properties are not needed
        if archive.classname(prop) != ATTRIBUTE_CLASS:
            continue
        attr = _read_attribute(archive, key, prop)
        if attr is not None:
            attributes.append(attr)

    attributes.sort(key=lambda a: a.name)
    return EntityDescription(name=name, attributes=tuple(attributes))


def read_object_model(data: bytes) -> ManagedObjectModel:
    """Extract the entity/attribute schema from a keyed-archive blob.

    Raises
    ------
    ArchiveError
        If the bytes are not a keyed archive whose root object is a
        managed object model.
    """
    try:
        archive = plistlib.loads(data)
    except Exception as exc:  # plistlib raises a wide range of errors on junk input
        raise ArchiveError(f"Model cache is not a property list: {exc}") from exc

    if not isinstance(archive, dict):
        raise ArchiveError("Model cache is not a keyed archive")
    objects = archive.get("$objects")
    top = archive.get("$top")
    if not isinstance(objects, list) or not isinstance(top, dict):
        raise ArchiveError("Model cache is missing $objects or $top")

    reader = _KeyedArchive(objects)
    root = reader.deref(top.get(ROOT_KEY))
    root_class = reader.classname(root)
    if root_class != MODEL_CLASS:
        raise ArchiveError(f"Model cache root is {root_class or 'unknown'}, expected {MODEL_CLASS}")

    entities: Dict[str, EntityDescription] = {}
    for ref in reader.members(root.get("NSEntities")):
        obj = reader.deref(ref)
        if reader.classname(obj) != ENTITY_CLASS:
            continue
        entity = _read_entity(reader, obj)
        if entity is not None and entity.name not in entities:
            entities[entity.name] = entity

    model = ManagedObjectModel(entities=tuple(entities[name] for name in sorted(entities)))
    _logger.debug("Model cache holds %d entities", len(model.entities))
    return model
