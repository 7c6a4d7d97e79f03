"""Typed cell values.

A ``Value`` is one of a closed set of frozen dataclasses. ``Array`` and
``Image`` only come out of blob sniffing and are display-only: they are
written back as NULL.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Tuple, Union


class ValueKind(str, Enum):
    SMALLINT = "smallint"
    INTEGER = "integer"
    FLOAT = "float"
    REAL = "real"
    TEXT = "text"
    ARRAY = "array"
    IMAGE = "image"
    TIMESTAMP = "timestamp"
    NULL = "null"


SMALLINT_MIN, SMALLINT_MAX = -(2**15), 2**15 - 1
INTEGER_MIN, INTEGER_MAX = -(2**63), 2**63 - 1


def to_float32(number: float) -> float:
    """Round a Python float to the nearest single-precision value."""
    return struct.unpack("<f", struct.pack("<f", number))[0]


@dataclass(frozen=True)
class SmallInt:
    value: int
    kind: ClassVar[ValueKind] = ValueKind.SMALLINT

    def __post_init__(self) -> None:
        if not SMALLINT_MIN <= self.value <= SMALLINT_MAX:
            raise ValueError(f"{self.value} does not fit in a 16-bit integer")

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Integer:
    value: int
    kind: ClassVar[ValueKind] = ValueKind.INTEGER

    def __post_init__(self) -> None:
        if not INTEGER_MIN <= self.value <= INTEGER_MAX:
            raise ValueError(f"{self.value} does not fit in a 64-bit integer")

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Float:
    """Single-precision float; the stored value is rounded on construction."""

    value: float
    kind: ClassVar[ValueKind] = ValueKind.FLOAT

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_float32(float(self.value)))

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Real:
    value: float
    kind: ClassVar[ValueKind] = ValueKind.REAL

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Text:
    value: str
    kind: ClassVar[ValueKind] = ValueKind.TEXT

    def to_python(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Array:
    items: Tuple["Value", ...] = ()
    kind: ClassVar[ValueKind] = ValueKind.ARRAY

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def to_python(self) -> Any:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class Image:
    """Raster image bytes plus the format Pillow recognised (e.g. ``"PNG"``)."""

    data: bytes = field(repr=False)
    format: str = ""
    kind: ClassVar[ValueKind] = ValueKind.IMAGE

    def to_python(self) -> Any:
        return {"format": self.format, "size": len(self.data)}


@dataclass(frozen=True)
class Timestamp:
    """Point in time as seconds since the Unix epoch."""

    seconds: float
    kind: ClassVar[ValueKind] = ValueKind.TIMESTAMP

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds, tz=timezone.utc)

    def isoformat(self) -> str:
        """ISO-8601 UTC text, or the raw seconds when datetime cannot hold them."""
        try:
            return self.to_datetime().isoformat()
        except (OverflowError, OSError, ValueError):
            return repr(self.seconds)

    def to_python(self) -> Any:
        return self.seconds


@dataclass(frozen=True)
class Null:
    kind: ClassVar[ValueKind] = ValueKind.NULL

    def to_python(self) -> Any:
        return None


NULL = Null()

Value = Union[SmallInt, Integer, Float, Real, Text, Array, Image, Timestamp, Null]

VALUE_TYPES = (SmallInt, Integer, Float, Real, Text, Array, Image, Timestamp, Null)


def is_value(obj: object) -> bool:
    return isinstance(obj, VALUE_TYPES)
