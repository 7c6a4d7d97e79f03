"""Decode raw SQLite cells into typed values.

Dispatch is on the column's declared type (case-sensitive, size suffix
trimmed). BLOB cells are sniffed: known image signatures first, then
property lists holding an array of strings, then text, with bracketed
comma-separated text turned into an ``Array``.

Nothing in this module raises on malformed input: a cell that cannot be
decoded becomes ``NULL``.
"""

from __future__ import annotations

import io
import logging
import plistlib
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from .exceptions import DecodeError
from .models import storage_type
from .values import (
    INTEGER_MAX,
    INTEGER_MIN,
    NULL,
    SMALLINT_MAX,
    SMALLINT_MIN,
    Array,
    Float,
    Image,
    Integer,
    Null,
    Real,
    SmallInt,
    Text,
    Timestamp,
    Value,
)

_logger = logging.getLogger(__name__)

# Leading bytes of the raster formats we render
IMAGE_SIGNATURES: Tuple[Tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "JPEG"),
    (b"\x89PNG", "PNG"),
    (b"GIF8", "GIF"),
    (b"BM", "BMP"),
)

TEXT_ENCODINGS = ("utf-8", "ascii")

_QUOTES = ('"', "'")


# ----------------------------------------------------------------------
# Scalar coercions
# ----------------------------------------------------------------------
def _as_int(raw: Any, low: int, high: int) -> int:
    if isinstance(raw, bool):
        number = int(raw)
    elif isinstance(raw, int):
        number = raw
    elif isinstance(raw, float) and raw.is_integer():
        number = int(raw)
    elif isinstance(raw, (str, bytes)):
        text = raw.decode("ascii") if isinstance(raw, bytes) else raw
        try:
            number = int(text.strip())
        except ValueError as exc:
            raise DecodeError(f"not an integer: {raw!r}") from exc
    else:
        raise DecodeError(f"not an integer: {raw!r}")

    if not low <= number <= high:
        raise DecodeError(f"{number} out of range [{low}, {high}]")
    return number


def _as_float(raw: Any) -> float:
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, (str, bytes)):
        text = raw.decode("ascii") if isinstance(raw, bytes) else raw
        try:
            return float(text.strip())
        except ValueError as exc:
            raise DecodeError(f"not a number: {raw!r}") from exc
    raise DecodeError(f"not a number: {raw!r}")


def _decode_text_bytes(data: bytes) -> Optional[str]:
    for encoding in TEXT_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return None


def _as_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, bytes):
        text = _decode_text_bytes(raw)
        if text is None:
            raise DecodeError("bytes are neither UTF-8 nor ASCII")
        return text
    if isinstance(raw, (int, float)):
        return str(raw)
    raise DecodeError(f"not text: {raw!r}")


def _as_timestamp(raw: Any) -> float:
    """Seconds since the epoch from a number or an ISO-8601 string.

    Strings without a UTC offset (the form CURRENT_TIMESTAMP writes) are
    taken as UTC.
    """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (str, bytes)):
        text = _as_text(raw).strip()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            moment = datetime.fromisoformat(text)
        except ValueError as exc:
            raise DecodeError(f"not a timestamp: {raw!r}") from exc
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.timestamp()
    raise DecodeError(f"not a timestamp: {raw!r}")


def _blob_bytes(raw: Any) -> bytes:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    if isinstance(raw, str):
        return raw.encode("utf-8")
    raise DecodeError(f"not a blob: {raw!r}")


# ----------------------------------------------------------------------
# Blob sniffing
# ----------------------------------------------------------------------
def image_format_hint(data: bytes) -> Optional[str]:
    """Format name for the first matching magic-byte signature, if any."""
    for signature, name in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return name
    return None


def decode_image(data: bytes, hint: str = "") -> Optional[Image]:
    """Return an ``Image`` when Pillow can fully decode the bytes."""
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            img.load()
            fmt = img.format or hint
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, PILImage.DecompressionBombError) as exc:
        _logger.debug("Blob looks like %s but does not decode: %s", hint or "an image", exc)
        return None
    return Image(data=data, format=fmt)


def decode_plist_strings(data: bytes) -> Optional[str]:
    """Comma-joined items when the bytes are a plist holding a list of strings."""
    try:
        parsed = plistlib.loads(data)
    except Exception as exc:  # plistlib raises a wide range of errors on junk input
        _logger.debug("Blob is not a property list: %s", exc)
        return None
    if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
        return ",".join(parsed)
    return None


def _array_element(element: str) -> Value:
    element = element.strip()
    if len(element) >= 2 and element[0] in _QUOTES and element[-1] == element[0]:
        return Text(element[1:-1])
    try:
        return Integer(_as_int(element, INTEGER_MIN, INTEGER_MAX))
    except DecodeError:
        return NULL


def parse_text(text: str) -> Value:
    """``Array`` for bracket-delimited text, otherwise ``Text``."""
    if len(text) >= 2 and text.startswith("[") and text.endswith("]"):
        inner = text[1:-1]
        if not inner.strip():
            return Array(())
        return Array(tuple(_array_element(part) for part in inner.split(",")))
    return Text(text)


def sniff_blob(data: bytes) -> Value:
    """Best-effort classification of a BLOB cell."""
    hint = image_format_hint(data)
    if hint is not None:
        image = decode_image(data, hint)
        if image is not None:
            return image

    joined = decode_plist_strings(data)
    if joined is not None:
        return Text(joined)

    text = _decode_text_bytes(data)
    if text is None:
        return NULL
    return parse_text(text)


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------
def _decode_smallint(raw: Any) -> Value:
    return SmallInt(_as_int(raw, SMALLINT_MIN, SMALLINT_MAX))


def _decode_integer(raw: Any) -> Value:
    return Integer(_as_int(raw, INTEGER_MIN, INTEGER_MAX))


def _decode_float(raw: Any) -> Value:
    return Float(_as_float(raw))


def _decode_real(raw: Any) -> Value:
    return Real(_as_float(raw))


def _decode_text(raw: Any) -> Value:
    return Text(_as_text(raw))


def _decode_timestamp(raw: Any) -> Value:
    return Timestamp(_as_timestamp(raw))


def _decode_blob(raw: Any) -> Value:
    return sniff_blob(_blob_bytes(raw))


DECODERS: Dict[str, Callable[[Any], Value]] = {
    "SMALLINT": _decode_smallint,
    "INTEGER": _decode_integer,
    "BIGINT": _decode_float,
    "FLOAT": _decode_float,
    "TEXT": _decode_text,
    "VARCHAR": _decode_text,
    "NVARCHAR": _decode_text,
    "REAL": _decode_real,
    "TIMESTAMP": _decode_timestamp,
    "BLOB": _decode_blob,
}


def decode_cell(declared_type: str, raw: Any) -> Value:
    """Map a raw cell to a ``Value`` according to its column's declared type.

    Unknown declared types, NULL cells and anything that fails to decode
    yield ``NULL``.
    """
    if raw is None:
        return NULL
    decoder = DECODERS.get(storage_type(declared_type or ""))
    if decoder is None:
        return NULL
    try:
        return decoder(raw)
    except (DecodeError, ValueError, OverflowError) as exc:
        _logger.debug("Cannot decode %s cell %r: %s", declared_type, raw, exc)
        return NULL


# ----------------------------------------------------------------------
# Write side
# ----------------------------------------------------------------------
def encode_value(value: Value) -> Any:
    """SQLite parameter for a value; display-only kinds are written as NULL."""
    if isinstance(value, (SmallInt, Integer)):
        return value.value
    if isinstance(value, (Float, Real)):
        return value.value
    if isinstance(value, Text):
        return value.value
    if isinstance(value, Timestamp):
        return value.seconds
    if isinstance(value, (Array, Image, Null)):
        return None
    raise TypeError(f"Not a storelens value: {value!r}")
