"""Type dispatch for parameter binding and column extraction.

Binding maps a Python value to something the engine accepts, rejecting
anything it cannot store. Extraction converts whatever storage class a
cell holds into the requested kind using the same coercions as the C
``sqlite3_column_*`` family, so a NULL or empty cell never fails.
"""

from __future__ import annotations

import math
import re
import struct
from enum import Enum
from typing import Any

from sqlite_handles.blob import Blob, NOBlob
from sqlite_handles.errors import SQLITE_MISMATCH, SQLITE_RANGE, Error

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

_INT_PREFIX_RE = re.compile(r"\s*([+-]?)(\d*)")
_REAL_PREFIX_RE = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class Int32(int):
    """An integer bound or read as a signed 32-bit value.

    The range is checked when the value is bound, so an oversized Int32 is
    reported through the connection's error policy.
    """

    def __new__(cls, value: Any = 0) -> Int32:
        return super().__new__(cls, int(value))


class Float32(float):
    """A float narrowed to single precision, bound or read as such."""

    def __new__(cls, value: Any = 0.0) -> Float32:
        return super().__new__(cls, narrow_to_float32(float(value)))


class ColumnType(Enum):
    """Destination kinds a column value can be extracted as."""

    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"
    DOUBLE = "double"
    TEXT = "text"
    BLOB = "blob"


_KIND_ALIASES: dict[Any, ColumnType] = {
    Int32: ColumnType.INT32,
    int: ColumnType.INT64,
    Float32: ColumnType.FLOAT,
    float: ColumnType.DOUBLE,
    str: ColumnType.TEXT,
    bytes: ColumnType.BLOB,
    bytearray: ColumnType.BLOB,
    Blob: ColumnType.BLOB,
}


def narrow_to_float32(value: float) -> float:
    """Round a double to the nearest single-precision value."""
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def to_parameter(value: Any) -> Any:
    """Return the engine-ready form of a bind value, or raise :class:`Error`."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Int32):
        if not INT32_MIN <= value <= INT32_MAX:
            raise Error.from_code(SQLITE_RANGE, f"{int(value)} does not fit in 32 bits")
        return int(value)
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise Error.from_code(SQLITE_RANGE, f"{value} does not fit in 64 bits")
        return int(value)
    if isinstance(value, float):
        # Float32 is already narrowed; the engine stores it widened to double.
        return float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Blob):
        return bytes(value.data)
    if isinstance(value, NOBlob):
        return value.data
    if isinstance(value, bytes | bytearray | memoryview):
        return value
    raise Error.from_code(
        SQLITE_MISMATCH, f"unsupported parameter type {type(value).__name__!r}"
    )


def resolve_kind(kind: Any) -> ColumnType:
    """Map a :class:`ColumnType` or a Python type to a :class:`ColumnType`."""
    if isinstance(kind, ColumnType):
        return kind
    try:
        return _KIND_ALIASES[kind]
    except (KeyError, TypeError):
        raise Error.from_code(SQLITE_MISMATCH, "invalid column data type") from None


def convert_column(value: Any, kind: Any) -> Any:
    """Convert a raw cell value to the requested kind."""
    target = resolve_kind(kind)
    if target is ColumnType.INT64:
        return _to_int64(value)
    if target is ColumnType.INT32:
        return _wrap_int32(_to_int64(value))
    if target is ColumnType.DOUBLE:
        return _to_double(value)
    if target is ColumnType.FLOAT:
        return narrow_to_float32(_to_double(value))
    if target is ColumnType.TEXT:
        return _to_text(value)
    return _to_blob(value)


def _wrap_int32(number: int) -> int:
    """Keep the low 32 bits, as a C ``(int)`` cast of an int64 does."""
    return ((number + 2**31) % 2**32) - 2**31


def _real_to_int(real: float) -> int:
    if math.isnan(real):
        return 0
    if real <= INT64_MIN:
        return INT64_MIN
    if real >= INT64_MAX:
        return INT64_MAX
    return int(real)


def _text_to_int(text: str) -> int:
    match = _INT_PREFIX_RE.match(text)
    if match is None or not match.group(2):
        return 0
    number = int(match.group(1) + match.group(2))
    return max(INT64_MIN, min(INT64_MAX, number))


def _text_to_real(text: str) -> float:
    match = _REAL_PREFIX_RE.match(text)
    if match is None:
        return 0.0
    return float(match.group(0))


def _format_real(real: float) -> str:
    """Render a REAL the way SQLite's ``%!.15g`` does."""
    if math.isinf(real):
        return "Inf" if real > 0 else "-Inf"
    text = f"{real:.15g}"
    mantissa, sep, exponent = text.partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    return mantissa + sep + exponent


def _decode(raw: bytes | bytearray | memoryview) -> str:
    return bytes(raw).decode("utf-8", errors="replace")


def _to_int64(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _real_to_int(value)
    if isinstance(value, str):
        return _text_to_int(value)
    return _text_to_int(_decode(value))


def _to_double(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        return _text_to_real(value)
    return _text_to_real(_decode(value))


def _to_text(value: Any) -> str:
    # The C API hands back NULL for empty or NULL cells; both read as "".
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_real(value)
    return _decode(value)


def _to_blob(value: Any) -> Blob:
    if value is None:
        return Blob()
    if isinstance(value, bytes | bytearray | memoryview):
        return Blob(value)
    return Blob(_to_text(value).encode("utf-8"))
