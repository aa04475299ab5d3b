"""JSON value helpers: parsing, predicates and range-checked numeric extraction.

Parsed JSON is kept as plain Python values (None, bool, int, float, str,
list, dict). ``json`` already distinguishes exact integers (``4``) from
doubles (``4.0``); the helpers here add the coercion rule used by every
typed property reader:

- floating point targets accept any finite number within range
- integral targets accept a number only if it has no fractional part and
  fits the target's range; anything else is rejected (``None``)
"""

import json
import math
from enum import Enum
from typing import Any, Dict, List, Optional, Union

JsonScalar = Union[None, bool, int, float, str]
JsonValue = Union[JsonScalar, List[Any], Dict[str, Any]]

_FLOAT32_MAX = 3.4028234663852886e38
_FLOAT64_MAX = 1.7976931348623157e308
_UTF8_BOM = b"\xef\xbb\xbf"


class JsonParseError(ValueError):
    """Raised when a byte stream is not a well-formed JSON document."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)


class NumberKind(Enum):
    """Target numeric types: (label, integral, minimum, maximum)."""

    INT8 = ("int8", True, -(2**7), 2**7 - 1)
    UINT8 = ("uint8", True, 0, 2**8 - 1)
    INT16 = ("int16", True, -(2**15), 2**15 - 1)
    UINT16 = ("uint16", True, 0, 2**16 - 1)
    INT32 = ("int32", True, -(2**31), 2**31 - 1)
    UINT32 = ("uint32", True, 0, 2**32 - 1)
    INT64 = ("int64", True, -(2**63), 2**63 - 1)
    UINT64 = ("uint64", True, 0, 2**64 - 1)
    FLOAT32 = ("float32", False, -_FLOAT32_MAX, _FLOAT32_MAX)
    FLOAT64 = ("float64", False, -_FLOAT64_MAX, _FLOAT64_MAX)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def integral(self) -> bool:
        return self.value[1]

    @property
    def minimum(self) -> Union[int, float]:
        return self.value[2]

    @property
    def maximum(self) -> Union[int, float]:
        return self.value[3]


def _reject_constant(name: str) -> float:
    raise JsonParseError(f"Invalid numeric literal '{name}'")


def parse_json(data: Union[bytes, bytearray, memoryview]) -> JsonValue:
    """Parse UTF-8 JSON bytes into plain Python values.

    Object key order is preserved. ``NaN``/``Infinity`` literals are rejected.

    Args:
        data: Raw document bytes

    Returns:
        Parsed JSON value

    Raises:
        JsonParseError: On malformed UTF-8 or malformed JSON, with the byte
            offset of the problem when known
    """
    raw = bytes(data)
    skipped = 0
    if raw.startswith(_UTF8_BOM):
        raw = raw[len(_UTF8_BOM):]
        skipped = len(_UTF8_BOM)

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise JsonParseError(f"Invalid UTF-8: {e.reason}", offset=e.start + skipped)

    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        offset = len(text[:e.pos].encode("utf-8")) + skipped
        raise JsonParseError(f"Invalid JSON: {e.msg}", offset=offset)
    except RecursionError:
        raise JsonParseError("Invalid JSON: document is nested too deeply")


def is_null(value: Any) -> bool:
    return value is None


def is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_array(value: Any) -> bool:
    return isinstance(value, list)


def is_object(value: Any) -> bool:
    return isinstance(value, dict)


def type_name(value: Any) -> str:
    """Name of the JSON type of a value, for diagnostics."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def get_safe_number(value: Any, kind: NumberKind) -> Optional[Union[int, float]]:
    """Convert a JSON number to ``kind`` without lossy truncation.

    Args:
        value: JSON value
        kind: Target numeric type

    Returns:
        The converted number, or None if ``value`` is not a number, has a
        fractional part for an integral target, or is out of range
    """
    if not is_number(value):
        return None

    if kind.integral:
        if isinstance(value, float):
            if not math.isfinite(value) or not value.is_integer():
                return None
            value = int(value)
        if kind.minimum <= value <= kind.maximum:
            return value
        return None

    try:
        result = float(value)
    except OverflowError:
        return None
    if not math.isfinite(result) or not (kind.minimum <= result <= kind.maximum):
        return None
    return result


def get_safe_number_or_default(
    value: Any, kind: NumberKind, default: Union[int, float]
) -> Union[int, float]:
    result = get_safe_number(value, kind)
    return default if result is None else result


def get_value_for_key(value: Any, key: str) -> Optional[JsonValue]:
    """Look up ``key`` on a JSON object; None for missing keys or non-objects."""
    if not isinstance(value, dict):
        return None
    return value.get(key)


def get_string_or_default(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def get_bool_or_default(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default
