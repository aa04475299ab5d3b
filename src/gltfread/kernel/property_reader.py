"""Table-driven property readers for the typed glTF model.

The reader table is the set of pydantic fields on each ExtensibleObject
subclass: the JSON key is the field alias, the field annotation says how the
value is read. Reading never raises; problems are appended to a Diagnostics
accumulator threaded through every call:

- wrong JSON type, or a missing required property: error, field keeps its default
- number rejected by the coercion rule, or unknown enum value: warning,
  field keeps its default
- element of the wrong type inside an array/map: error, element omitted
- field annotation with no reader: error, field keeps its default
"""

import enum
import logging
import types
import typing
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic.fields import FieldInfo

from gltfread.json_value import NumberKind, get_safe_number, is_number, type_name
from gltfread.kernel.diagnostics import Diagnostics, ReadContext
from gltfread.kernel.extension_dispatch import ExtensionState
from gltfread.kernel.model import ExtensibleObject

logger = logging.getLogger(__name__)

ObjectT = TypeVar("ObjectT", bound=ExtensibleObject)

# Fields every ExtensibleObject carries that are not read from a same-named key
RESERVED_FIELDS = frozenset({"extensions", "extras", "unknown_properties"})

_INVALID = object()
_UNION_TYPES = (typing.Union, types.UnionType)


def join_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def is_runtime_field(field: FieldInfo) -> bool:
    extra = field.json_schema_extra
    return isinstance(extra, dict) and bool(extra.get("runtime"))


def json_properties(cls: Type[ExtensibleObject]) -> Dict[str, str]:
    """JSON key -> field name for every property read from JSON."""
    return {
        (field.alias or name): name
        for name, field in cls.model_fields.items()
        if name not in RESERVED_FIELDS and not is_runtime_field(field)
    }


def read_object(
    cls: Type[ObjectT],
    raw: Any,
    context: ReadContext,
    path: str = "",
) -> Optional[ObjectT]:
    """Read a JSON object into ``cls``.

    Args:
        cls: ExtensibleObject subclass to build
        raw: JSON value; anything but an object is an error
        context: Options and diagnostics of the current read
        path: JSON path of ``raw``, for diagnostics

    Returns:
        The typed object, or None when ``raw`` is not a JSON object
    """
    if not isinstance(raw, dict):
        context.diagnostics.error(
            f"{path or '<root>'}: expected an object for {cls.__name__}, got {type_name(raw)}"
        )
        return None

    properties = json_properties(cls)
    values: Dict[str, Any] = {}
    unknown: Dict[str, Any] = {}

    # Document order, so diagnostics come out in document order
    for key, value in raw.items():
        field_path = join_path(path, key)
        name = properties.get(key)
        if name is not None:
            field = cls.model_fields[name]
            result = _read_value(field.annotation, field.metadata, value, context, field_path)
            if result is not _INVALID:
                values[name] = result
        elif key == "extensions":
            values["extensions"] = read_extensions(cls, value, context, field_path)
        elif key == "extras":
            values["extras"] = value
        elif context.options.capture_unknown_properties:
            unknown[key] = value

    for key, name in properties.items():
        if key not in raw and name in cls.REQUIRED_PROPERTIES:
            context.diagnostics.error(f"{join_path(path, key)}: missing required property")

    values["unknown_properties"] = unknown
    return cls.model_construct(**values)


def read_extensions(
    parent_type: Type[ExtensibleObject],
    raw: Any,
    context: ReadContext,
    path: str,
) -> Dict[str, Any]:
    """Read an object's ``extensions`` value.

    Args:
        parent_type: Declared type of the object owning the extensions
        raw: The JSON value of the ``extensions`` key
        context: ReadContext of the current read
        path: JSON path of the ``extensions`` key, for diagnostics

    Returns:
        Extension name -> typed extension value or raw JSON value
    """
    if not isinstance(raw, dict):
        context.diagnostics.error(f"{path}: expected an object, got {type_name(raw)}")
        return {}

    result: Dict[str, Any] = {}
    for name, value in raw.items():
        state = context.options.resolve_extension_state(parent_type, name)
        if state is ExtensionState.DISABLED:
            continue

        handler = None
        if state is ExtensionState.TYPED:
            handler = context.options.registry.lookup(parent_type, name)
            if handler is None:
                logger.debug("No typed reader for %s on %s, capturing raw JSON", name, parent_type.__name__)

        if handler is None:
            result[name] = value
            continue

        diagnostics = Diagnostics()
        extension_path = f"{path}.{name}"
        if isinstance(handler, type):
            typed = read_object(handler, value, context.with_diagnostics(diagnostics), extension_path)
        else:
            typed = _call_extension_reader(handler, value, diagnostics, extension_path)
        context.diagnostics.merge(diagnostics, prefix=f"[{name}] ")
        # Raw JSON stays available when the typed reader produced nothing
        result[name] = typed if typed is not None else value
    return result


def _call_extension_reader(reader: Any, raw: Any, diagnostics: Diagnostics, path: str) -> Any:
    if not isinstance(raw, dict):
        diagnostics.error(f"{path}: expected an object, got {type_name(raw)}")
        return None
    try:
        value, errors, warnings = reader(raw)
    except Exception as e:
        diagnostics.error(f"{path}: extension reader failed: {e}")
        return None
    diagnostics.errors.extend(f"{path}: {m}" for m in errors)
    diagnostics.warnings.extend(f"{path}: {m}" for m in warnings)
    return value


def _number_kind(metadata: List[Any], default: NumberKind) -> NumberKind:
    for item in metadata:
        if isinstance(item, NumberKind):
            return item
    return default


def _read_value(annotation: Any, metadata: List[Any], raw: Any, context: ReadContext, path: str) -> Any:
    origin = typing.get_origin(annotation)

    if origin is typing.Annotated:
        inner, *extra = typing.get_args(annotation)
        return _read_value(inner, list(metadata) + extra, raw, context, path)

    if origin in _UNION_TYPES:
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if raw is None:
            return None
        if len(members) == 1:
            return _read_value(members[0], metadata, raw, context, path)
        # First member that reads without diagnostics wins
        for member in members:
            attempt = Diagnostics()
            value = _read_value(member, metadata, raw, context.with_diagnostics(attempt), path)
            if value is not _INVALID and not attempt:
                return value
        context.diagnostics.error(f"{path}: {type_name(raw)} matches none of {annotation!r}")
        return _INVALID

    if annotation is Any:
        return raw

    if origin is list:
        (item_type,) = typing.get_args(annotation)
        return _read_list(item_type, raw, context, path)

    if origin is dict:
        _, item_type = typing.get_args(annotation)
        return _read_map(item_type, raw, context, path)

    if isinstance(annotation, type):
        if issubclass(annotation, ExtensibleObject):
            result = read_object(annotation, raw, context, path)
            return _INVALID if result is None else result
        if issubclass(annotation, enum.IntEnum):
            return _read_int_enum(annotation, raw, context, path)
        if issubclass(annotation, enum.Enum):
            return _read_str_enum(annotation, raw, context, path)
        if annotation is bool:
            if isinstance(raw, bool):
                return raw
            context.diagnostics.error(f"{path}: expected a bool, got {type_name(raw)}")
            return _INVALID
        if annotation is str:
            if isinstance(raw, str):
                return raw
            context.diagnostics.error(f"{path}: expected a string, got {type_name(raw)}")
            return _INVALID
        if annotation is int:
            return _read_number(raw, _number_kind(metadata, NumberKind.INT64), context, path)
        if annotation is float:
            return _read_number(raw, _number_kind(metadata, NumberKind.FLOAT64), context, path)

    context.diagnostics.error(f"{path}: no property reader for {annotation!r}")
    return _INVALID


def _read_number(raw: Any, kind: NumberKind, context: ReadContext, path: str) -> Any:
    if not is_number(raw):
        context.diagnostics.error(f"{path}: expected a number, got {type_name(raw)}")
        return _INVALID
    value = get_safe_number(raw, kind)
    if value is None:
        context.diagnostics.warning(
            f"{path}: value {raw!r} has a fractional component or is out of range for {kind.label}"
        )
        return _INVALID
    return value


def _read_int_enum(enum_type: Type[enum.IntEnum], raw: Any, context: ReadContext, path: str) -> Any:
    value = _read_number(raw, NumberKind.INT32, context, path)
    if value is _INVALID:
        return _INVALID
    try:
        return enum_type(value)
    except ValueError:
        context.diagnostics.warning(f"{path}: {value} is not a valid {enum_type.__name__}")
        return _INVALID


def _read_str_enum(enum_type: Type[enum.Enum], raw: Any, context: ReadContext, path: str) -> Any:
    if not isinstance(raw, str):
        context.diagnostics.error(f"{path}: expected a string, got {type_name(raw)}")
        return _INVALID
    try:
        return enum_type(raw)
    except ValueError:
        context.diagnostics.warning(f"{path}: '{raw}' is not a valid {enum_type.__name__}")
        return _INVALID


def _read_list(item_type: Any, raw: Any, context: ReadContext, path: str) -> Any:
    if not isinstance(raw, list):
        context.diagnostics.error(f"{path}: expected an array, got {type_name(raw)}")
        return _INVALID
    items = []
    for index, element in enumerate(raw):
        value = _read_value(item_type, [], element, context, f"{path}[{index}]")
        if value is not _INVALID:
            items.append(value)
    return items


def _read_map(item_type: Any, raw: Any, context: ReadContext, path: str) -> Any:
    if not isinstance(raw, dict):
        context.diagnostics.error(f"{path}: expected an object, got {type_name(raw)}")
        return _INVALID
    items = {}
    for key, element in raw.items():
        value = _read_value(item_type, [], element, context, join_path(path, key))
        if value is not _INVALID:
            items[key] = value
    return items
