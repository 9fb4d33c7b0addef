"""Serialize a decoded message into protobuf text format.

Fields are written in declaration order. Singular scalars holding their zero
value are omitted, message fields are always written once present, and
repeated fields write one entry per element. Map fields write one
``name { key: ... value: ... }`` entry per map entry, sorted by key.

Strings are escaped per UTF-8 byte: anything outside printable ASCII is
written as ``\\xHH`` for each byte of its UTF-8 encoding, so a multi-byte
character is never split into unrelated code units.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Mapping

from protoc_transcoder.config import INDENT
from protoc_transcoder.models import FieldDescriptor, FieldKind, MessageDescriptor, Registry
from protoc_transcoder.walker import (
    FLOAT_TYPES,
    EnumRef,
    MessageRef,
    ResolvedType,
    ScalarRef,
    UnresolvedRef,
    get_field_value,
    iter_fields,
    resolve_field,
)
from protoc_transcoder.well_known import wrapper_scalar

logger = logging.getLogger(__name__)

_SIMPLE_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_INTEGRAL_TYPES = {
    "int32", "sint32", "sfixed32", "uint32", "fixed32",
    "int64", "sint64", "sfixed64", "uint64", "fixed64",
}


def message_to_text(
    registry: Registry,
    message: MessageDescriptor,
    value: Any,
    indent_level: int = 0,
) -> str:
    """Render ``value`` (a decoded message as a mapping) in text format."""
    return "\n".join(_message_lines(registry, message, value, indent_level))


def escape_string(text: str) -> str:
    """Quote and escape a string for text format."""
    out: List[str] = []
    for ch in text:
        if ch in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[ch])
        elif 32 <= ord(ch) <= 126:
            out.append(ch)
        else:
            for byte in ch.encode("utf-8", errors="surrogatepass"):
                out.append(f"\\x{byte:02x}")
    return '"' + "".join(out) + '"'


def _message_lines(
    registry: Registry,
    message: MessageDescriptor,
    value: Any,
    level: int,
) -> List[str]:
    if not isinstance(value, Mapping):
        logger.debug("Expected a mapping for %s, got %s", message.full_name, type(value).__name__)
        return []

    lines: List[str] = []
    for f in iter_fields(message):
        present, item = get_field_value(value, f)
        if not present or item is None:
            continue
        resolved = resolve_field(registry, f)

        if f.is_map:
            if isinstance(item, Mapping):
                for key in _sorted_map_keys(item, f.key_type or "string"):
                    lines.extend(_map_entry_lines(registry, f, resolved, key, item[key], level))
            continue

        if f.is_repeated:
            elements = item if isinstance(item, (list, tuple)) else [item]
            for element in elements:
                lines.extend(_value_lines(registry, f, resolved, f.name, element, level))
            continue

        if _is_zero_value(f, resolved, item):
            continue
        lines.extend(_value_lines(registry, f, resolved, f.name, item, level))
    return lines


def _value_lines(
    registry: Registry,
    field: FieldDescriptor,
    resolved: ResolvedType,
    label: str,
    value: Any,
    level: int,
) -> List[str]:
    indent = INDENT * level

    if isinstance(resolved, ScalarRef):
        return [f"{indent}{label}: {_format_scalar(resolved.type_name, value)}"]

    if isinstance(resolved, EnumRef):
        return [f"{indent}{label}: {_enum_name(resolved, value)}"]

    if field.kind is FieldKind.ENUM:
        return [f"{indent}{label}: {value}"]

    wrapped = wrapper_scalar(field.type_name)
    if wrapped is not None and not isinstance(value, Mapping):
        if _is_scalar_zero(wrapped, value):
            return [f"{indent}{label} {{}}"]
        inner = INDENT * (level + 1)
        return [
            f"{indent}{label} {{",
            f"{inner}value: {_format_scalar(wrapped, value)}",
            f"{indent}}}",
        ]

    if isinstance(value, Mapping):
        if isinstance(resolved, MessageRef):
            body = _message_lines(registry, resolved.descriptor, value, level + 1)
        else:
            body = _generic_lines(value, level + 1)
        return _block(indent, label, body)

    logger.debug("Non-mapping value for message field %s", field.name)
    return [f"{indent}{label}: {_format_inferred(value)}"]


def _map_entry_lines(
    registry: Registry,
    field: FieldDescriptor,
    resolved: ResolvedType,
    key: Any,
    value: Any,
    level: int,
) -> List[str]:
    indent = INDENT * level
    inner = INDENT * (level + 1)
    body = [f"{inner}key: {_format_scalar(field.key_type or 'string', key)}"]
    if value is not None:
        body.extend(_value_lines(registry, field, resolved, "value", value, level + 1))
    return _block(indent, field.name, body)


def _generic_lines(value: Mapping[str, Any], level: int) -> List[str]:
    """Shape-driven rendering for messages whose descriptor is unavailable."""
    indent = INDENT * level
    lines: List[str] = []
    for key, item in value.items():
        if item is None:
            continue
        elements = item if isinstance(item, list) else [item]
        for element in elements:
            if isinstance(element, Mapping):
                lines.extend(_block(indent, key, _generic_lines(element, level + 1)))
            else:
                lines.append(f"{indent}{key}: {_format_inferred(element)}")
    return lines


def _block(indent: str, label: str, body: List[str]) -> List[str]:
    if not body:
        return [f"{indent}{label} {{}}"]
    return [f"{indent}{label} {{", *body, f"{indent}}}"]


# -- zero values --


def _is_zero_value(field: FieldDescriptor, resolved: ResolvedType, value: Any) -> bool:
    if isinstance(resolved, ScalarRef):
        return _is_scalar_zero(resolved.type_name, value)
    if isinstance(resolved, EnumRef):
        enum = resolved.descriptor
        number = enum.number_of(value) if isinstance(value, str) else value
        if isinstance(number, bool) or not isinstance(number, int):
            return False
        return number == 0 or number == enum.first_value
    if isinstance(resolved, UnresolvedRef) and resolved.kind is FieldKind.ENUM:
        return value == 0 and not isinstance(value, bool)
    return False


def _is_scalar_zero(type_name: str, value: Any) -> bool:
    if type_name == "bool":
        return value is False
    if type_name in ("string", "bytes"):
        return value in ("", b"")
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0
    return value == "0"


# -- value formatting --


def _enum_name(resolved: EnumRef, value: Any) -> str:
    if isinstance(value, str):
        return value
    name = resolved.descriptor.name_of(value)
    return name if name is not None else str(value)


def _format_scalar(type_name: str, value: Any) -> str:
    if type_name == "bool":
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value).lower()
    if type_name in ("string", "bytes"):
        if isinstance(value, (bytes, bytearray)):
            return escape_string(bytes(value).decode("utf-8", errors="replace"))
        return escape_string(str(value))
    if type_name in FLOAT_TYPES:
        return _format_float(value)
    if type_name in _INTEGRAL_TYPES:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
    return str(value)


def _format_float(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return repr(value)


def _format_inferred(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, bytes, bytearray)):
        return _format_scalar("string", value)
    if isinstance(value, float):
        return _format_float(value)
    return str(value)


def _sorted_map_keys(entries: Mapping[Any, Any], key_type: str) -> List[Any]:
    keys: Iterable[Any] = entries.keys()
    if key_type in _INTEGRAL_TYPES:
        try:
            return sorted(keys, key=lambda k: int(k))
        except (TypeError, ValueError):
            pass
    return sorted(keys, key=str)
