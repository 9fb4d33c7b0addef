"""Normalize loosely-typed JSON into values a strict protobuf encoder accepts.

Two passes share one traversal: the enum pass turns symbolic enum names into
numbers and the bytes pass turns plain text on bytes fields into base64.
Neither pass mutates its input and both are idempotent.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Callable, Dict, Mapping

from protoc_transcoder.models import FieldDescriptor, MessageDescriptor, Registry
from protoc_transcoder.walker import EnumRef, MessageRef, ResolvedType, resolve_field
from protoc_transcoder.well_known import wrapper_scalar

logger = logging.getLogger(__name__)

_BASE64_PATTERN = re.compile(r"[A-Za-z0-9+/]*={0,2}")

LeafTransform = Callable[[FieldDescriptor, ResolvedType, Any], Any]


def is_valid_base64(text: str) -> bool:
    """Check whether a string already looks like padded base64.

    An empty string is valid. Otherwise only the base64 alphabet followed by
    at most two ``=`` is allowed, and the total length must be a multiple of 4.
    """
    if text == "":
        return True
    if _BASE64_PATTERN.fullmatch(text) is None:
        return False
    return len(text) % 4 == 0


def utf8_to_base64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def normalize_enum_values(registry: Registry, message: MessageDescriptor, value: Any) -> Any:
    """Replace enum symbol names with their numbers; unknown names are left as-is."""
    return _walk_value(registry, message, value, _enum_leaf)


def normalize_bytes_fields(registry: Registry, message: MessageDescriptor, value: Any) -> Any:
    """Base64-encode plain-text strings held by bytes fields."""
    return _walk_value(registry, message, value, _bytes_leaf)


def normalize_message(registry: Registry, message: MessageDescriptor, value: Any) -> Any:
    """Apply the enum pass, then the bytes pass."""
    value = normalize_enum_values(registry, message, value)
    return normalize_bytes_fields(registry, message, value)


def _enum_leaf(field: FieldDescriptor, resolved: ResolvedType, value: Any) -> Any:
    if not isinstance(resolved, EnumRef) or not isinstance(value, str):
        return value
    number = resolved.descriptor.number_of(value)
    if number is None:
        logger.debug("Unknown symbol %r for enum %s", value, resolved.descriptor.full_name)
        return value
    return number


def _bytes_leaf(field: FieldDescriptor, resolved: ResolvedType, value: Any) -> Any:
    if not _carries_bytes(field) or not isinstance(value, str) or value == "":
        return value
    if is_valid_base64(value):
        return value
    logger.debug("Encoding plain text in bytes field %s as base64", field.name)
    return utf8_to_base64(value)


def _carries_bytes(field: FieldDescriptor) -> bool:
    if field.is_scalar:
        return field.type_name == "bytes"
    return wrapper_scalar(field.type_name) == "bytes"


def _walk_value(
    registry: Registry,
    message: MessageDescriptor,
    value: Any,
    transform: LeafTransform,
) -> Any:
    if isinstance(value, list):
        return [
            _walk_value(registry, message, item, transform) if isinstance(item, Mapping) else item
            for item in value
        ]
    if not isinstance(value, Mapping):
        return value

    result: Dict[str, Any] = {}
    for key, item in value.items():
        field = message.get_field(key)
        if field is None:
            result[key] = item
            continue
        result[key] = _walk_field(registry, field, item, transform)
    return result


def _walk_field(
    registry: Registry,
    field: FieldDescriptor,
    value: Any,
    transform: LeafTransform,
) -> Any:
    resolved = resolve_field(registry, field)
    if field.is_map and isinstance(value, Mapping):
        return {
            key: _walk_single(registry, field, resolved, item, transform)
            for key, item in value.items()
        }
    if field.is_repeated and isinstance(value, list):
        return [_walk_single(registry, field, resolved, item, transform) for item in value]
    return _walk_single(registry, field, resolved, value, transform)


def _walk_single(
    registry: Registry,
    field: FieldDescriptor,
    resolved: ResolvedType,
    value: Any,
    transform: LeafTransform,
) -> Any:
    if isinstance(resolved, MessageRef):
        if isinstance(value, Mapping):
            return _walk_value(registry, resolved.descriptor, value, transform)
        if wrapper_scalar(field.type_name) is None:
            return value
    return transform(field, resolved, value)
