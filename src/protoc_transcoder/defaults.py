"""Generate a default-valued JSON skeleton for a message type."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from protoc_transcoder.config import DEFAULT_MAX_DEPTH
from protoc_transcoder.models import FieldDescriptor, FieldKind, MessageDescriptor, Registry
from protoc_transcoder.walker import (
    EnumRef,
    MessageRef,
    ScalarRef,
    UnresolvedRef,
    iter_fields,
    oneof_groups,
    oneof_member_names,
    resolve_field,
)
from protoc_transcoder.well_known import WRAPPER_SCALARS, special_default, well_known_name

logger = logging.getLogger(__name__)

SCALAR_DEFAULTS: Dict[str, Any] = {
    "double": 0,
    "float": 0,
    "int32": 0,
    "int64": 0,
    "uint32": 0,
    "uint64": 0,
    "sint32": 0,
    "sint64": 0,
    "fixed32": 0,
    "fixed64": 0,
    "sfixed32": 0,
    "sfixed64": 0,
    "bool": False,
    "string": "",
    "bytes": "",
}


def generate_default_message(
    registry: Registry,
    message: MessageDescriptor,
    max_depth: int = DEFAULT_MAX_DEPTH,
    current_depth: int = 0,
) -> Dict[str, Any]:
    """Build a JSON object holding the zero value of every field.

    Only the first member of each oneof group is populated, and nested
    messages are expanded while ``current_depth + 1 < max_depth``; past that
    bound they become ``{}``.
    """
    result: Dict[str, Any] = {}
    if current_depth >= max_depth:
        return result

    members = oneof_member_names(message)
    first_members = {
        fields[0].name for _, fields in oneof_groups(message) if fields
    }

    for f in iter_fields(message):
        if f.name in members and f.name not in first_members:
            continue
        result[f.name] = _default_field_value(registry, f, max_depth, current_depth)

    return result


def generate_default_message_json(
    registry: Registry,
    message: MessageDescriptor,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> str:
    """Default message rendered as two-space indented JSON."""
    return json.dumps(generate_default_message(registry, message, max_depth), indent=2)


def _default_field_value(
    registry: Registry,
    field: FieldDescriptor,
    max_depth: int,
    current_depth: int,
) -> Any:
    if field.is_repeated:
        return []
    if field.is_map:
        return {}

    resolved = resolve_field(registry, field)

    if isinstance(resolved, ScalarRef):
        return SCALAR_DEFAULTS.get(resolved.type_name, {})

    if isinstance(resolved, EnumRef):
        first = resolved.descriptor.first_value
        return first if first is not None else 0

    short = well_known_name(field.type_name)
    if short is not None:
        if short in WRAPPER_SCALARS:
            return SCALAR_DEFAULTS[WRAPPER_SCALARS[short]]
        return special_default(short)

    if isinstance(resolved, MessageRef):
        if current_depth + 1 >= max_depth:
            logger.debug(
                "Depth bound %d reached at field %s, emitting {}", max_depth, field.name
            )
            return {}
        return generate_default_message(
            registry, resolved.descriptor, max_depth, current_depth + 1
        )

    if isinstance(resolved, UnresolvedRef):
        if resolved.kind is FieldKind.ENUM:
            return 0
        logger.debug("Type %s is not in the registry, emitting {}", resolved.type_name)
        return {}

    raise TypeError(f"Unhandled resolved type {resolved!r}")
