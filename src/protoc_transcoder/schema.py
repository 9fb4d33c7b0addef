"""Derive a JSON Schema from a message descriptor.

Recursion is guarded by the set of message names on the current expansion
path only: a type is expanded again in sibling branches, but re-entering a
type that is already being expanded yields a placeholder.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Set

from protoc_transcoder.models import FieldDescriptor, FieldKind, MessageDescriptor, Registry
from protoc_transcoder.walker import (
    SCALAR_JSON_TYPES,
    EnumRef,
    MessageRef,
    ScalarRef,
    UnresolvedRef,
    iter_fields,
    resolve_field,
)
from protoc_transcoder.well_known import SPECIAL_SCHEMAS, WRAPPER_SCALARS, well_known_name

logger = logging.getLogger(__name__)

JsonSchema = Dict[str, Any]


def derive_schema(registry: Registry, message: MessageDescriptor) -> JsonSchema:
    """Convert a message descriptor into a JSON Schema object."""
    return _message_schema(registry, message, set())


def _message_schema(
    registry: Registry,
    message: MessageDescriptor,
    expanding: Set[str],
) -> JsonSchema:
    if message.full_name in expanding:
        logger.debug("Recursive reference to %s, emitting placeholder", message.full_name)
        return {
            "type": "object",
            "description": f"Recursive reference: {message.full_name}",
        }

    expanding.add(message.full_name)
    try:
        properties: Dict[str, JsonSchema] = {}
        required: List[str] = []
        for f in iter_fields(message):
            properties[f.name] = _field_schema(registry, f, expanding)
            if f.is_required:
                required.append(f.name)
    finally:
        expanding.discard(message.full_name)

    schema: JsonSchema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _field_schema(
    registry: Registry,
    field: FieldDescriptor,
    expanding: Set[str],
) -> JsonSchema:
    if field.is_map:
        schema: JsonSchema = {
            "type": "object",
            "additionalProperties": _type_schema(registry, field, expanding),
            "description": f"Map<{field.key_type}, {field.type_name}>",
        }
    elif field.is_repeated:
        schema = {
            "type": "array",
            "items": _type_schema(registry, field, expanding),
            "description": f"Repeated field: {field.type_name}",
        }
    else:
        schema = _type_schema(registry, field, expanding)

    if field.oneof:
        note = f"Member of oneof '{field.oneof}': only one field of this group may be set."
        existing = schema.get("description")
        schema["description"] = f"{existing}. {note}" if existing else note
    return schema


def _type_schema(
    registry: Registry,
    field: FieldDescriptor,
    expanding: Set[str],
) -> JsonSchema:
    resolved = resolve_field(registry, field)

    if isinstance(resolved, ScalarRef):
        return _scalar_schema(resolved.type_name)

    if isinstance(resolved, EnumRef):
        enum = resolved.descriptor
        return {
            "anyOf": [
                {"type": "string", "enum": [name for name, _ in enum.values]},
                {"type": "integer", "enum": [number for _, number in enum.values]},
            ],
            "description": f"Enum: {enum.full_name}",
        }

    short = well_known_name(field.type_name)
    if short is not None:
        if short in WRAPPER_SCALARS:
            schema = _scalar_schema(WRAPPER_SCALARS[short])
            schema["description"] = f"Wrapper: google.protobuf.{short}"
            return schema
        if short in SPECIAL_SCHEMAS:
            schema = copy.deepcopy(SPECIAL_SCHEMAS[short])
            schema["description"] = f"Well-known type: google.protobuf.{short}"
            return schema

    if isinstance(resolved, MessageRef):
        return _message_schema(registry, resolved.descriptor, expanding)

    if isinstance(resolved, UnresolvedRef):
        logger.debug("Type %s is not in the registry", resolved.type_name)
        if resolved.kind is FieldKind.ENUM:
            return {
                "type": ["string", "integer"],
                "description": f"Enum: {resolved.type_name}",
            }
        return {"type": "object", "description": f"Message type: {resolved.type_name}"}

    raise TypeError(f"Unhandled resolved type {resolved!r}")


def _scalar_schema(type_name: str) -> JsonSchema:
    json_type = SCALAR_JSON_TYPES.get(type_name)
    if json_type is None:
        return {"description": f"Type: {type_name}"}
    return {"type": json_type, "description": f"Type: {type_name}"}
