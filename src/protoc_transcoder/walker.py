"""Traversal primitives shared by every transcoding pass.

A field's type is resolved through the registry into one of four closed
variants; callers dispatch on the variant instead of probing descriptor
attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Set, Tuple, Union

from protoc_transcoder.models import (
    EnumDescriptor,
    FieldDescriptor,
    FieldKind,
    MessageDescriptor,
    Registry,
)

# Proto scalar type -> JSON Schema type.
SCALAR_JSON_TYPES: Dict[str, str] = {
    "double": "number",
    "float": "number",
    "int32": "integer",
    "int64": "integer",
    "uint32": "integer",
    "uint64": "integer",
    "sint32": "integer",
    "sint64": "integer",
    "fixed32": "integer",
    "fixed64": "integer",
    "sfixed32": "integer",
    "sfixed64": "integer",
    "bool": "boolean",
    "string": "string",
    "bytes": "string",
}

FLOAT_TYPES = {"double", "float"}


@dataclass(frozen=True)
class ScalarRef:
    type_name: str


@dataclass(frozen=True)
class MessageRef:
    descriptor: MessageDescriptor


@dataclass(frozen=True)
class EnumRef:
    descriptor: EnumDescriptor


@dataclass(frozen=True)
class UnresolvedRef:
    """A message or enum reference the registry does not hold."""

    type_name: str
    kind: FieldKind


ResolvedType = Union[ScalarRef, MessageRef, EnumRef, UnresolvedRef]


def resolve_field(registry: Registry, field: FieldDescriptor) -> ResolvedType:
    """Resolve the (value) type of a field.

    For map fields this is the map value type; the key is always a scalar.
    """
    if field.kind is FieldKind.SCALAR:
        return ScalarRef(field.type_name)
    if field.kind is FieldKind.ENUM:
        enum = registry.find_enum(field.type_name)
        return EnumRef(enum) if enum is not None else UnresolvedRef(field.type_name, field.kind)
    msg = registry.find_message(field.type_name)
    return MessageRef(msg) if msg is not None else UnresolvedRef(field.type_name, field.kind)


def iter_fields(message: MessageDescriptor) -> Iterator[FieldDescriptor]:
    """Fields in declaration order."""
    return iter(message.fields)


def oneof_groups(message: MessageDescriptor) -> List[Tuple[str, List[FieldDescriptor]]]:
    """Oneof groups with their member fields, both in declaration order."""
    groups: List[Tuple[str, List[FieldDescriptor]]] = []
    for group in message.oneofs:
        members = [f for f in message.fields if f.name in group.fields]
        groups.append((group.name, members))
    return groups


def oneof_member_names(message: MessageDescriptor) -> Set[str]:
    names: Set[str] = set()
    for group in message.oneofs:
        names.update(group.fields)
    return names


def get_field_value(obj: Mapping[str, Any], field: FieldDescriptor) -> Tuple[bool, Any]:
    """Return (present, value) for a field, accepting its name or JSON name as key."""
    if field.name in obj:
        return True, obj[field.name]
    if field.json_name and field.json_name in obj:
        return True, obj[field.json_name]
    return False, None
