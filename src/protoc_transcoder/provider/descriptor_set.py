"""Build a Registry from protoc descriptor output (``descriptor_pb2``)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from google.protobuf import (
    any_pb2,
    descriptor_pb2 as d2,
    duration_pb2,
    empty_pb2,
    field_mask_pb2,
    struct_pb2,
    timestamp_pb2,
    wrappers_pb2,
)
from google.protobuf.message import DecodeError

from protoc_transcoder.models import (
    EnumDescriptor,
    FieldDescriptor,
    FieldKind,
    MessageDescriptor,
    OneofGroup,
    Registry,
    qualify,
)

logger = logging.getLogger(__name__)

_WELL_KNOWN_MODULES = (
    any_pb2,
    duration_pb2,
    empty_pb2,
    field_mask_pb2,
    struct_pb2,
    timestamp_pb2,
    wrappers_pb2,
)

SCALAR_NAMES: Dict[int, str] = {
    d2.FieldDescriptorProto.TYPE_DOUBLE: "double",
    d2.FieldDescriptorProto.TYPE_FLOAT: "float",
    d2.FieldDescriptorProto.TYPE_INT64: "int64",
    d2.FieldDescriptorProto.TYPE_UINT64: "uint64",
    d2.FieldDescriptorProto.TYPE_INT32: "int32",
    d2.FieldDescriptorProto.TYPE_FIXED64: "fixed64",
    d2.FieldDescriptorProto.TYPE_FIXED32: "fixed32",
    d2.FieldDescriptorProto.TYPE_BOOL: "bool",
    d2.FieldDescriptorProto.TYPE_STRING: "string",
    d2.FieldDescriptorProto.TYPE_BYTES: "bytes",
    d2.FieldDescriptorProto.TYPE_UINT32: "uint32",
    d2.FieldDescriptorProto.TYPE_SFIXED32: "sfixed32",
    d2.FieldDescriptorProto.TYPE_SFIXED64: "sfixed64",
    d2.FieldDescriptorProto.TYPE_SINT32: "sint32",
    d2.FieldDescriptorProto.TYPE_SINT64: "sint64",
}


class DescriptorProviderError(Exception):
    """Raised when descriptors cannot be loaded or compiled."""


def well_known_file_protos() -> List[d2.FileDescriptorProto]:
    """FileDescriptorProtos for the bundled google.protobuf well-known types."""
    protos: List[d2.FileDescriptorProto] = []
    for module in _WELL_KNOWN_MODULES:
        file_proto = d2.FileDescriptorProto()
        module.DESCRIPTOR.CopyToProto(file_proto)
        protos.append(file_proto)
    return protos


def with_well_known(file_protos: Iterable[d2.FileDescriptorProto]) -> List[d2.FileDescriptorProto]:
    """Append the bundled well-known files that ``file_protos`` does not already carry."""
    all_files = list(file_protos)
    loaded = {f.name for f in all_files}
    all_files.extend(p for p in well_known_file_protos() if p.name not in loaded)
    return all_files


def load_descriptor_set(path: str) -> d2.FileDescriptorSet:
    """Read a binary FileDescriptorSet (``protoc --descriptor_set_out``)."""
    fds = d2.FileDescriptorSet()
    try:
        fds.ParseFromString(Path(path).read_bytes())
    except OSError as e:
        raise DescriptorProviderError(f"Cannot read descriptor set '{path}': {e}") from e
    except DecodeError as e:
        raise DescriptorProviderError(f"'{path}' is not a FileDescriptorSet: {e}") from e
    return fds


def registry_from_descriptor_set(
    fds: d2.FileDescriptorSet,
    include_well_known: bool = True,
) -> Registry:
    return registry_from_file_protos(fds.file, include_well_known=include_well_known)


def registry_from_file_protos(
    file_protos: Iterable[d2.FileDescriptorProto],
    include_well_known: bool = True,
) -> Registry:
    """Convert FileDescriptorProtos into an immutable Registry.

    Map entry types are folded into their map fields, and proto3
    ``optional`` synthetic oneofs are not reported as oneof groups.
    """
    all_files = with_well_known(file_protos) if include_well_known else list(file_protos)

    messages: List[MessageDescriptor] = []
    enums: List[EnumDescriptor] = []
    for file_proto in all_files:
        prefix = file_proto.package
        for enum_proto in file_proto.enum_type:
            enums.append(_build_enum(enum_proto, prefix))
        for msg_proto in file_proto.message_type:
            messages.append(_build_message(msg_proto, prefix))

    registry = Registry.build(messages=messages, enums=enums)
    logger.debug(
        "Loaded %d message(s) and %d enum(s) from %d file(s)",
        len(registry.messages), len(registry.enums), len(all_files),
    )
    return registry


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _build_enum(enum_proto: d2.EnumDescriptorProto, prefix: str) -> EnumDescriptor:
    return EnumDescriptor(
        name=enum_proto.name,
        full_name=_join(prefix, enum_proto.name),
        values=tuple((v.name, v.number) for v in enum_proto.value),
    )


def _build_message(msg_proto: d2.DescriptorProto, prefix: str) -> MessageDescriptor:
    full_name = _join(prefix, msg_proto.name)

    map_entries: Dict[str, d2.DescriptorProto] = {}
    nested: List[MessageDescriptor] = []
    for nested_proto in msg_proto.nested_type:
        if nested_proto.options.map_entry:
            map_entries[_join(full_name, nested_proto.name)] = nested_proto
            continue
        nested.append(_build_message(nested_proto, full_name))

    real_oneofs = _real_oneof_names(msg_proto)

    fields: List[FieldDescriptor] = []
    members: Dict[int, List[str]] = {}
    for field_proto in msg_proto.field:
        oneof_name: Optional[str] = None
        if field_proto.HasField("oneof_index") and field_proto.oneof_index in real_oneofs:
            oneof_name = real_oneofs[field_proto.oneof_index]
            members.setdefault(field_proto.oneof_index, []).append(field_proto.name)
        fields.append(_build_field(field_proto, map_entries, oneof_name))

    oneofs = tuple(
        OneofGroup(name=name, fields=tuple(members.get(index, ())))
        for index, name in real_oneofs.items()
    )

    return MessageDescriptor(
        name=msg_proto.name,
        full_name=full_name,
        fields=tuple(fields),
        oneofs=oneofs,
        nested_messages=tuple(nested),
        nested_enums=tuple(_build_enum(e, full_name) for e in msg_proto.enum_type),
    )


def _real_oneof_names(msg_proto: d2.DescriptorProto) -> Dict[int, str]:
    synthetic = {
        f.oneof_index
        for f in msg_proto.field
        if f.HasField("oneof_index") and f.proto3_optional
    }
    return {
        index: decl.name
        for index, decl in enumerate(msg_proto.oneof_decl)
        if index not in synthetic
    }


def _build_field(
    field_proto: d2.FieldDescriptorProto,
    map_entries: Dict[str, d2.DescriptorProto],
    oneof_name: Optional[str],
) -> FieldDescriptor:
    is_repeated = field_proto.label == d2.FieldDescriptorProto.LABEL_REPEATED
    kind, type_name = _kind_and_type(field_proto)

    entry = map_entries.get(type_name) if is_repeated else None
    if entry is not None:
        key_proto, value_proto = _map_entry_fields(entry)
        value_kind, value_type = _kind_and_type(value_proto)
        return FieldDescriptor(
            name=field_proto.name,
            number=field_proto.number,
            kind=value_kind,
            type_name=value_type,
            json_name=field_proto.json_name or to_json_name(field_proto.name),
            is_map=True,
            key_type=SCALAR_NAMES.get(key_proto.type, "string"),
        )

    return FieldDescriptor(
        name=field_proto.name,
        number=field_proto.number,
        kind=kind,
        type_name=type_name,
        json_name=field_proto.json_name or to_json_name(field_proto.name),
        is_repeated=is_repeated,
        is_required=field_proto.label == d2.FieldDescriptorProto.LABEL_REQUIRED,
        is_optional=field_proto.proto3_optional,
        oneof=oneof_name,
    )


def _kind_and_type(field_proto: d2.FieldDescriptorProto) -> Tuple[FieldKind, str]:
    if field_proto.type == d2.FieldDescriptorProto.TYPE_ENUM:
        return FieldKind.ENUM, qualify(field_proto.type_name)
    if field_proto.type in (
        d2.FieldDescriptorProto.TYPE_MESSAGE,
        d2.FieldDescriptorProto.TYPE_GROUP,
    ):
        return FieldKind.MESSAGE, qualify(field_proto.type_name)
    return FieldKind.SCALAR, SCALAR_NAMES.get(field_proto.type, "string")


def _map_entry_fields(
    entry: d2.DescriptorProto,
) -> Tuple[d2.FieldDescriptorProto, d2.FieldDescriptorProto]:
    by_number = {f.number: f for f in entry.field}
    return by_number[1], by_number[2]


def to_json_name(name: str) -> str:
    """protoc's default JSON name: drop underscores, capitalise the next letter."""
    parts = name.split("_")
    return parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:])
