"""Validate, decode and encode JSON values with the protobuf runtime.

The descriptor set is loaded into a fresh ``DescriptorPool``; message
classes come from ``message_factory`` and the JSON mapping from
``json_format``. The wire format itself is entirely the runtime's.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Iterable, Mapping, Type

from google.protobuf import descriptor_pb2 as d2
from google.protobuf import json_format, message_factory
from google.protobuf.descriptor import FieldDescriptor as ProtoField
from google.protobuf.message import Message

from protoc_transcoder.models import UnknownTypeError, qualify
from protoc_transcoder.provider.descriptor_set import DescriptorProviderError, with_well_known

logger = logging.getLogger(__name__)

ENCODE_FORMATS = ("base64", "hex")


class MessageValidationError(Exception):
    """Raised when a JSON value does not fit its message type."""


def message_classes(file_protos: Iterable[d2.FileDescriptorProto]) -> Dict[str, Type[Message]]:
    """Build message classes for every message in ``file_protos``, keyed by full name."""
    try:
        return message_factory.GetMessages(with_well_known(file_protos))
    except (TypeError, KeyError) as e:
        raise DescriptorProviderError(f"Cannot build message classes: {e}") from e


def message_class(fds: d2.FileDescriptorSet, full_name: str) -> Type[Message]:
    classes = message_classes(fds.file)
    try:
        return classes[qualify(full_name)]
    except KeyError:
        raise UnknownTypeError(f"Unknown message type '{full_name}'") from None


def parse_value(cls: Type[Message], value: Any) -> Message:
    """Validate a protobuf-JSON value by parsing it into a message."""
    if not isinstance(value, Mapping):
        raise MessageValidationError(
            f"Expected a JSON object for {cls.DESCRIPTOR.full_name}, got {type(value).__name__}"
        )
    try:
        return json_format.ParseDict(value, cls())
    except json_format.ParseError as e:
        raise MessageValidationError(str(e)) from e


def decoded_value(msg: Message) -> Dict[str, Any]:
    """Project a decoded message onto plain Python values.

    Keys are declared field names, bytes fields hold ``bytes``, enums hold
    numbers and well-known types keep their message structure. Only fields
    the message reports as set are included.
    """
    result: Dict[str, Any] = {}
    for field, value in msg.ListFields():
        result[field.name] = _decoded_field(field, value)
    return result


def _decoded_field(field: ProtoField, value: Any) -> Any:
    if _is_map(field):
        value_field = field.message_type.fields_by_name["value"]
        return {key: _decoded_single(value_field, item) for key, item in value.items()}
    if field.label == ProtoField.LABEL_REPEATED:
        return [_decoded_single(field, item) for item in value]
    return _decoded_single(field, value)


def _decoded_single(field: ProtoField, value: Any) -> Any:
    if field.type in (ProtoField.TYPE_MESSAGE, ProtoField.TYPE_GROUP):
        return decoded_value(value)
    return value


def _is_map(field: ProtoField) -> bool:
    return (
        field.type == ProtoField.TYPE_MESSAGE
        and field.message_type.GetOptions().map_entry
    )


def encode_message(msg: Message, fmt: str = "base64") -> str:
    """Serialize to the wire format and render the bytes as base64 or hex."""
    data = msg.SerializeToString()
    logger.debug("Encoded %s into %d byte(s)", msg.DESCRIPTOR.full_name, len(data))
    if fmt == "base64":
        return base64.b64encode(data).decode("ascii")
    if fmt == "hex":
        return data.hex()
    raise ValueError(f"Unknown encoding format '{fmt}'")
