"""Tables for the google.protobuf well-known types.

The JSON projection of these types differs from a plain message: wrappers
collapse to their scalar value, Timestamp and Duration keep seconds/nanos,
and Value accepts any JSON value.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from protoc_transcoder.config import WELL_KNOWN_PACKAGE

# Wrapper type -> the scalar type its `value` field carries.
WRAPPER_SCALARS: Dict[str, str] = {
    "DoubleValue": "double",
    "FloatValue": "float",
    "Int64Value": "int64",
    "UInt64Value": "uint64",
    "Int32Value": "int32",
    "UInt32Value": "uint32",
    "BoolValue": "bool",
    "StringValue": "string",
    "BytesValue": "bytes",
}

_SECONDS_NANOS_SCHEMA = {
    "type": "object",
    "properties": {
        "seconds": {"type": "integer"},
        "nanos": {"type": "integer"},
    },
}

# Non-wrapper well-known types with a fixed JSON schema.
SPECIAL_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "Timestamp": _SECONDS_NANOS_SCHEMA,
    "Duration": _SECONDS_NANOS_SCHEMA,
    "Empty": {"type": "object"},
    "Struct": {"type": "object"},
    "Value": {},
    "ListValue": {
        "type": "object",
        "properties": {"values": {"type": "array", "items": {}}},
    },
    "FieldMask": {
        "type": "object",
        "properties": {"paths": {"type": "array", "items": {"type": "string"}}},
    },
    "Any": {
        "type": "object",
        "properties": {
            "typeUrl": {"type": "string"},
            "value": {"type": "string"},
        },
    },
}


def well_known_name(type_name: str) -> Optional[str]:
    """Return the short name (e.g. "Timestamp") of a google.protobuf type, else None."""
    prefix = WELL_KNOWN_PACKAGE + "."
    name = type_name.lstrip(".")
    if name.startswith(prefix):
        return name[len(prefix):]
    return None


def wrapper_scalar(type_name: str) -> Optional[str]:
    short = well_known_name(type_name)
    if short is None:
        return None
    return WRAPPER_SCALARS.get(short)


def special_default(short_name: str) -> Any:
    """Default JSON value for a non-wrapper well-known type (fresh object per call)."""
    if short_name in ("Timestamp", "Duration"):
        return {"seconds": 0, "nanos": 0}
    if short_name == "Value":
        return None
    if short_name == "ListValue":
        return {"values": []}
    if short_name == "FieldMask":
        return {"paths": []}
    if short_name == "Any":
        return {"typeUrl": "", "value": ""}
    return {}
