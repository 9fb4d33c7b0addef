"""Shared descriptor fixtures.

The registries here are built straight from the model dataclasses, so they
hold no google.protobuf well-known descriptors; well-known fields resolve
through the name tables only.
"""

import pytest

from protoc_transcoder.models import (
    EnumDescriptor,
    FieldDescriptor,
    FieldKind,
    MessageDescriptor,
    OneofGroup,
    Registry,
)


def scalar(name: str, number: int, type_name: str, **kwargs) -> FieldDescriptor:
    return FieldDescriptor(name=name, number=number, kind=FieldKind.SCALAR, type_name=type_name, **kwargs)


def message_ref(name: str, number: int, type_name: str, **kwargs) -> FieldDescriptor:
    return FieldDescriptor(name=name, number=number, kind=FieldKind.MESSAGE, type_name=type_name, **kwargs)


def enum_ref(name: str, number: int, type_name: str, **kwargs) -> FieldDescriptor:
    return FieldDescriptor(name=name, number=number, kind=FieldKind.ENUM, type_name=type_name, **kwargs)


def message(full_name: str, *fields: FieldDescriptor, oneofs=(), nested=(), enums=()) -> MessageDescriptor:
    return MessageDescriptor(
        name=full_name.rsplit(".", 1)[-1],
        full_name=full_name,
        fields=tuple(fields),
        oneofs=tuple(oneofs),
        nested_messages=tuple(nested),
        nested_enums=tuple(enums),
    )


STATUS = EnumDescriptor("Status", "demo.Status", (("ACTIVE", 1), ("INACTIVE", 0)))

ADDRESS = message(
    "demo.Address",
    scalar("street", 1, "string"),
    scalar("city", 2, "string"),
    scalar("zip_code", 3, "int32", json_name="zipCode"),
)

USER = message(
    "demo.User",
    scalar("id", 1, "int32"),
    scalar("name", 2, "string"),
    enum_ref("status", 3, "demo.Status"),
    scalar("avatar", 4, "bytes"),
    message_ref("address", 5, "demo.Address"),
    scalar("tags", 6, "string", is_repeated=True),
    scalar("labels", 7, "string", is_map=True, key_type="string"),
    scalar("email", 8, "string", oneof="contact"),
    scalar("phone", 9, "string", oneof="contact"),
    scalar("score", 10, "double"),
    scalar("active", 11, "bool"),
    message_ref("created_at", 12, "google.protobuf.Timestamp", json_name="createdAt"),
    message_ref("nickname", 13, "google.protobuf.StringValue"),
    enum_ref("history", 14, "demo.Status", is_repeated=True),
    message_ref("previous_addresses", 15, "demo.Address", is_repeated=True, json_name="previousAddresses"),
    enum_ref("by_region", 16, "demo.Status", is_map=True, key_type="string", json_name="byRegion"),
    oneofs=(OneofGroup("contact", ("email", "phone")),),
)

NODE = message(
    "demo.Node",
    scalar("value", 1, "int32"),
    message_ref("left", 2, "demo.Node"),
    message_ref("right", 3, "demo.Node"),
    message_ref("children", 4, "demo.Node", is_repeated=True),
)

PING = message("demo.Ping", message_ref("pong", 1, "demo.Pong"), scalar("seq", 2, "int32"))
PONG = message("demo.Pong", message_ref("ping", 1, "demo.Ping"))

LEVEL3 = message("demo.Level3", scalar("value", 1, "int32"))
LEVEL2 = message("demo.Level2", message_ref("level3", 1, "demo.Level3"))
LEVEL1 = message("demo.Level1", message_ref("level2", 1, "demo.Level2"), scalar("name", 2, "string"))
ROOT = message("demo.Root", message_ref("level1", 1, "demo.Level1"))


@pytest.fixture
def registry() -> Registry:
    return Registry.build(
        messages=[ADDRESS, USER, NODE, PING, PONG, LEVEL1, LEVEL2, LEVEL3, ROOT],
        enums=[STATUS],
    )


@pytest.fixture
def user(registry: Registry) -> MessageDescriptor:
    return registry.get_message("demo.User")
