from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple


class UnknownTypeError(KeyError):
    """Raised when a type name is not present in the registry."""


class FieldKind(Enum):
    SCALAR = auto()
    MESSAGE = auto()
    ENUM = auto()


def qualify(name: str) -> str:
    """Strip the leading dot protoc puts on fully-qualified type names."""
    return name.lstrip(".")


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    number: int
    kind: FieldKind
    type_name: str
    json_name: str = ""
    is_repeated: bool = False
    is_map: bool = False
    key_type: Optional[str] = None
    is_required: bool = False
    is_optional: bool = False
    oneof: Optional[str] = None

    @property
    def is_scalar(self) -> bool:
        return self.kind is FieldKind.SCALAR


@dataclass(frozen=True)
class OneofGroup:
    name: str
    fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EnumDescriptor:
    name: str
    full_name: str
    values: Tuple[Tuple[str, int], ...] = ()

    def number_of(self, symbol: str) -> Optional[int]:
        for name, number in self.values:
            if name == symbol:
                return number
        return None

    def name_of(self, number: int) -> Optional[str]:
        for name, value in self.values:
            if value == number:
                return name
        return None

    @property
    def first_value(self) -> Optional[int]:
        return self.values[0][1] if self.values else None


@dataclass(frozen=True)
class MessageDescriptor:
    name: str
    full_name: str
    fields: Tuple[FieldDescriptor, ...] = ()
    oneofs: Tuple[OneofGroup, ...] = ()
    nested_messages: Tuple[MessageDescriptor, ...] = ()
    nested_enums: Tuple[EnumDescriptor, ...] = ()

    def get_field(self, key: str) -> Optional[FieldDescriptor]:
        """Look a field up by its declared name, falling back to its JSON name."""
        for f in self.fields:
            if f.name == key:
                return f
        for f in self.fields:
            if f.json_name and f.json_name == key:
                return f
        return None


@dataclass(frozen=True)
class Registry:
    """Immutable lookup of every message and enum loaded for a session."""

    messages: Mapping[str, MessageDescriptor] = field(default_factory=dict)
    enums: Mapping[str, EnumDescriptor] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        messages: Iterable[MessageDescriptor] = (),
        enums: Iterable[EnumDescriptor] = (),
    ) -> Registry:
        """Index top-level descriptors and everything nested inside them."""
        message_index: Dict[str, MessageDescriptor] = {}
        enum_index: Dict[str, EnumDescriptor] = {}

        for enum in enums:
            enum_index[enum.full_name] = enum
        for msg in messages:
            for nested in _walk_messages(msg):
                message_index[nested.full_name] = nested
                for enum in nested.nested_enums:
                    enum_index[enum.full_name] = enum

        return cls(
            messages=MappingProxyType(message_index),
            enums=MappingProxyType(enum_index),
        )

    def get_message(self, name: str) -> MessageDescriptor:
        try:
            return self.messages[qualify(name)]
        except KeyError:
            raise UnknownTypeError(f"Unknown message type '{name}'") from None

    def get_enum(self, name: str) -> EnumDescriptor:
        try:
            return self.enums[qualify(name)]
        except KeyError:
            raise UnknownTypeError(f"Unknown enum type '{name}'") from None

    def find_message(self, name: str) -> Optional[MessageDescriptor]:
        return self.messages.get(qualify(name))

    def find_enum(self, name: str) -> Optional[EnumDescriptor]:
        return self.enums.get(qualify(name))

    def message_names(self) -> Tuple[str, ...]:
        return tuple(self.messages)


def _walk_messages(msg: MessageDescriptor) -> Iterator[MessageDescriptor]:
    yield msg
    for nested in msg.nested_messages:
        yield from _walk_messages(nested)
