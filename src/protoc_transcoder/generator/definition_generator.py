from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from protoc_transcoder.config import INDENT
from protoc_transcoder.models import FieldDescriptor, MessageDescriptor, Registry
from protoc_transcoder.walker import oneof_groups, oneof_member_names


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def relative_type_name(type_name: str, scope: str, registry: Optional[Registry] = None) -> str:
    """Shortest spelling of ``type_name`` that resolves from inside ``scope``.

    pkg.Outer.Inner seen from pkg.Outer -> Inner; pkg.Other -> Other. With a
    registry, spellings shadowed by a closer type are skipped; when every
    shorter spelling is shadowed the name is written fully qualified with a
    leading dot.
    """
    parts = scope.split(".") if scope else []
    while parts:
        prefix = ".".join(parts) + "."
        if type_name.startswith(prefix):
            candidate = type_name[len(prefix):]
            if registry is None or _resolves_to(registry, candidate, scope, type_name):
                return candidate
        parts.pop()
    if registry is not None and not _resolves_to(registry, type_name, scope, type_name):
        return "." + type_name
    return type_name


def _resolves_to(registry: Registry, candidate: str, scope: str, type_name: str) -> bool:
    # protoc binds the first component in the innermost scope that declares it.
    head = candidate.split(".", 1)[0]
    parts = scope.split(".") if scope else []
    while parts:
        bound = ".".join(parts + [head])
        if registry.find_message(bound) is not None or registry.find_enum(bound) is not None:
            return ".".join(parts + [candidate]) == type_name
        parts.pop()
    return True


def _field_line(field: FieldDescriptor, scope: str, indent: str, registry: Registry) -> str:
    if field.is_scalar:
        type_name = field.type_name
    else:
        type_name = relative_type_name(field.type_name, scope, registry)
    if field.is_map:
        return f"{indent}map<{field.key_type}, {type_name}> {field.name} = {field.number};"

    label = ""
    if field.is_repeated:
        label = "repeated "
    elif field.is_required:
        label = "required "
    elif field.is_optional and field.oneof is None:
        label = "optional "
    return f"{indent}{label}{type_name} {field.name} = {field.number};"


def render_message_definition(
    registry: Registry,
    message: MessageDescriptor,
    indent_level: int = 0,
) -> str:
    """Render a human-readable .proto definition of a message.

    Nested enums come first, then nested messages, then oneof groups and
    finally the regular fields.
    """
    env = _get_template_env()
    template = env.get_template("message.proto.j2")

    indent = INDENT * indent_level
    inner = INDENT * (indent_level + 1)
    scope = message.full_name

    enums: List[Dict] = []
    for enum in message.nested_enums:
        enums.append({
            "indent": inner,
            "name": enum.name,
            "members": [{"name": n, "number": v} for n, v in enum.values],
            "closing": f"{inner}}}",
        })

    nested_blocks = [
        render_message_definition(registry, nested, indent_level + 1)
        for nested in message.nested_messages
    ]

    oneofs: List[Dict] = []
    for name, members in oneof_groups(message):
        oneofs.append({
            "name": name,
            "lines": [_field_line(f, scope, INDENT * (indent_level + 2), registry) for f in members],
            "closing": f"{inner}}}",
        })

    members = oneof_member_names(message)
    fields = [_field_line(f, scope, inner, registry) for f in message.fields if f.name not in members]

    rendered = template.render(
        indent=indent,
        name=message.name,
        enums=enums,
        nested_blocks=nested_blocks,
        oneofs=oneofs,
        fields=fields,
        closing=f"{indent}}}",
    )
    return rendered.rstrip("\n")


def render_full_definition(
    registry: Registry,
    message: MessageDescriptor,
    include_syntax: bool = True,
) -> str:
    """Render a message definition preceded by its syntax and package lines.

    The package is everything in the full name before the message's own name.
    """
    template = _get_template_env().get_template("definition.proto.j2")
    package = message.full_name.rpartition(".")[0]
    rendered = template.render(
        include_syntax=include_syntax,
        package=package,
        body=render_message_definition(registry, message),
    )
    return rendered.rstrip("\n")
