from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from google.protobuf import descriptor_pb2 as d2
from google.protobuf.message import Message

from protoc_transcoder.config import DEFAULT_MAX_DEPTH, WELL_KNOWN_PACKAGE, setup_logging
from protoc_transcoder.defaults import generate_default_message_json
from protoc_transcoder.generator.definition_generator import (
    render_full_definition,
    render_message_definition,
)
from protoc_transcoder.imports import find_unresolved_imports
from protoc_transcoder.models import MessageDescriptor, Registry, UnknownTypeError
from protoc_transcoder.normalizer import normalize_message
from protoc_transcoder.provider.descriptor_set import (
    DescriptorProviderError,
    load_descriptor_set,
    registry_from_descriptor_set,
)
from protoc_transcoder.provider.protoc import compile_proto_file
from protoc_transcoder.provider.runtime import (
    ENCODE_FORMATS,
    MessageValidationError,
    decoded_value,
    encode_message,
    message_class,
    parse_value,
)
from protoc_transcoder.schema import derive_schema
from protoc_transcoder.textformat import message_to_text

logger = logging.getLogger(__name__)


class CliError(Exception):
    """Raised for user errors that should end the command with exit code 1."""


def _load_descriptor_set(args: argparse.Namespace) -> d2.FileDescriptorSet:
    if args.descriptor_set:
        return load_descriptor_set(args.descriptor_set)
    return compile_proto_file(args.proto, protoc=args.protoc)


def _user_message_names(registry: Registry) -> List[str]:
    prefix = WELL_KNOWN_PACKAGE + "."
    return [name for name in registry.message_names() if not name.startswith(prefix)]


def _select_message(registry: Registry, name: Optional[str]) -> MessageDescriptor:
    if name:
        return registry.get_message(name)
    candidates = _user_message_names(registry)
    if not candidates:
        raise CliError("No message types found")
    logger.info("No --message given, using %s", candidates[0])
    return registry.get_message(candidates[0])


def _read_json(path: str) -> Any:
    try:
        text = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise CliError(f"Cannot read '{path}': {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise CliError(f"Invalid JSON in '{path}': {e}") from e


def _read_sources(paths: List[str]) -> Dict[str, str]:
    files: Dict[str, str] = {}
    for p in paths:
        try:
            files[p] = Path(p).read_text(encoding="utf-8")
        except OSError as e:
            raise CliError(f"Cannot read '{p}': {e}") from e
    return files


def _parse_input(
    args: argparse.Namespace,
    fds: d2.FileDescriptorSet,
    registry: Registry,
    message: MessageDescriptor,
) -> Message:
    """Normalize the JSON input, then validate it by decoding it with the runtime."""
    value = normalize_message(registry, message, _read_json(args.input))
    return parse_value(message_class(fds, message.full_name), value)


def run(args: argparse.Namespace) -> str:
    """Execute one subcommand and return its output text."""
    if args.command == "imports":
        files = _read_sources([args.main] + [p for p in args.files if p != args.main])
        unresolved = find_unresolved_imports(files, args.main)
        return "\n".join(unresolved)

    fds = _load_descriptor_set(args)
    registry = registry_from_descriptor_set(fds)

    if args.command == "list":
        return "\n".join(_user_message_names(registry))

    message = _select_message(registry, args.message)

    if args.command == "schema":
        return json.dumps(derive_schema(registry, message), indent=2)
    if args.command == "defaults":
        return generate_default_message_json(registry, message, max_depth=args.max_depth)
    if args.command == "normalize":
        value = normalize_message(registry, message, _read_json(args.input))
        return json.dumps(value, indent=2)
    if args.command == "textproto":
        decoded = _parse_input(args, fds, registry, message)
        return message_to_text(registry, message, decoded_value(decoded))
    if args.command == "encode":
        return encode_message(_parse_input(args, fds, registry, message), args.format)
    if args.command == "definition":
        if args.full:
            return render_full_definition(registry, message)
        return render_message_definition(registry, message)

    raise CliError(f"Unknown command '{args.command}'")


def _add_descriptor_args(parser: argparse.ArgumentParser, with_message: bool = True) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--descriptor-set",
        help="Binary FileDescriptorSet produced by protoc --descriptor_set_out",
    )
    source.add_argument(
        "--proto",
        help="Path to a .proto file to compile with protoc",
    )
    parser.add_argument(
        "--protoc",
        help="protoc executable (defaults to $PROTOC_TRANSCODER_PROTOC or 'protoc')",
    )
    if with_message:
        parser.add_argument(
            "--message",
            help="Fully-qualified message name (defaults to the first message)",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protoc-transcoder",
        description="Schema-driven protobuf JSON/text-format transcoding tool",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    _add_descriptor_args(sub.add_parser("list", help="List message types"), with_message=False)
    _add_descriptor_args(sub.add_parser("schema", help="Print the JSON Schema of a message"))

    defaults = sub.add_parser("defaults", help="Print a default-valued JSON message")
    _add_descriptor_args(defaults)
    defaults.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH)

    for name, help_text in (
        ("normalize", "Normalize enum names and plain-text bytes in a JSON message"),
        ("textproto", "Render a decoded JSON message in protobuf text format"),
        ("encode", "Validate a JSON message and print its wire-format encoding"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        _add_descriptor_args(cmd)
        cmd.add_argument("--input", default="-", help="JSON file to read ('-' for stdin)")
        if name == "encode":
            cmd.add_argument("--format", choices=ENCODE_FORMATS, default="base64")

    definition = sub.add_parser("definition", help="Print a message's .proto definition")
    _add_descriptor_args(definition)
    definition.add_argument("--full", action="store_true", help="Include the syntax and package lines")

    imports = sub.add_parser("imports", help="List imports no given file satisfies")
    imports.add_argument("--main", required=True, help="Main .proto file")
    imports.add_argument("files", nargs="*", help="Other loaded .proto files")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        output = run(args)
    except (CliError, DescriptorProviderError, MessageValidationError, UnknownTypeError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"FATAL: {message}", file=sys.stderr)
        sys.exit(1)

    if output:
        print(output)


if __name__ == "__main__":
    main()
