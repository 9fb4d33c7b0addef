import json

import jsonschema

from conftest import enum_ref, message, message_ref, scalar
from protoc_transcoder.defaults import generate_default_message, generate_default_message_json
from protoc_transcoder.models import EnumDescriptor, OneofGroup, Registry
from protoc_transcoder.schema import derive_schema


class TestScalarDefaults:
    def test_zero_values(self, registry, user):
        result = generate_default_message(registry, user)

        assert result["id"] == 0
        assert result["name"] == ""
        assert result["avatar"] == ""
        assert result["score"] == 0
        assert result["active"] is False

    def test_enum_uses_first_declared_value(self, registry, user):
        # Status declares ACTIVE = 1 before INACTIVE = 0.
        assert generate_default_message(registry, user)["status"] == 1

    def test_empty_enum_defaults_to_zero(self):
        empty = EnumDescriptor("Nothing", "t.Nothing")
        msg = message("t.M", enum_ref("e", 1, "t.Nothing"))
        registry = Registry.build(messages=[msg], enums=[empty])
        assert generate_default_message(registry, msg) == {"e": 0}


class TestCollections:
    def test_repeated_and_map_fields(self, registry, user):
        result = generate_default_message(registry, user)
        assert result["tags"] == []
        assert result["history"] == []
        assert result["previous_addresses"] == []
        assert result["labels"] == {}
        assert result["by_region"] == {}

    def test_collections_ignore_depth(self, registry, user):
        result = generate_default_message(registry, user, max_depth=1)
        assert result["tags"] == []
        assert result["labels"] == {}


class TestOneofs:
    def test_only_first_member_is_generated(self, registry, user):
        result = generate_default_message(registry, user)
        assert result["email"] == ""
        assert "phone" not in result

    def test_never_more_than_one_member_per_group(self):
        msg = message(
            "t.Choice",
            scalar("a", 1, "int32", oneof="first"),
            scalar("b", 2, "string", oneof="first"),
            scalar("c", 3, "bool", oneof="second"),
            scalar("d", 4, "double", oneof="second"),
            scalar("plain", 5, "int32"),
            oneofs=(OneofGroup("first", ("a", "b")), OneofGroup("second", ("c", "d"))),
        )
        registry = Registry.build(messages=[msg])
        result = generate_default_message(registry, msg)

        assert result == {"a": 0, "c": False, "plain": 0}


class TestNesting:
    def test_depth_bound_emits_empty_object(self, registry):
        root = registry.get_message("demo.Root")
        result = generate_default_message(registry, root, max_depth=2)
        assert result == {"level1": {"level2": {}, "name": ""}}

    def test_deeper_bound_expands_further(self, registry):
        root = registry.get_message("demo.Root")
        result = generate_default_message(registry, root, max_depth=4)
        assert result["level1"]["level2"]["level3"] == {"value": 0}

    def test_recursive_type_terminates(self, registry):
        node = registry.get_message("demo.Node")
        result = generate_default_message(registry, node)
        assert result == {
            "value": 0,
            "left": {"value": 0, "left": {}, "right": {}, "children": []},
            "right": {"value": 0, "left": {}, "right": {}, "children": []},
            "children": [],
        }

    def test_current_depth_at_bound_returns_empty(self, registry, user):
        assert generate_default_message(registry, user, max_depth=2, current_depth=2) == {}


class TestWellKnownDefaults:
    def test_fixed_defaults(self):
        msg = message(
            "t.Wkt",
            message_ref("ts", 1, "google.protobuf.Timestamp"),
            message_ref("dur", 2, "google.protobuf.Duration"),
            message_ref("st", 3, "google.protobuf.Struct"),
            message_ref("empty", 4, "google.protobuf.Empty"),
            message_ref("val", 5, "google.protobuf.Value"),
            message_ref("lst", 6, "google.protobuf.ListValue"),
            message_ref("mask", 7, "google.protobuf.FieldMask"),
            message_ref("anything", 8, "google.protobuf.Any"),
            message_ref("count", 9, "google.protobuf.Int64Value"),
            message_ref("flag", 10, "google.protobuf.BoolValue"),
        )
        registry = Registry.build(messages=[msg])

        assert generate_default_message(registry, msg) == {
            "ts": {"seconds": 0, "nanos": 0},
            "dur": {"seconds": 0, "nanos": 0},
            "st": {},
            "empty": {},
            "val": None,
            "lst": {"values": []},
            "mask": {"paths": []},
            "anything": {"typeUrl": "", "value": ""},
            "count": 0,
            "flag": False,
        }

    def test_unresolved_message_defaults_to_empty(self):
        msg = message("t.Dangling", message_ref("other", 1, "t.Missing"))
        registry = Registry.build(messages=[msg])
        assert generate_default_message(registry, msg) == {"other": {}}


class TestJsonRendering:
    def test_two_space_indent(self, registry):
        address = registry.get_message("demo.Address")
        text = generate_default_message_json(registry, address)
        assert text.startswith('{\n  "street": ""')
        assert json.loads(text) == {"street": "", "city": "", "zip_code": 0}


class TestSchemaRoundTrip:
    def test_defaults_validate_against_schema(self, registry):
        for name in ("demo.User", "demo.Node", "demo.Ping", "demo.Root", "demo.Address"):
            msg = registry.get_message(name)
            schema = derive_schema(registry, msg)
            for depth in (1, 2, 3):
                jsonschema.validate(instance=generate_default_message(registry, msg, max_depth=depth), schema=schema)
