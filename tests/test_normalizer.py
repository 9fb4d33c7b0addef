import copy

from conftest import enum_ref, message, message_ref, scalar
from protoc_transcoder.models import EnumDescriptor, Registry
from protoc_transcoder.normalizer import (
    is_valid_base64,
    normalize_bytes_fields,
    normalize_enum_values,
    normalize_message,
)


class TestBase64Detection:
    def test_examples(self):
        assert is_valid_base64("") is True
        assert is_valid_base64("SGVsbG8=") is True
        assert is_valid_base64("hello world") is False

    def test_length_must_be_multiple_of_four(self):
        assert is_valid_base64("abc") is False
        assert is_valid_base64("abcd") is True
        assert is_valid_base64("ab==") is True

    def test_padding_only_at_end(self):
        assert is_valid_base64("a=bc") is False
        assert is_valid_base64("a===") is False


class TestEnumPass:
    def test_name_becomes_number(self, registry, user):
        assert normalize_enum_values(registry, user, {"status": "ACTIVE"}) == {"status": 1}
        assert normalize_enum_values(registry, user, {"status": "INACTIVE"}) == {"status": 0}

    def test_unknown_name_is_untouched(self, registry, user):
        assert normalize_enum_values(registry, user, {"status": "UNKNOWN"}) == {"status": "UNKNOWN"}

    def test_numbers_and_unknown_keys_pass_through(self, registry, user):
        value = {"status": 1, "mystery": "ACTIVE", "name": "ACTIVE"}
        assert normalize_enum_values(registry, user, value) == value

    def test_repeated_and_map_enums(self, registry, user):
        value = {"history": ["ACTIVE", 0, "BOGUS"], "by_region": {"eu": "INACTIVE"}}
        assert normalize_enum_values(registry, user, value) == {
            "history": [1, 0, "BOGUS"],
            "by_region": {"eu": 0},
        }

    def test_json_name_keys_are_matched(self, registry, user):
        assert normalize_enum_values(registry, user, {"byRegion": {"us": "ACTIVE"}}) == {
            "byRegion": {"us": 1},
        }

    def test_nested_messages(self):
        status = registry_with_nested_enum()
        outer = status.get_message("t.Outer")
        value = {"inner": {"state": "ON"}, "items": [{"state": "OFF"}, {"state": "ON"}]}
        assert normalize_enum_values(status, outer, value) == {
            "inner": {"state": 1},
            "items": [{"state": 0}, {"state": 1}],
        }

    def test_input_is_not_mutated(self, registry, user):
        value = {"status": "ACTIVE", "history": ["INACTIVE"]}
        snapshot = copy.deepcopy(value)
        normalize_enum_values(registry, user, value)
        assert value == snapshot

    def test_idempotent(self, registry, user):
        value = {"status": "ACTIVE", "history": ["INACTIVE", "NOPE"], "by_region": {"x": "ACTIVE"}}
        once = normalize_enum_values(registry, user, value)
        assert normalize_enum_values(registry, user, once) == once


class TestBytesPass:
    def test_plain_text_is_encoded(self, registry, user):
        assert normalize_bytes_fields(registry, user, {"avatar": "hello world"}) == {
            "avatar": "aGVsbG8gd29ybGQ=",
        }

    def test_valid_base64_and_empty_kept(self, registry, user):
        assert normalize_bytes_fields(registry, user, {"avatar": "SGVsbG8="}) == {"avatar": "SGVsbG8="}
        assert normalize_bytes_fields(registry, user, {"avatar": ""}) == {"avatar": ""}

    def test_non_bytes_fields_untouched(self, registry, user):
        value = {"name": "hello world", "tags": ["a b"]}
        assert normalize_bytes_fields(registry, user, value) == value

    def test_utf8_text(self, registry, user):
        assert normalize_bytes_fields(registry, user, {"avatar": "héllo"}) == {"avatar": "aMOpbGxv"}

    def test_repeated_and_nested_bytes(self):
        blob = message("t.Blob", scalar("data", 1, "bytes"), scalar("chunks", 2, "bytes", is_repeated=True))
        holder = message("t.Holder", message_ref("blob", 1, "t.Blob"), message_ref("blobs", 2, "t.Blob", is_repeated=True))
        registry = Registry.build(messages=[blob, holder])

        value = {"blob": {"data": "hi there", "chunks": ["x y", "SGVsbG8="]}, "blobs": [{"data": "a b"}]}
        assert normalize_bytes_fields(registry, holder, value) == {
            "blob": {"data": "aGkgdGhlcmU=", "chunks": ["eCB5", "SGVsbG8="]},
            "blobs": [{"data": "YSBi"}],
        }

    def test_bytes_wrapper(self):
        msg = message("t.W", message_ref("payload", 1, "google.protobuf.BytesValue"))
        registry = Registry.build(messages=[msg])
        assert normalize_bytes_fields(registry, msg, {"payload": "a b"}) == {"payload": "YSBi"}

    def test_idempotent(self, registry, user):
        value = {"avatar": "hello world"}
        once = normalize_bytes_fields(registry, user, value)
        assert normalize_bytes_fields(registry, user, once) == once


class TestCombined:
    def test_both_passes_in_either_order(self, registry, user):
        value = {"status": "ACTIVE", "avatar": "hello world", "address": {"city": "Oslo"}}
        expected = {"status": 1, "avatar": "aGVsbG8gd29ybGQ=", "address": {"city": "Oslo"}}

        assert normalize_message(registry, user, value) == expected
        reversed_order = normalize_enum_values(registry, user, normalize_bytes_fields(registry, user, value))
        assert reversed_order == expected

    def test_top_level_array_and_scalars(self, registry, user):
        assert normalize_message(registry, user, [{"status": "INACTIVE"}, 3]) == [{"status": 0}, 3]
        assert normalize_message(registry, user, None) is None
        assert normalize_message(registry, user, "text") == "text"


def registry_with_nested_enum() -> Registry:
    switch = EnumDescriptor("Switch", "t.Switch", (("OFF", 0), ("ON", 1)))
    inner = message("t.Inner", enum_ref("state", 1, "t.Switch"))
    outer = message("t.Outer", message_ref("inner", 1, "t.Inner"), message_ref("items", 2, "t.Inner", is_repeated=True))
    return Registry.build(messages=[inner, outer], enums=[switch])
