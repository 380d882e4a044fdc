import json

import pytest

from labkit.kvstore_api import (
    Client,
    VersionedKeyValue,
    VersionedValue,
    parse_versioned_key_value,
    parse_versioned_key_values,
)


def test_versioned_value_defaults_to_zero_values():
    vv = VersionedValue()
    assert vv.to_dict() == {"value": "", "version": 0}


def test_versioned_key_value_to_dict_has_flat_fields():
    vkv = VersionedKeyValue("key1", "a", 3)
    assert vkv.to_dict() == {"key": "key1", "value": "a", "version": 3}
    assert vkv.versioned_value == VersionedValue("a", 3)


def test_round_trip_through_json_text():
    vkv = VersionedKeyValue("key1", "b", 2)
    assert parse_versioned_key_value(json.dumps(vkv.to_dict())) == vkv


def test_round_trip_through_bytes_and_dict():
    vkv = VersionedKeyValue("key2", "c", 1)
    assert parse_versioned_key_value(json.dumps(vkv.to_dict()).encode()) == vkv
    assert parse_versioned_key_value(vkv.to_dict()) == vkv


def test_missing_and_null_fields_take_zero_values():
    assert parse_versioned_key_value('{"key": "k"}') == VersionedKeyValue("k", "", 0)
    assert parse_versioned_key_value('{"key": "k", "value": null}') == VersionedKeyValue("k")


def test_unknown_fields_are_ignored():
    parsed = parse_versioned_key_value({"key": "k", "value": "v", "version": 1, "extra": True})
    assert parsed == VersionedKeyValue("k", "v", 1)


@pytest.mark.parametrize(
    "data",
    [
        "dummy",
        '{"a":12',
        "[1, 2]",
        '{"key": 5}',
        '{"version": "1"}',
        '{"version": 1.5}',
        '{"version": true}',
    ],
)
def test_bad_object_is_rejected(data):
    with pytest.raises(ValueError):
        parse_versioned_key_value(data)


def test_list_round_trip():
    items = [VersionedKeyValue("a", "1", 0), VersionedKeyValue("b", "2", 4)]
    text = json.dumps([item.to_dict() for item in items])
    assert parse_versioned_key_values(text) == items


def test_null_list_is_empty():
    assert parse_versioned_key_values("null") == []


def test_null_element_is_zero_value():
    assert parse_versioned_key_values("[null]") == [VersionedKeyValue()]


@pytest.mark.parametrize("data", ['{"key": "a"}', "[1]", "not json"])
def test_bad_list_is_rejected(data):
    with pytest.raises(ValueError):
        parse_versioned_key_values(data)


def test_client_is_abstract():
    with pytest.raises(TypeError):
        Client()


def test_client_subclass_implements_interface():
    class MemoryClient(Client):
        def __init__(self):
            self.store = {}

        def get(self, key):
            return self.store.get(key, VersionedValue())

        def put(self, vkv):
            self.store[vkv.key] = vkv.versioned_value

        def list(self):
            return [VersionedKeyValue(k, v.value, v.version) for k, v in self.store.items()]

        def reset(self):
            self.store.clear()

    client = MemoryClient()
    client.put(VersionedKeyValue("x", "y", 1))
    assert client.get("x") == VersionedValue("y", 1)
    assert client.list() == [VersionedKeyValue("x", "y", 1)]
    client.reset()
    assert client.list() == []