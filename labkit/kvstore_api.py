"""Data types and client interface of the versioned key-value store."""

from __future__ import annotations

import abc
import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class VersionedValue:
    """A value together with its version number."""

    value: str = ""
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of the value."""
        return {"value": self.value, "version": self.version}


@dataclass(frozen=True)
class VersionedKeyValue:
    """A key with its value and version number."""

    key: str = ""
    value: str = ""
    version: int = 0

    @property
    def versioned_value(self) -> VersionedValue:
        """The value and version without the key."""
        return VersionedValue(self.value, self.version)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of the key-value pair."""
        return {"key": self.key, "value": self.value, "version": self.version}


class Client(abc.ABC):
    """Interface of clients to the key-value store."""

    @abc.abstractmethod
    def get(self, key: str) -> VersionedValue:
        """Return the value and version stored for ``key``."""

    @abc.abstractmethod
    def put(self, vkv: VersionedKeyValue) -> None:
        """Insert the key-value pair with the given version into the store."""

    @abc.abstractmethod
    def list(self) -> list[VersionedKeyValue]:
        """Return all key-value pairs stored in the database."""

    @abc.abstractmethod
    def reset(self) -> None:
        """Remove all key-value pairs."""


def _decode(data: Any) -> Any:
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")
    if isinstance(data, str):
        return json.loads(data)
    return data


def _field(obj: dict, name: str, kind: type, default: Any) -> Any:
    raw = obj.get(name)
    if raw is None:
        return default
    if kind is int:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValueError(f"field {name!r} must be an integer, got {raw!r}")
    elif not isinstance(raw, kind):
        raise ValueError(f"field {name!r} must be a {kind.__name__}, got {raw!r}")
    return raw


def _from_object(obj: Any) -> VersionedKeyValue:
    if obj is None:
        return VersionedKeyValue()
    if not isinstance(obj, dict):
        raise ValueError(f"expected a JSON object, got {obj!r}")
    return VersionedKeyValue(
        key=_field(obj, "key", str, ""),
        value=_field(obj, "value", str, ""),
        version=_field(obj, "version", int, 0),
    )


def parse_versioned_key_value(data: Any) -> VersionedKeyValue:
    """Build a key-value pair from JSON text or a decoded JSON object.

    Missing or null fields take their zero value; raises ValueError on bad input.
    """
    return _from_object(_decode(data))


def parse_versioned_key_values(data: Any) -> list[VersionedKeyValue]:
    """Build a list of key-value pairs from JSON text or a decoded JSON array.

    A JSON null yields an empty list; raises ValueError on bad input.
    """
    obj = _decode(data)
    if obj is None:
        return []
    if not isinstance(obj, list):
        raise ValueError(f"expected a JSON array, got {obj!r}")
    return [_from_object(item) for item in obj]