"""Serialization protocols and implementations for JSON cache entries.

Provides a Serializer protocol and implementations for converting values
to/from JSON text for cache storage. The engine's JSON operations default to
``JsonSerializer``; pass a dataclass serializer to get typed values back.

Usage:
    serializer = DataclassListSerializer(Repository)
    repos = cache.cache_url_json(url, ttl_seconds=3600, serializer=serializer)
"""

from __future__ import annotations

import json
from dataclasses import asdict, fields, is_dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")


class Serializer(Protocol[T]):
    """Protocol for serializing and deserializing cached values."""

    def serialize(self, value: T) -> str:
        """Convert a value to JSON text for cache storage."""
        ...

    def deserialize(self, data: str) -> T:
        """Convert cached JSON text back to the original value."""
        ...


class JsonSerializer[T]:
    """Generic JSON serializer for simple types.

    Works with any JSON-serializable type (dicts, lists, primitives).
    """

    def serialize(self, value: T) -> str:
        return json.dumps(value)

    def deserialize(self, data: str) -> T:
        return json.loads(data)


class DataclassSerializer[T]:
    """Serializer for a single dataclass decoded from a JSON object.

    Unknown keys in the JSON object are ignored, so a dataclass can pick a
    subset of the fields an API returns.

    Args:
        dataclass_type: The dataclass type to serialize/deserialize.
    """

    def __init__(self, dataclass_type: type[T]) -> None:
        self._dataclass_type = dataclass_type
        if not is_dataclass(dataclass_type):  # pyright: ignore[reportUnnecessaryComparison]
            raise TypeError(f"{dataclass_type} is not a dataclass")
        self._field_names = frozenset(f.name for f in fields(dataclass_type))

    def serialize(self, value: T) -> str:
        return json.dumps(self._to_dict(value))

    def deserialize(self, data: str) -> T:
        raw = json.loads(data)
        if not isinstance(raw, dict):
            raise TypeError(f"expected a JSON object for {self._dataclass_type.__name__}")
        return self._from_dict(raw)

    def _to_dict(self, obj: T) -> dict[str, Any]:
        if not is_dataclass(obj):
            raise TypeError(f"{obj} is not a dataclass instance")
        return asdict(obj)  # type: ignore[arg-type]

    def _from_dict(self, data: dict[str, Any]) -> T:
        return self._dataclass_type(**{k: v for k, v in data.items() if k in self._field_names})


class DataclassListSerializer[T](DataclassSerializer[T]):
    """Serializer for lists of dataclasses decoded from a JSON array."""

    def serialize(self, value: Sequence[T]) -> str:  # type: ignore[override]
        return json.dumps([self._to_dict(item) for item in value])

    def deserialize(self, data: str) -> list[T]:  # type: ignore[override]
        raw_list = json.loads(data)
        if not isinstance(raw_list, list):
            raise TypeError(f"expected a JSON array of {self._dataclass_type.__name__}")
        return [self._from_dict(item) for item in raw_list]
