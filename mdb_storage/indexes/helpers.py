"""
Helper functions for index management.

Indexes are compared by key pattern (field names, order and direction),
never by name.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pymongo import IndexModel

from ..constants import PRIMARY_KEY_FIELD

IndexKeys = dict[str, Any] | list[tuple[str, Any]]


def normalize_keys(keys: IndexKeys | str) -> list[tuple[str, Any]]:
    """
    Normalize index keys to a consistent format.

    Args:
        keys: Index keys as dict, list of tuples, or a single field name

    Returns:
        List of (field_name, direction) tuples
    """
    if isinstance(keys, str):
        return [(keys, 1)]
    if isinstance(keys, Mapping):
        return [(k, v) for k, v in keys.items()]
    return [(k, v) for k, v in keys]


def _normalize_direction(direction: Any) -> Any:
    # The server reports {"field": 1.0} for an index created with {"field": 1}
    if isinstance(direction, float) and direction.is_integer():
        return int(direction)
    return direction


def key_identity(keys: IndexKeys) -> tuple[tuple[str, Any], ...]:
    """Key pattern identity used to compare desired and existing indexes."""
    return tuple((name, _normalize_direction(direction)) for name, direction in normalize_keys(keys))


def is_id_index(keys: IndexKeys) -> bool:
    """
    Check if index keys target the _id field (which MongoDB creates automatically).

    Args:
        keys: Index keys to check

    Returns:
        True if this is an _id index
    """
    normalized = normalize_keys(keys)
    return len(normalized) == 1 and normalized[0][0] == PRIMARY_KEY_FIELD


@dataclass(frozen=True)
class IndexSpecification:
    """
    A desired index: key pattern, optional name and extra options
    (``unique``, ``sparse``, ``expireAfterSeconds``...).

    Example:
        IndexSpecification.coerce({"key": {"companyId": 1}, "unique": True})
    """

    keys: tuple[tuple[str, Any], ...]
    name: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> tuple[tuple[str, Any], ...]:
        return key_identity(list(self.keys))

    def to_index_model(self) -> IndexModel:
        """Build the pymongo model. Indexes are always built in the background."""
        kwargs = {**self.options, "background": True}
        if self.name:
            kwargs["name"] = self.name
        return IndexModel(list(self.keys), **kwargs)

    @classmethod
    def coerce(cls, spec: "IndexSpecification | IndexModel | Mapping[str, Any]") -> "IndexSpecification":
        """
        Accept an IndexSpecification, a pymongo IndexModel, or a mapping with
        a ``key`` (or ``keys``) entry plus options.
        """
        if isinstance(spec, IndexSpecification):
            return spec
        if isinstance(spec, IndexModel):
            spec = spec.document
        if not isinstance(spec, Mapping):
            raise TypeError(f"Unsupported index specification: {spec!r}")

        keys = spec.get("key", spec.get("keys"))
        if not keys:
            raise ValueError(f"Index specification is missing 'key': {spec!r}")

        options = {k: v for k, v in spec.items() if k not in ("key", "keys", "name", "v", "ns")}
        options.pop("background", None)
        return cls(keys=tuple(normalize_keys(keys)), name=spec.get("name"), options=options)
