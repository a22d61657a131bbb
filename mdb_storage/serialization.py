"""
Conversion of domain values to a form MongoDB can store.

serialize_document() walks a document recursively and converts:
- pydantic models -> ``model_dump()``
- dataclass instances -> their fields
- objects exposing ``to_dict()`` -> its result
- Enum members -> their value
- Decimal -> bson.Decimal128 (money amounts)
- tuples and sets -> lists

ObjectId, datetime and plain scalars are kept as they are. The input is
never mutated.
"""

import dataclasses
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from bson import Decimal128
from pydantic import BaseModel


def serialize_value(value: Any) -> Any:
    """Serialize a single value (recursively)."""
    if isinstance(value, BaseModel):
        return serialize_value(value.model_dump())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return serialize_value(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    if isinstance(value, Mapping):
        return {key: serialize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize_value(item) for item in value]
    if isinstance(value, Enum):
        return serialize_value(value.value)
    if isinstance(value, Decimal):
        return Decimal128(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return serialize_value(to_dict())
    return value


def serialize_document(document: Mapping[str, Any] | Any) -> dict[str, Any]:
    """
    Serialize a whole document to a plain dict ready for the database.

    Raises:
        TypeError: If the document does not serialize to a mapping
    """
    serialized = serialize_value(document)
    if not isinstance(serialized, dict):
        raise TypeError(f"Document must serialize to a mapping, got {type(serialized)}")
    return serialized
