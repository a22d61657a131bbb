"""
Pluggable document validators.

A DocumentValidator checks a raw document against a collection schema,
strips fields the schema does not declare, and returns the value to persist.
Two implementations are provided:

- PydanticValidator: the schema is a pydantic model class
- JsonSchemaValidator: the schema is a JSON Schema (Draft 7) document, with
  the extra types ``objectId`` and ``datetime`` for BSON values
"""

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from bson import ObjectId
from jsonschema import Draft7Validator, SchemaError, validators
from pydantic import BaseModel, create_model
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ValidationResult(Generic[T]):
    """
    Outcome of a validation.

    Attributes:
        value: Validated value (model instance or dict), None on failure
        error: Human readable error, None on success
        document: Plain dict to persist (unknown fields stripped), None on failure
    """

    value: Optional[T] = None
    error: Optional[str] = None
    document: Optional[dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DocumentValidator(ABC, Generic[T]):
    """Validation capability used by DocumentStore."""

    @abstractmethod
    def validate(self, document: Mapping[str, Any]) -> ValidationResult[T]:
        """Validate ``document``; never raises for schema violations."""

    @abstractmethod
    def with_optional_field(self, name: str) -> "DocumentValidator[T]":
        """Return a validator that also accepts ``name`` with any value."""


class PydanticValidator(DocumentValidator[T]):
    """
    Validates with a pydantic model.

    Fields not declared on the model are ignored (unless the model allows
    extras), and only the fields the caller provided end up in
    ``ValidationResult.document``.

    Example:
        class Order(BaseModel):
            model_config = ConfigDict(arbitrary_types_allowed=True)
            documentId: ObjectId
            channel: str

        validator = PydanticValidator(Order)
    """

    def __init__(self, model: type[BaseModel]) -> None:
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise TypeError(f"Expected a pydantic model class, got {model!r}")
        self.model = model

    def validate(self, document: Mapping[str, Any]) -> ValidationResult[T]:
        try:
            value = self.model.model_validate(dict(document))
        except PydanticValidationError as e:
            return ValidationResult(error=str(e))
        return ValidationResult(value=value, document=value.model_dump(exclude_unset=True))

    def with_optional_field(self, name: str) -> "PydanticValidator[T]":
        if name in self.model.model_fields:
            return self
        extended = create_model(
            self.model.__name__,
            __base__=self.model,
            **{name: (Optional[Any], None)},
        )
        return PydanticValidator(extended)


def _is_object_id(checker: Any, instance: Any) -> bool:
    return isinstance(instance, ObjectId)


def _is_datetime(checker: Any, instance: Any) -> bool:
    return isinstance(instance, datetime)


BsonDraft7Validator = validators.extend(
    Draft7Validator,
    type_checker=Draft7Validator.TYPE_CHECKER.redefine_many(
        {"objectId": _is_object_id, "datetime": _is_datetime}
    ),
)


class JsonSchemaValidator(DocumentValidator[dict[str, Any]]):
    """
    Validates with a JSON Schema.

    Top-level properties missing from the schema's ``properties`` are
    stripped before validation, unless ``additionalProperties`` is true.

    Raises:
        jsonschema.SchemaError: If the schema itself is invalid
    """

    def __init__(self, schema: Mapping[str, Any]) -> None:
        try:
            BsonDraft7Validator.check_schema(schema)
        except SchemaError:
            logger.exception("Invalid document schema")
            raise
        self.schema = dict(schema)
        self._validator = BsonDraft7Validator(self.schema)

    def _strip_unknown(self, document: Mapping[str, Any]) -> dict[str, Any]:
        properties = self.schema.get("properties")
        if properties is None or self.schema.get("additionalProperties") is True:
            return dict(document)
        return {k: v for k, v in document.items() if k in properties}

    def validate(self, document: Mapping[str, Any]) -> ValidationResult[dict[str, Any]]:
        stripped = self._strip_unknown(document)
        errors = sorted(self._validator.iter_errors(stripped), key=lambda e: list(e.path))
        if errors:
            messages = [
                f"{'.'.join(str(p) for p in error.path) or '<root>'}: {error.message}"
                for error in errors
            ]
            return ValidationResult(error="; ".join(messages))
        return ValidationResult(value=stripped, document=stripped)

    def with_optional_field(self, name: str) -> "JsonSchemaValidator":
        properties = self.schema.get("properties") or {}
        if name in properties:
            return self
        schema = copy.deepcopy(self.schema)
        schema.setdefault("properties", {})[name] = {}
        return JsonSchemaValidator(schema)


def as_validator(schema: Any) -> DocumentValidator[Any]:
    """
    Build a validator from a validator, a pydantic model class, or a JSON
    Schema mapping.
    """
    if isinstance(schema, DocumentValidator):
        return schema
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return PydanticValidator(schema)
    if isinstance(schema, Mapping):
        return JsonSchemaValidator(schema)
    raise TypeError(f"Unsupported document schema: {schema!r}")
