"""
Document validation.
"""

from .validators import (
    BsonDraft7Validator,
    DocumentValidator,
    JsonSchemaValidator,
    PydanticValidator,
    ValidationResult,
    as_validator,
)

__all__ = [
    "DocumentValidator",
    "ValidationResult",
    "PydanticValidator",
    "JsonSchemaValidator",
    "BsonDraft7Validator",
    "as_validator",
]
