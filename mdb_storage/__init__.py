"""
MDB_STORAGE - MongoDB document storage

Schema-validated CRUD on MongoDB collections with declared index
reconciliation and a per-document changelog of field-level edits.
"""

# Changelog
from .changelog import (ArrayChange, ChangelogBuilder, ChangelogEntry, Deleted,
                        Edit, Edited, New, RequestContext, apply_edits,
                        create_changelog, diff)
# Configuration
from .config import StorageConfig
# Database layer
from .database import DatabaseConnection
# Errors
from .exceptions import (ConfigurationError, DocumentStorageError,
                         InitializationError, NotFoundError, UpdateError,
                         ValidationError)
# Index management
from .indexes import CollectionBootstrapper, IndexSpecification
# Queries
from .query import FilterTranslator, translate_filter
# Stores
from .store import (DocumentStore, SubdocumentUpdateHandle, UpdateHandle,
                    make_storage)
# Validation
from .validation import (DocumentValidator, JsonSchemaValidator,
                         PydanticValidator, as_validator)

__version__ = "0.1.0"

__all__ = [
    # Stores
    "DocumentStore",
    "make_storage",
    "UpdateHandle",
    "SubdocumentUpdateHandle",
    # Database
    "DatabaseConnection",
    "StorageConfig",
    # Changelog
    "ChangelogBuilder",
    "ChangelogEntry",
    "RequestContext",
    "create_changelog",
    "diff",
    "apply_edits",
    "Edit",
    "New",
    "Deleted",
    "Edited",
    "ArrayChange",
    # Indexes
    "CollectionBootstrapper",
    "IndexSpecification",
    # Queries
    "FilterTranslator",
    "translate_filter",
    # Validation
    "DocumentValidator",
    "PydanticValidator",
    "JsonSchemaValidator",
    "as_validator",
    # Errors
    "DocumentStorageError",
    "InitializationError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "UpdateError",
]
