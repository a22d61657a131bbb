"""
Custom exceptions for MDB_STORAGE.

All storage errors derive from DocumentStorageError, which keeps
compatibility with RuntimeError and carries an optional context dictionary.
"""

from typing import Any, Dict, Optional


class DocumentStorageError(RuntimeError):
    """
    Base exception for document storage errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (document_name,
                 collection_name, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class InitializationError(DocumentStorageError):
    """
    Raised when the database connection cannot be established.

    Also raised when connect() is called on a handle that is already
    connected.

    Attributes:
        message: Error message
        mongo_uri: MongoDB connection URI (if available)
        db_name: Database name (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        mongo_uri: Optional[str] = None,
        db_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if mongo_uri:
            context["mongo_uri"] = mongo_uri
        if db_name:
            context["db_name"] = db_name
        super().__init__(message, context=context)
        self.mongo_uri = mongo_uri
        self.db_name = db_name


class ConfigurationError(DocumentStorageError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class ValidationError(DocumentStorageError):
    """
    Raised when a document fails its collection schema.

    Not retried; surfaced to the caller immediately.

    Attributes:
        document_name: Human readable document type
        details: Message produced by the underlying schema engine
    """

    def __init__(
        self,
        document_name: str,
        details: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["document_name"] = document_name
        super().__init__(f"Error validating '{document_name}': {details}", context=context)
        self.document_name = document_name
        self.details = details


class NotFoundError(DocumentStorageError):
    """
    Raised when no document or subdocument matches a filter.

    Attributes:
        document_name: Human readable document type
        document_id: Identity pinned by the filter (if any)
        subdocument_path: Array field searched for a subdocument (if any)
        subdocument_filter: Filter or identity used for the subdocument (if any)
    """

    def __init__(
        self,
        document_name: str,
        document_id: Optional[Any] = None,
        subdocument_path: Optional[str] = None,
        subdocument_filter: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if document_id is not None:
            context["document_id"] = document_id
        if subdocument_path:
            context["subdocument_path"] = subdocument_path
        if subdocument_filter:
            context["subdocument_filter"] = subdocument_filter

        if subdocument_path:
            message = f"Resource doesn't exist on {document_name}"
        else:
            message = f"{document_name} doesn't exist"

        super().__init__(message, context=context)
        self.document_name = document_name
        self.document_id = document_id
        self.subdocument_path = subdocument_path
        self.subdocument_filter = subdocument_filter


class UpdateError(DocumentStorageError):
    """
    Raised when a prepared update cannot be committed.

    The commit filter no longer matching any document (for example after a
    concurrent delete) is the usual cause. This layer never retries.

    Attributes:
        document_name: Human readable document type
        document_id: Identity pinned by the filter (if any)
        reason: Short description of why the commit failed
    """

    def __init__(
        self,
        document_name: str,
        document_id: Optional[Any] = None,
        reason: str = "no document matched the update filter",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if document_id is not None:
            context["document_id"] = document_id
        context["reason"] = reason
        super().__init__(f"Couldn't update {document_name}", context=context)
        self.document_name = document_name
        self.document_id = document_id
        self.reason = reason
