"""
Document stores and their update handles.
"""

from .document_store import DocumentStore, make_storage
from .handles import SubdocumentUpdateHandle, UpdateHandle, get_path

__all__ = [
    "DocumentStore",
    "make_storage",
    "UpdateHandle",
    "SubdocumentUpdateHandle",
    "get_path",
]
