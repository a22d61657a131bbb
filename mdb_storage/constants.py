"""
Constants for MDB_STORAGE.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# DOCUMENT CONSTANTS
# ============================================================================

PRIMARY_KEY_FIELD: Final[str] = "_id"
"""Internal MongoDB primary key. Never returned to callers."""

CHANGELOGS_FIELD: Final[str] = "changelogs"
"""Store-managed audit trail field present on every document."""

DEFAULT_ID_FIELD: Final[str] = "id"
"""Caller-level identity field used when naming documents in errors."""

EXCLUDE_PRIMARY_KEY: Final[dict[str, int]] = {PRIMARY_KEY_FIELD: 0}
"""Projection that hides the internal primary key."""

# ============================================================================
# PAGINATION CONSTANTS
# ============================================================================

DEFAULT_PAGE_SIZE: Final[int] = 50
"""Default number of documents returned by find_many."""

DEFAULT_PAGE: Final[int] = 1
"""Pages are 1-indexed."""

# ============================================================================
# FILTER CONSTANTS
# ============================================================================

DATE_FILTER_OPERATORS: Final[dict[str, tuple[str, str]]] = {
    "purchasedAfter": ("purchaseDate", "$gt"),
    "updatedAfter": ("lastChanged", "$gt"),
    "shouldShipBy": ("latestShipDate", "$lt"),
}
"""Semantic date filters: name -> (target field, comparison operator)."""

# ============================================================================
# DATABASE CONSTANTS
# ============================================================================

DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

MIN_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 1000
"""Lowest accepted server selection timeout."""

CONNECTION_APP_NAME: Final[str] = "MDB_STORAGE"
"""Application name reported to the MongoDB server."""
