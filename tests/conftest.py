"""
Pytest configuration and shared fixtures for MDB_STORAGE tests.

This module provides:
- Mock Motor client/database/collection fixtures
- A DatabaseConnection wired to the mocks
- Test data factories
- A MongoDB testcontainer for integration tests
"""

import os
from typing import Any, AsyncGenerator, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from mdb_storage.config import StorageConfig
from mdb_storage.database import DatabaseConnection
from mdb_storage.observability import get_metrics_collector
from mdb_storage.testing import make_mock_request_context

STORAGE_ENV_VARS = (
    "MONGODB_URI",
    "MONGO_URI",
    "DB_NAME",
    "MONGO_MAX_POOL_SIZE",
    "MONGO_MIN_POOL_SIZE",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    "STORAGE_DEFAULT_PAGE_SIZE",
    "STORAGE_KEEP_CHANGELOG",
)


@pytest.fixture(autouse=True)
def clean_storage_env(monkeypatch):
    """Keep the developer's environment out of configuration tests."""
    for name in STORAGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty metrics collector."""
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


def make_cursor(documents: List[Dict[str, Any]] | None = None) -> MagicMock:
    """Create a mock Motor cursor whose sort/skip/limit chain back to itself."""
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.skip = MagicMock(return_value=cursor)
    cursor.limit = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=list(documents or []))
    return cursor


@pytest.fixture
def mock_mongo_collection() -> MagicMock:
    """Create a mock MongoDB collection."""
    collection = MagicMock()
    collection.name = "test_collection"
    collection.find = MagicMock(return_value=make_cursor())
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.aggregate = MagicMock(return_value=make_cursor())
    collection.list_indexes = MagicMock(
        return_value=make_cursor([{"name": "_id_", "key": {"_id": 1}}])
    )
    collection.create_indexes = AsyncMock(return_value=["test_index"])
    collection.drop_index = AsyncMock()
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
    return collection


@pytest.fixture
def mock_mongo_database(mock_mongo_collection: MagicMock) -> MagicMock:
    """Create a mock MongoDB database whose every collection is mock_mongo_collection."""
    db = MagicMock()
    db.name = "test_db"
    db.__getitem__.return_value = mock_mongo_collection
    db.list_collection_names = AsyncMock(return_value=["test_collection"])
    db.create_collection = AsyncMock()
    return db


@pytest.fixture
def mock_mongo_client(mock_mongo_database: MagicMock) -> MagicMock:
    """Create a mock MongoDB client."""
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__.return_value = mock_mongo_database
    client.get_default_database.return_value = mock_mongo_database
    return client


@pytest.fixture
def storage_config() -> StorageConfig:
    """Provide a configuration pointing at a (mocked) local server."""
    return StorageConfig(mongo_uri="mongodb://localhost:27017", db_name="test_db")


@pytest.fixture
async def connection(
    mock_mongo_client: MagicMock, storage_config: StorageConfig
) -> AsyncGenerator[DatabaseConnection, None]:
    """Create a connected DatabaseConnection backed by the mock client."""
    conn = DatabaseConnection(storage_config, client_factory=MagicMock(return_value=mock_mongo_client))
    await conn.connect()
    yield conn
    await conn.disconnect()


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


@pytest.fixture
def rc():
    """Provide a request context for changelog attribution."""
    return make_mock_request_context()


@pytest.fixture
def order_schema() -> Dict[str, Any]:
    """Provide a JSON schema for order documents."""
    return {
        "type": "object",
        "properties": {
            "orderId": {"type": "string"},
            "status": {"type": "string", "enum": ["Pending", "Shipped", "Cancelled"]},
            "channel": {"type": "string"},
            "position": {"type": "integer"},
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "sku": {"type": "string"},
                        "quantity": {"type": "integer", "minimum": 1},
                    },
                    "required": ["sku"],
                },
            },
        },
        "required": ["orderId", "status"],
    }


@pytest.fixture
def sample_order() -> Dict[str, Any]:
    """Provide a valid order document."""
    return {
        "orderId": "order-1",
        "status": "Pending",
        "channel": "amazon_de",
        "items": [{"sku": "sku-1", "quantity": 1}, {"sku": "sku-2", "quantity": 3}],
    }


# ============================================================================
# INTEGRATION FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start a MongoDB testcontainer for integration tests.

    Session-scoped: the container starts once and is reused by all
    integration tests. Skipped when testcontainers or docker is unavailable.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    try:
        container = MongoDbContainer(image="mongo:7.0")
        container.start()
    except Exception as e:
        pytest.skip(f"Could not start MongoDB container (is docker running?): {e}")

    yield container
    container.stop()


@pytest.fixture
def mongodb_connection_string(mongodb_container) -> str:
    """Get the connection string for the test container."""
    return mongodb_container.get_connection_url()


@pytest.fixture
async def real_connection(
    mongodb_connection_string: str,
) -> AsyncGenerator[DatabaseConnection, None]:
    """
    Create a DatabaseConnection to the testcontainer.

    Every collection is emptied before the test and the handle is
    disconnected after it.
    """
    config = StorageConfig(mongo_uri=mongodb_connection_string, db_name="mdb_storage_test")
    conn = DatabaseConnection(config)
    await conn.connect()

    database = await conn.database()
    for name in await database.list_collection_names():
        await database.drop_collection(name)

    yield conn
    await conn.disconnect()
