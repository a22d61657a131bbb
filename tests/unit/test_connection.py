"""
Unit tests for DatabaseConnection.

Tests the connect/disconnect lifecycle, error wrapping and waiting for a
connection.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

from mdb_storage.config import StorageConfig
from mdb_storage.database import DatabaseConnection
from mdb_storage.exceptions import ConfigurationError, InitializationError
from mdb_storage.observability import get_metrics_collector


@pytest.fixture
def client_factory(mock_mongo_client):
    return MagicMock(return_value=mock_mongo_client)


@pytest.mark.asyncio
class TestConnectionLifecycle:
    """Test connecting and disconnecting."""

    async def test_connect(self, storage_config, client_factory, mock_mongo_client, mock_mongo_database):
        conn = DatabaseConnection(storage_config, client_factory=client_factory)
        assert not conn.connected

        await conn.connect()

        assert conn.connected
        assert await conn.database() is mock_mongo_database
        mock_mongo_client.admin.command.assert_awaited_once_with("ping")
        mock_mongo_client.__getitem__.assert_called_with("test_db")
        assert get_metrics_collector().get_operation_count("connection.connect") == 1

    async def test_client_uses_configured_pool(self, client_factory):
        config = StorageConfig(
            mongo_uri="mongodb://db:27017", db_name="x", max_pool_size=20, min_pool_size=2
        )
        await DatabaseConnection(config, client_factory=client_factory).connect()

        args, kwargs = client_factory.call_args
        assert args == ("mongodb://db:27017",)
        assert kwargs["maxPoolSize"] == 20
        assert kwargs["minPoolSize"] == 2
        assert kwargs["serverSelectionTimeoutMS"] == 5000
        assert kwargs["appname"] == "MDB_STORAGE"

    async def test_arguments_override_config(self, storage_config, client_factory, mock_mongo_client):
        conn = DatabaseConnection(storage_config, client_factory=client_factory)
        await conn.connect("mongodb://other:27017", "other_db")
        assert client_factory.call_args.args == ("mongodb://other:27017",)
        mock_mongo_client.__getitem__.assert_called_with("other_db")

    async def test_default_database_from_uri(self, client_factory, mock_mongo_client):
        config = StorageConfig(mongo_uri="mongodb://localhost:27017/orders")
        await DatabaseConnection(config, client_factory=client_factory).connect()
        mock_mongo_client.get_default_database.assert_called_once()

    async def test_connect_twice_fails(self, storage_config, client_factory):
        conn = DatabaseConnection(storage_config, client_factory=client_factory)
        await conn.connect()

        with pytest.raises(InitializationError, match="already an existing database connection"):
            await conn.connect()

    async def test_concurrent_connect_opens_one_client(self, storage_config, client_factory, mock_mongo_client):
        async def slow_ping(*args, **kwargs):
            await asyncio.sleep(0.01)
            return {"ok": 1}

        mock_mongo_client.admin.command = AsyncMock(side_effect=slow_ping)
        conn = DatabaseConnection(storage_config, client_factory=client_factory)

        results = await asyncio.gather(conn.connect(), conn.connect(), return_exceptions=True)

        errors = [r for r in results if isinstance(r, InitializationError)]
        assert len(errors) == 1
        assert "already an existing database connection" in str(errors[0])
        assert client_factory.call_count == 1
        assert conn.connected
        mock_mongo_client.close.assert_not_called()

    async def test_disconnect(self, storage_config, client_factory, mock_mongo_client):
        conn = DatabaseConnection(storage_config, client_factory=client_factory)
        await conn.connect()
        await conn.disconnect()

        assert not conn.connected
        mock_mongo_client.close.assert_called_once()

        # The handle can be connected again
        await conn.connect()
        assert conn.connected

    async def test_disconnect_without_connect_is_noop(self, storage_config, client_factory):
        conn = DatabaseConnection(storage_config, client_factory=client_factory)
        await conn.disconnect()
        client_factory.assert_not_called()

    async def test_async_context_manager(self, storage_config, client_factory, mock_mongo_client):
        async with DatabaseConnection(storage_config, client_factory=client_factory) as conn:
            assert conn.connected
        mock_mongo_client.close.assert_called_once()


@pytest.mark.asyncio
class TestConnectionErrors:
    """Test error handling during connect."""

    async def test_missing_uri(self, client_factory):
        conn = DatabaseConnection(StorageConfig(), client_factory=client_factory)
        with pytest.raises(ConfigurationError) as exc_info:
            await conn.connect()
        assert exc_info.value.config_key == "mongo_uri"

    @pytest.mark.parametrize(
        "error", [ConnectionFailure("refused"), ServerSelectionTimeoutError("timeout")]
    )
    async def test_unreachable_server(self, storage_config, client_factory, mock_mongo_client, error):
        mock_mongo_client.admin.command = AsyncMock(side_effect=error)
        conn = DatabaseConnection(storage_config, client_factory=client_factory)

        with pytest.raises(InitializationError) as exc_info:
            await conn.connect()

        assert exc_info.value.__cause__ is error
        assert exc_info.value.context["error_type"] == type(error).__name__
        assert exc_info.value.db_name == "test_db"
        mock_mongo_client.close.assert_called_once()
        assert not conn.connected
        assert get_metrics_collector().get_error_count("connection.connect") == 1

    async def test_unexpected_error_closes_client(self, storage_config, client_factory, mock_mongo_client):
        error = OperationFailure("not authorized", code=13)
        mock_mongo_client.admin.command = AsyncMock(side_effect=error)
        conn = DatabaseConnection(storage_config, client_factory=client_factory)

        with pytest.raises(OperationFailure):
            await conn.connect()

        mock_mongo_client.close.assert_called_once()
        assert not conn.connected
        assert get_metrics_collector().get_error_count("connection.connect") == 1

        # The failed attempt does not block a later one
        mock_mongo_client.admin.command = AsyncMock(return_value={"ok": 1})
        await conn.connect()
        assert conn.connected

    async def test_connect_after_failure(self, storage_config, client_factory, mock_mongo_client):
        mock_mongo_client.admin.command = AsyncMock(side_effect=[ConnectionFailure("down"), {"ok": 1}])
        conn = DatabaseConnection(storage_config, client_factory=client_factory)

        with pytest.raises(InitializationError):
            await conn.connect()
        await conn.connect()
        assert conn.connected


@pytest.mark.asyncio
class TestWaitingForConnection:
    """Test database access before connect() completes."""

    async def test_database_waits_for_connect(self, storage_config, client_factory, mock_mongo_database, caplog):
        conn = DatabaseConnection(storage_config, client_factory=client_factory)

        with caplog.at_level("WARNING"):
            waiter = asyncio.create_task(conn.database())
            await asyncio.sleep(0)
            assert not waiter.done()

            await conn.connect()
            assert await asyncio.wait_for(waiter, timeout=1) is mock_mongo_database

        assert "Requesting database access, not connected yet" in caplog.text

    async def test_collection(self, connection, mock_mongo_collection):
        assert await connection.collection("orders") is mock_mongo_collection
