"""
Database connection handle for MDB_STORAGE.

A DatabaseConnection is constructed once (usually at process start),
connected explicitly, and passed to every DocumentStore. Callers that ask
for the database before connect() completes are suspended until it does.

Usage:
    connection = DatabaseConnection(StorageConfig())
    await connection.connect()
    orders = DocumentStore(connection, "Order", "orders", OrderModel)
    ...
    await connection.disconnect()
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from ..config import StorageConfig
from ..constants import CONNECTION_APP_NAME, DEFAULT_MAX_IDLE_TIME_MS
from ..exceptions import ConfigurationError, InitializationError
from ..observability import get_logger as get_contextual_logger
from ..observability import record_operation

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class DatabaseConnection:
    """
    Owns the MongoDB client and database for a group of stores.

    Lifecycle:
        connect()    -> fails with InitializationError while already connected
        disconnect() -> no-op when not connected; the handle can be reused
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        client_factory: Callable[..., AsyncIOMotorClient] = AsyncIOMotorClient,
    ) -> None:
        """
        Initialize the connection handle without connecting.

        Args:
            config: Storage configuration (read from the environment if omitted)
            client_factory: Callable building the Motor client (swappable in tests)
        """
        self.config = config or StorageConfig()
        self._client_factory = client_factory

        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None
        self._ready = asyncio.Event()
        self._connecting = False

    @property
    def connected(self) -> bool:
        """Check if the handle holds a live connection."""
        return self._client is not None and self._ready.is_set()

    async def connect(self, mongo_uri: str | None = None, db_name: str | None = None) -> None:
        """
        Connect to MongoDB and release any callers waiting in database().

        Args:
            mongo_uri: Overrides the configured URI
            db_name: Overrides the configured database name

        Raises:
            InitializationError: If already connected or the server is unreachable
            ConfigurationError: If no URI is available
        """
        if self._client is not None or self._connecting:
            raise InitializationError("There's already an existing database connection")

        uri = mongo_uri or self.config.mongo_uri
        name = db_name or self.config.db_name
        if not uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGODB_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        # Claimed before the first await so an overlapping connect() is rejected
        self._connecting = True
        try:
            await self._open(uri, name)
        finally:
            self._connecting = False

    async def _open(self, uri: str, name: str) -> None:
        start_time = time.time()
        contextual_logger.info(
            "Connecting database...",
            extra={
                "db_name": name,
                "max_pool_size": self.config.max_pool_size,
                "min_pool_size": self.config.min_pool_size,
            },
        )

        client = None
        try:
            client = self._client_factory(
                uri,
                serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
                appname=CONNECTION_APP_NAME,
                maxPoolSize=self.config.max_pool_size,
                minPoolSize=self.config.min_pool_size,
                maxIdleTimeMS=DEFAULT_MAX_IDLE_TIME_MS,
                retryWrites=True,
                retryReads=True,
            )
            await client.admin.command("ping")
            database = client[name] if name else client.get_default_database()
        except (ConnectionFailure, ServerSelectionTimeoutError, PyMongoConfigurationError) as e:
            if client is not None:
                client.close()
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.connect", duration_ms, success=False)
            contextual_logger.critical(
                "MongoDB connection failed",
                extra={
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise InitializationError(
                f"Failed to connect to MongoDB: {e}",
                mongo_uri=uri,
                db_name=name,
                context={"error_type": type(e).__name__},
            ) from e
        except Exception:
            if client is not None:
                client.close()
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.connect", duration_ms, success=False)
            contextual_logger.critical("MongoDB connection failed", exc_info=True)
            raise

        self._client = client
        self._database = database
        self._ready.set()

        duration_ms = (time.time() - start_time) * 1000
        record_operation("connection.connect", duration_ms, success=True)
        contextual_logger.info(
            "Database connected",
            extra={"db_name": database.name, "duration_ms": round(duration_ms, 2)},
        )

    async def disconnect(self) -> None:
        """
        Close the client. Safe to call when never connected.
        """
        if self._client is None:
            return

        contextual_logger.info("Disconnecting database...")
        self._ready.clear()
        self._client.close()
        self._client = None
        self._database = None
        contextual_logger.info("Database disconnected")

    async def database(self) -> AsyncIOMotorDatabase:
        """
        Get the database, waiting for connect() if it has not completed yet.
        """
        if not self._ready.is_set():
            logger.warning("Requesting database access, not connected yet")
            await self._ready.wait()
        assert self._database is not None, "Database should not be None once connected"
        return self._database

    async def collection(self, name: str) -> AsyncIOMotorCollection:
        """Get a collection of the connected database."""
        return (await self.database())[name]

    async def __aenter__(self) -> "DatabaseConnection":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()
