"""
Unit tests for StorageConfig.
"""

import pytest

from mdb_storage.config import StorageConfig
from mdb_storage.exceptions import ConfigurationError


class TestStorageConfigDefaults:
    def test_defaults(self):
        config = StorageConfig()
        assert config.mongo_uri == ""
        assert config.db_name == ""
        assert config.max_pool_size == 50
        assert config.min_pool_size == 10
        assert config.server_selection_timeout_ms == 5000
        assert config.default_page_size == 50
        assert config.keep_changelog is True

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("MONGO_URI", "mongodb://legacy:27017")
        monkeypatch.setenv("DB_NAME", "orders")
        monkeypatch.setenv("MONGO_MAX_POOL_SIZE", "5")
        monkeypatch.setenv("MONGO_MIN_POOL_SIZE", "2")
        monkeypatch.setenv("STORAGE_DEFAULT_PAGE_SIZE", "20")
        monkeypatch.setenv("STORAGE_KEEP_CHANGELOG", "false")

        config = StorageConfig()

        assert config.mongo_uri == "mongodb://legacy:27017"
        assert config.db_name == "orders"
        assert config.max_pool_size == 5
        assert config.min_pool_size == 2
        assert config.default_page_size == 20
        assert config.keep_changelog is False

    def test_mongodb_uri_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://primary:27017")
        monkeypatch.setenv("MONGO_URI", "mongodb://legacy:27017")
        assert StorageConfig().mongo_uri == "mongodb://primary:27017"

    def test_arguments_override_environment(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://env:27017")
        monkeypatch.setenv("STORAGE_KEEP_CHANGELOG", "true")
        config = StorageConfig(mongo_uri="mongodb://arg:27017", keep_changelog=False)
        assert config.mongo_uri == "mongodb://arg:27017"
        assert config.keep_changelog is False


class TestStorageConfigValidation:
    def test_valid(self):
        StorageConfig(mongo_uri="mongodb://localhost:27017").validate()

    @pytest.mark.parametrize(
        "kwargs,key",
        [
            ({}, "mongo_uri"),
            ({"max_pool_size": -1}, "max_pool_size"),
            ({"min_pool_size": -1}, "min_pool_size"),
            ({"max_pool_size": 5, "min_pool_size": 10}, "min_pool_size"),
            ({"server_selection_timeout_ms": 500}, "server_selection_timeout_ms"),
            ({"default_page_size": -5}, "default_page_size"),
        ],
    )
    def test_invalid(self, kwargs, key):
        if key != "mongo_uri":
            kwargs = {"mongo_uri": "mongodb://localhost:27017", **kwargs}
        with pytest.raises(ConfigurationError) as exc_info:
            StorageConfig(**kwargs).validate()
        assert exc_info.value.config_key == key
