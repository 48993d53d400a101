from unittest.mock import patch

import pytest

from simplesearch.index.mysql_index import MysqlIndex
from simplesearch.index.registry import IndexRegistry
from simplesearch.index.sqlite_index import SqliteIndex


@pytest.fixture
def registry(sqlite_config):
    registry = IndexRegistry(sqlite_config=sqlite_config, default_backend="sqlite")
    yield registry
    registry.close_all()


def test_get_returns_same_connected_instance(registry):
    index = registry.get("products")

    assert isinstance(index, SqliteIndex)
    assert index.health_check() is True
    assert registry.get("products") is index
    assert registry.get("products", backend="sqlite") is index
    assert len(registry) == 1


def test_membership(registry):
    registry.get("products")

    assert "products" in registry
    assert ("products", "sqlite") in registry
    assert ("products", "mysql") not in registry
    assert list(registry) == [("products", "sqlite")]


def test_close_removes_index(registry):
    index = registry.get("products")

    registry.close("products")
    registry.close("products")

    assert "products" not in registry
    assert index.health_check() is False
    assert registry.get("products") is not index


def test_close_all(registry):
    first = registry.get("first")
    second = registry.get("second")

    registry.close_all()

    assert len(registry) == 0
    assert first.health_check() is False
    assert second.health_check() is False


def test_context_manager_closes_indexes(sqlite_config):
    with IndexRegistry(sqlite_config=sqlite_config, default_backend="sqlite") as registry:
        index = registry.get("products")

    assert len(registry) == 0
    assert index.health_check() is False


def test_unknown_backend(registry):
    with pytest.raises(ValueError):
        registry.get("products", backend="oracle")

    assert len(registry) == 0


def test_failed_connect_is_not_registered(registry):
    with patch.object(MysqlIndex, "connect", side_effect=ConnectionError("server unavailable")):
        with pytest.raises(ConnectionError):
            registry.get("products", backend="mysql")

    assert ("products", "mysql") not in registry


def test_default_backend_comes_from_settings(sqlite_config):
    with patch("simplesearch.index.registry.settings") as mock_settings:
        mock_settings.INDEX_BACKEND = "mysql"
        registry = IndexRegistry(sqlite_config=sqlite_config)

    assert registry.default_backend == "mysql"
