"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import pytest

sys.path.append(os.path.join(os.getcwd(), "src"))

from simplesearch.index.sqlite_index import SqliteIndex
from simplesearch.storage.sqlite_adapter import SqliteConfig


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> None:
    """Set up test environment variables."""
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("INDEX_BACKEND", "sqlite")


@pytest.fixture
def sqlite_config(tmp_path) -> SqliteConfig:
    """SQLite settings pointing at a temporary storage folder."""
    return SqliteConfig(SQLITE_STORAGE_FOLDER=str(tmp_path / "index"))


@pytest.fixture
def sqlite_index(sqlite_config):
    index = SqliteIndex("test-index", sqlite_config)
    index.connect()
    yield index
    index.close()
