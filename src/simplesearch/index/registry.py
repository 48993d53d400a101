"""
Index Registry - Explicit ownership of open index instances.

The registry keeps one connected store per (index name, backend) pair. It is
created and closed by the application; there is no module-level instance.
"""

from typing import Dict, Iterator, Optional, Tuple

from simplesearch.index.base import IndexStore
from simplesearch.index.mysql_index import MysqlIndex
from simplesearch.index.sqlite_index import SqliteIndex
from simplesearch.platform.config import settings
from simplesearch.platform.logging import get_logger
from simplesearch.storage.mysql_adapter import MysqlConfig
from simplesearch.storage.sqlite_adapter import SqliteConfig

logger = get_logger(__name__)

RegistryKey = Tuple[str, str]


class IndexRegistry:
    """
    Creates index stores on first use and hands out the same instance after.

    Args:
        sqlite_config: Settings for SQLite indexes (defaults read the environment)
        mysql_config: Settings for MySQL indexes (defaults read the environment)
        default_backend: Backend used when get() is called without one
    """

    def __init__(
        self,
        sqlite_config: Optional[SqliteConfig] = None,
        mysql_config: Optional[MysqlConfig] = None,
        default_backend: Optional[str] = None,
    ):
        self.sqlite_config = sqlite_config
        self.mysql_config = mysql_config
        self.default_backend = default_backend or settings.INDEX_BACKEND
        self._indexes: Dict[RegistryKey, IndexStore] = {}

    def _key(self, index_name: str, backend: Optional[str]) -> RegistryKey:
        return (index_name, backend or self.default_backend)

    def _create(self, index_name: str, backend: str) -> IndexStore:
        if backend == "sqlite":
            return SqliteIndex(index_name, self.sqlite_config or SqliteConfig())
        if backend == "mysql":
            return MysqlIndex(index_name, self.mysql_config or MysqlConfig())
        raise ValueError(f"Unknown index backend '{backend}'. Expected 'sqlite' or 'mysql'.")

    def get(self, index_name: str, backend: Optional[str] = None) -> IndexStore:
        """Return the connected index, creating and connecting it if needed."""
        key = self._key(index_name, backend)
        index = self._indexes.get(key)
        if index is None:
            index = self._create(*key)
            # Connection failures surface here; nothing is registered then
            index.connect()
            self._indexes[key] = index
            logger.debug("index_registered", index=index_name, backend=key[1])
        return index

    def close(self, index_name: str, backend: Optional[str] = None) -> None:
        index = self._indexes.pop(self._key(index_name, backend), None)
        if index is not None:
            index.close()

    def close_all(self) -> None:
        while self._indexes:
            _, index = self._indexes.popitem()
            index.close()

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = self._key(key, None)
        return key in self._indexes

    def __len__(self) -> int:
        return len(self._indexes)

    def __iter__(self) -> Iterator[RegistryKey]:
        return iter(list(self._indexes))

    def __enter__(self) -> "IndexRegistry":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()
