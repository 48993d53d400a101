"""SimpleSearch Storage Layer - Statement executors (embedded SQLite, MySQL)."""

from .base import StatementExecutor
from .sqlite_adapter import SqliteAdapter, SqliteConfig
from .mysql_adapter import MysqlAdapter, MysqlConfig

__all__ = [
    "StatementExecutor",
    "SqliteAdapter",
    "SqliteConfig",
    "MysqlAdapter",
    "MysqlConfig",
]
