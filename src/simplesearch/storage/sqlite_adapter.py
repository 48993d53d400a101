from hashlib import md5
from pathlib import Path
from typing import Optional
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from pydantic_settings import BaseSettings

from .base import StatementExecutor

logger = logging.getLogger(__name__)

MEMORY_STORAGE = ":memory:"


class SqliteConfig(BaseSettings):
    """Configuration for the embedded SQLite index files."""
    SQLITE_STORAGE_FOLDER: str = "data/simplesearch"
    SQLITE_BUSY_TIMEOUT_MS: int = 30000

    model_config = {"env_file": ".env", "extra": "ignore"}

    def database_path(self, index_name: str) -> Optional[Path]:
        """File holding the given index, or None for in-memory storage."""
        if self.SQLITE_STORAGE_FOLDER == MEMORY_STORAGE:
            return None
        return Path(self.SQLITE_STORAGE_FOLDER) / f"{md5(index_name.encode('utf-8')).hexdigest()}.db"


class SqliteAdapter(StatementExecutor):
    """
    SQLAlchemy-based executor for one SQLite index file.

    pysqlite's implicit transaction handling is switched off so that BEGIN is
    emitted by SQLAlchemy itself. This keeps ALTER TABLE inside the same
    transaction as the writes that follow it.
    """

    def __init__(self, config: SqliteConfig, index_name: str):
        super().__init__()
        self.config = config
        self.index_name = index_name
        self.database_path = config.database_path(index_name)

    @property
    def backend(self) -> str:
        return "sqlite"

    def _create_engine(self) -> Engine:
        if self.database_path is None:
            url = "sqlite://"
        else:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self.database_path}"
        logger.info(f"Opening SQLite index '{self.index_name}' at {self.database_path or MEMORY_STORAGE}")

        engine = create_engine(url)
        busy_timeout = self.config.SQLITE_BUSY_TIMEOUT_MS

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout)}")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(connection):
            connection.exec_driver_sql("BEGIN")

        return engine

    def execute_outside_transaction(self, statement: str) -> None:
        """Run a maintenance statement such as VACUUM in autocommit mode."""
        connection = self._require_connection()
        if connection.in_transaction():
            raise RuntimeError(f"Cannot run '{statement}' while a transaction is open")
        connection.connection.driver_connection.execute(statement)
