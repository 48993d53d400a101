from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Mapping, Optional
import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class StatementExecutor(ABC):
    """
    Executes parameterized SQL against one live connection.

    Every index store talks to its database only through this contract. Rows
    come back as plain dicts whose key order follows the selected columns.
    """

    def __init__(self):
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None

    @property
    @abstractmethod
    def backend(self) -> str:
        """Short backend name ("sqlite" or "mysql")."""
        pass

    @abstractmethod
    def _create_engine(self) -> Engine:
        """Build the SQLAlchemy engine for this backend."""
        pass

    def connect(self) -> None:
        """Open the connection used for all statements of this executor."""
        if self._connection is not None:
            return

        try:
            self._engine = self._create_engine()
            self._connection = self._engine.connect()
            logger.info(f"Opened {self.backend} index connection")
        except SQLAlchemyError as e:
            logger.error(f"Failed to connect to {self.backend} index database: {e}")
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
            raise

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info(f"Closed {self.backend} index connection")

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def health_check(self) -> bool:
        if self._connection is None:
            return False
        try:
            self.execute("SELECT 1")
            return True
        except SQLAlchemyError:
            logger.exception(f"{self.backend} index database unhealthy")
            return False

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise ConnectionError(f"The {self.backend} index is not connected. Call connect() first.")
        return self._connection

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """
        Provide a transactional scope around a series of statements.

        Nested calls join the outermost transaction, so a store method that is
        transactional on its own can also run inside a larger unit.
        """
        connection = self._require_connection()
        if connection.in_transaction():
            yield connection
            return

        with connection.begin():
            yield connection

    def execute(self, statement: str, parameters: Optional[Mapping[str, Any]] = None) -> List[Row]:
        """
        Execute one statement with named parameters.

        Args:
            statement: SQL text using ``:name`` placeholders
            parameters: Values for the placeholders

        Returns:
            The result rows as dicts, or an empty list for statements
            that return no rows
        """
        with self.transaction() as connection:
            result = connection.execute(text(statement), dict(parameters or {}))
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]
