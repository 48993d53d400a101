from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from simplesearch.index.schema import (
    FULLTEXT_BUCKETS,
    IDENTIFIER_COLUMN,
    SchemaRegistry,
    fold_column_name,
    fulltext_bucket_values,
    normalize_property_value,
    supplied_fulltext_buckets,
)
from simplesearch.platform.logging import get_logger
from simplesearch.search.dialect import Dialect
from simplesearch.search.query_builder import QueryBuilder
from simplesearch.storage.base import StatementExecutor

logger = get_logger(__name__)


class IndexStore(ABC):
    """
    One named index: a properties relation that grows a column per property
    name, and a fulltext relation with the buckets h1..h6 and text.

    Subclasses supply the backend DDL; the write paths here are shared.
    """

    def __init__(self, index_name: str, executor: StatementExecutor, dialect: Dialect):
        self.index_name = index_name
        self.executor = executor
        self.dialect = dialect
        self.schema = SchemaRegistry()

    # --- Lifecycle ---

    def connect(self) -> None:
        """Connect, create missing relations and load the known property columns."""
        self.executor.connect()
        self.create_index_tables()
        self.refresh_schema()
        logger.info("index_connected", index=self.index_name, backend=self.dialect.name, properties=len(self.schema))

    def close(self) -> None:
        self.executor.close()

    def health_check(self) -> bool:
        return self.executor.health_check()

    def __enter__(self) -> "IndexStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_index_name(self) -> str:
        return self.index_name

    def query(self) -> QueryBuilder:
        """Start a new query against this index."""
        return QueryBuilder(self, self.dialect)

    # --- Backend specifics ---

    @abstractmethod
    def create_index_tables(self) -> None:
        pass

    @abstractmethod
    def load_property_columns(self) -> List[str]:
        """Column names currently present on the properties relation."""
        pass

    @abstractmethod
    def add_property_column_statement(self, property_name: str) -> str:
        pass

    @abstractmethod
    def upsert_properties_statement(self, property_names: List[str]) -> str:
        """
        Insert the identifier row or update only the given columns.

        Binds ``:identifier`` and ``:arg1`` .. ``:argN`` in the order of
        ``property_names``.
        """
        pass

    @abstractmethod
    def replace_fulltext(self, fulltext: Dict[str, str], identifier: str) -> None:
        """Replace all buckets of the identifier's fulltext row."""
        pass

    @abstractmethod
    def optimize(self) -> None:
        """Backend maintenance; may do nothing if the backend has none."""
        pass

    # --- Schema evolution ---

    def refresh_schema(self) -> None:
        self.schema = SchemaRegistry.from_columns(self.load_property_columns())

    def apply_migration(self, columns: Iterable[str]) -> None:
        """Add the given property columns. Columns already known are skipped."""
        for column in columns:
            if column in self.schema:
                continue
            self.execute_statement(self.add_property_column_statement(column), {})
            self.schema = self.schema.with_columns([column])
            logger.info("added_property_column", index=self.index_name, column=column)

    def _recover_schema(self, snapshot: SchemaRegistry) -> None:
        # A failed write may have rolled back (or, on MySQL, kept) an ALTER
        try:
            self.refresh_schema()
        except SQLAlchemyError as e:
            logger.warning("schema_refresh_failed", index=self.index_name, error=str(e))
            self.schema = snapshot

    # --- Writes ---

    def index_data(self, identifier: str, properties: Mapping[str, Any], fulltext: Mapping[str, Any]) -> None:
        """
        Store a document.

        Args:
            identifier: Document identifier
            properties: Property values; unknown names get a new column
            fulltext: Bucket texts (keys h1..h6, text), all optional. Buckets
                not given are stored as empty strings.
        """
        snapshot = self.schema
        try:
            with self.executor.transaction():
                self.apply_migration(self.schema.diff(properties.keys()))
                self._upsert_properties(properties, identifier)
                self.replace_fulltext(fulltext_bucket_values(fulltext), identifier)
        except Exception:
            self._recover_schema(snapshot)
            raise
        logger.debug("indexed_document", index=self.index_name, identifier=identifier)

    def insert_or_update_properties_to_index(self, properties: Mapping[str, Any], identifier: str) -> None:
        """Patch the properties of an entry without touching its fulltext."""
        snapshot = self.schema
        try:
            with self.executor.transaction():
                self.apply_migration(self.schema.diff(properties.keys()))
                self._upsert_properties(properties, identifier)
        except Exception:
            self._recover_schema(snapshot)
            raise

    def _upsert_properties(self, properties: Mapping[str, Any], identifier: str) -> None:
        # Case variants of one name address the same column; the last value wins
        values: Dict[str, Any] = {}
        names: Dict[str, str] = {}
        for name, value in properties.items():
            folded = fold_column_name(name)
            names.setdefault(folded, name)
            values[folded] = value

        property_names = list(names.values())
        parameters: Dict[str, Any] = {"identifier": identifier}
        for number, folded in enumerate(names, start=1):
            parameters[f"arg{number}"] = normalize_property_value(values[folded])
        self.execute_statement(self.upsert_properties_statement(property_names), parameters)

    def add_to_fulltext(self, fulltext: Mapping[str, Any], identifier: str) -> None:
        """
        Append text to the stored buckets of an existing entry.

        Buckets missing from ``fulltext`` stay unchanged. Unknown identifiers
        are ignored.
        """
        buckets = supplied_fulltext_buckets(fulltext)
        if not buckets:
            return

        assignments = []
        parameters: Dict[str, Any] = {"identifier": identifier}
        for bucket, value in buckets.items():
            parameter_name = f"bucket_{bucket}"
            assignments.append(f"{self.dialect.quote(bucket)} = {self.dialect.append_with_space(bucket, parameter_name)}")
            parameters[parameter_name] = value

        self.execute_statement(
            f"UPDATE {self.dialect.quote(self.dialect.fulltext_table)} SET {', '.join(assignments)} "
            f"WHERE {self.dialect.identifier_column} = :identifier",
            parameters,
        )

    def remove_data(self, identifier: str) -> None:
        with self.executor.transaction():
            for table in (self.dialect.objects_table, self.dialect.fulltext_table):
                self.execute_statement(
                    f"DELETE FROM {self.dialect.quote(table)} WHERE {self.dialect.identifier_column} = :identifier",
                    {"identifier": identifier},
                )

    def flush(self) -> None:
        """Drop and recreate both relations empty."""
        with self.executor.transaction():
            for table in (self.dialect.objects_table, self.dialect.fulltext_table):
                self.execute_statement(f"DROP TABLE IF EXISTS {self.dialect.quote(table)}", {})
            self.create_index_tables()
        self.schema = SchemaRegistry()
        logger.info("index_flushed", index=self.index_name)

    # --- Reads ---

    def execute_statement(self, statement: str, parameters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a parameterized statement and return its rows."""
        try:
            return self.executor.execute(statement, parameters)
        except SQLAlchemyError as e:
            logger.error("statement_failed", index=self.index_name, statement=statement, error=str(e))
            raise

    def find_one_by_identifier(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Return the properties row of an entry, or None if it doesn't exist."""
        rows = self.execute_statement(
            f"SELECT * FROM {self.dialect.quote(self.dialect.objects_table)} "
            f"WHERE {self.dialect.identifier_column} = :identifier LIMIT 1",
            {"identifier": identifier},
        )
        return rows[0] if rows else None

    def find_fulltext_by_identifier(self, identifier: str) -> Optional[Dict[str, str]]:
        """Return the stored fulltext buckets of an entry, or None if it doesn't exist."""
        rows = self.execute_statement(
            self.dialect.fulltext_rows_statement(["identifier"]), {"identifier": identifier}
        )
        if not rows:
            return None
        return {bucket: rows[0][bucket] for bucket in FULLTEXT_BUCKETS}

    def insert_fulltext_statement(self, verb: str = "INSERT") -> str:
        columns = ", ".join([self.dialect.identifier_column] + [self.dialect.quote(bucket) for bucket in FULLTEXT_BUCKETS])
        values = ", ".join([":identifier"] + [f":{bucket}" for bucket in FULLTEXT_BUCKETS])
        return f"{verb} INTO {self.dialect.quote(self.dialect.fulltext_table)} ({columns}) VALUES ({values})"


__all__ = ["IndexStore", "IDENTIFIER_COLUMN"]
