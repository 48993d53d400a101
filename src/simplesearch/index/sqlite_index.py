from typing import Dict, List, Optional

from simplesearch.index.base import IndexStore
from simplesearch.index.schema import FULLTEXT_BUCKETS, IDENTIFIER_COLUMN
from simplesearch.platform.logging import get_logger
from simplesearch.search.dialect import SqliteDialect
from simplesearch.storage.sqlite_adapter import SqliteAdapter, SqliteConfig

logger = get_logger(__name__)


class SqliteIndex(IndexStore):
    """
    Index stored in one SQLite file using an FTS5 virtual table for fulltext.

    Property columns are added without a declared type, so stored values
    keep their scalar type (text, integer, real).
    """

    def __init__(self, index_name: str, config: Optional[SqliteConfig] = None, executor: Optional[SqliteAdapter] = None):
        config = config or SqliteConfig()
        super().__init__(index_name, executor or SqliteAdapter(config, index_name), SqliteDialect())

    def create_index_tables(self) -> None:
        objects = self.dialect.quote(self.dialect.objects_table)
        fulltext = self.dialect.quote(self.dialect.fulltext_table)
        identifier = self.dialect.identifier_column

        self.execute_statement(
            f"CREATE TABLE IF NOT EXISTS {objects} ({identifier} VARCHAR, PRIMARY KEY ({identifier}))"
        )
        self.execute_statement(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {fulltext} USING fts5("
            f"{IDENTIFIER_COLUMN} UNINDEXED, {', '.join(FULLTEXT_BUCKETS)})"
        )

    def load_property_columns(self) -> List[str]:
        rows = self.execute_statement(f"PRAGMA table_info({self.dialect.quote(self.dialect.objects_table)})")
        return [row["name"] for row in rows]

    def add_property_column_statement(self, property_name: str) -> str:
        return (
            f"ALTER TABLE {self.dialect.quote(self.dialect.objects_table)} "
            f"ADD COLUMN {self.dialect.quote(property_name)}"
        )

    def upsert_properties_statement(self, property_names: List[str]) -> str:
        identifier = self.dialect.identifier_column
        columns = [identifier] + [self.dialect.quote(name) for name in property_names]
        values = [":identifier"] + [f":arg{number}" for number in range(1, len(property_names) + 1)]

        statement = (
            f"INSERT INTO {self.dialect.quote(self.dialect.objects_table)} ({', '.join(columns)}) "
            f"VALUES ({', '.join(values)}) ON CONFLICT ({identifier}) DO "
        )
        if not property_names:
            return statement + "NOTHING"
        updates = ", ".join(f"{column} = excluded.{column}" for column in columns[1:])
        return statement + f"UPDATE SET {updates}"

    def replace_fulltext(self, fulltext: Dict[str, str], identifier: str) -> None:
        # FTS5 tables have no unique key to conflict on
        self.execute_statement(
            f"DELETE FROM {self.dialect.quote(self.dialect.fulltext_table)} "
            f"WHERE {self.dialect.identifier_column} = :identifier",
            {"identifier": identifier},
        )
        self.execute_statement(self.insert_fulltext_statement(), {"identifier": identifier, **fulltext})

    def optimize(self) -> None:
        """Merge the FTS5 index b-trees, then VACUUM the database file."""
        fulltext = self.dialect.quote(self.dialect.fulltext_table)
        self.execute_statement(f"INSERT INTO {fulltext}({fulltext}) VALUES ('optimize')")
        self.executor.execute_outside_transaction("VACUUM")
        logger.info("index_optimized", index=self.index_name, backend=self.dialect.name)
