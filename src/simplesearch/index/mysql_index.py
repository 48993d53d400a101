from typing import Dict, List, Optional

from simplesearch.index.base import IndexStore
from simplesearch.index.schema import FULLTEXT_BUCKETS
from simplesearch.platform.logging import get_logger
from simplesearch.search.dialect import MysqlDialect
from simplesearch.storage.mysql_adapter import MysqlAdapter, MysqlConfig

logger = get_logger(__name__)

TABLE_OPTIONS = "DEFAULT CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci ENGINE = InnoDB"


class MysqlIndex(IndexStore):
    """
    Index stored in MySQL using an InnoDB FULLTEXT index over all buckets.

    The relations have fixed names, so one database holds one index.
    MySQL commits DDL implicitly: a column added by a failed write stays.
    """

    def __init__(self, index_name: str, config: Optional[MysqlConfig] = None, executor: Optional[MysqlAdapter] = None):
        config = config or MysqlConfig()
        super().__init__(index_name, executor or MysqlAdapter(config), MysqlDialect())

    def create_index_tables(self) -> None:
        identifier = self.dialect.identifier_column
        buckets = [self.dialect.quote(bucket) for bucket in FULLTEXT_BUCKETS]

        self.execute_statement(
            f"CREATE TABLE IF NOT EXISTS {self.dialect.quote(self.dialect.objects_table)} ("
            f"{identifier} VARCHAR(40), "
            f"PRIMARY KEY ({identifier})"
            f") {TABLE_OPTIONS}"
        )
        self.execute_statement(
            f"CREATE TABLE IF NOT EXISTS {self.dialect.quote(self.dialect.fulltext_table)} ("
            f"{identifier} VARCHAR(40), "
            + "".join(f"{bucket} MEDIUMTEXT, " for bucket in buckets)
            + f"PRIMARY KEY ({identifier}), "
            f"FULLTEXT nodeindex ({', '.join(buckets)})"
            f") {TABLE_OPTIONS}"
        )

    def load_property_columns(self) -> List[str]:
        rows = self.execute_statement(f"SHOW COLUMNS FROM {self.dialect.quote(self.dialect.objects_table)}")
        return [row["Field"] for row in rows]

    def add_property_column_statement(self, property_name: str) -> str:
        return (
            f"ALTER TABLE {self.dialect.quote(self.dialect.objects_table)} "
            f"ADD COLUMN {self.dialect.quote(property_name)} MEDIUMTEXT DEFAULT NULL"
        )

    def upsert_properties_statement(self, property_names: List[str]) -> str:
        columns = [self.dialect.identifier_column] + [self.dialect.quote(name) for name in property_names]
        values = [":identifier"] + [f":arg{number}" for number in range(1, len(property_names) + 1)]
        table = self.dialect.quote(self.dialect.objects_table)

        if not property_names:
            return f"INSERT IGNORE INTO {table} ({columns[0]}) VALUES (:identifier)"
        updates = ", ".join(f"{column} = VALUES({column})" for column in columns[1:])
        return (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(values)}) "
            f"ON DUPLICATE KEY UPDATE {updates}"
        )

    def replace_fulltext(self, fulltext: Dict[str, str], identifier: str) -> None:
        self.execute_statement(self.insert_fulltext_statement("REPLACE"), {"identifier": identifier, **fulltext})

    def optimize(self) -> None:
        """
        Rebuild the FULLTEXT index, then optimize both tables.

        innodb_optimize_fulltext_only is a server-wide setting; avoid running
        this during heavy write traffic.
        """
        fulltext = self.dialect.quote(self.dialect.fulltext_table)
        objects = self.dialect.quote(self.dialect.objects_table)

        self.execute_statement("SET GLOBAL innodb_optimize_fulltext_only = 1")
        try:
            self.execute_statement(f"OPTIMIZE TABLE {fulltext}")
        finally:
            self.execute_statement("SET GLOBAL innodb_optimize_fulltext_only = 0")
        self.execute_statement(f"OPTIMIZE TABLE {objects}, {fulltext}")
        logger.info("index_optimized", index=self.index_name, backend=self.dialect.name)
