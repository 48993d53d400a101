"""
Backend formatting strategies for the query builder and index stores.

A Dialect knows how one backend quotes identifiers, names its two relations,
expresses a fulltext match and compares dates. It also says whether the
backend has a native snippet function.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from simplesearch.index.schema import DATETIME_FORMAT, FULLTEXT_BUCKETS, IDENTIFIER_COLUMN


class Dialect(ABC):
    """Abstract formatting strategy."""

    name: str = ""
    objects_table: str = ""
    fulltext_table: str = ""
    native_snippet: bool = False

    # LIMIT value meaning "no limit", needed when only an offset is set
    unbounded_limit: str = ""

    # Bound identifiers per statement when looking up snippet candidates;
    # SQLite's historic limit is 999 host parameters.
    max_identifier_parameters: int = 990

    @property
    @abstractmethod
    def quote_character(self) -> str:
        pass

    def quote(self, identifier: str) -> str:
        """Quote a table or column name. Embedded quote characters are doubled."""
        q = self.quote_character
        return f"{q}{identifier.replace(q, q + q)}{q}"

    @property
    def identifier_column(self) -> str:
        return self.quote(IDENTIFIER_COLUMN)

    def qualified_column(self, column: str) -> str:
        return f"{self.quote(self.objects_table)}.{self.quote(column)}"

    @abstractmethod
    def fulltext_predicate(self, parameter_name: str) -> str:
        """WHERE fragment restricting objects to identifiers matching the bound search word."""
        pass

    def fulltext_query(self, searchword: str) -> str:
        """Bound value for the fulltext predicate."""
        return searchword

    @abstractmethod
    def date_comparison(self, column: str, comparator: str, value: str) -> str:
        """Compare a stored date column against a literal formatted with DATETIME_FORMAT."""
        pass

    @abstractmethod
    def append_with_space(self, column: str, parameter_name: str) -> str:
        """Expression appending the bound value to a column, separated by one space."""
        pass

    def fulltext_rows_statement(self, identifier_parameters: Sequence[str]) -> str:
        placeholders = ", ".join(f":{name}" for name in identifier_parameters)
        columns = ", ".join([self.identifier_column] + [self.quote(bucket) for bucket in FULLTEXT_BUCKETS])
        return (
            f"SELECT {columns} FROM {self.quote(self.fulltext_table)} "
            f"WHERE {self.identifier_column} IN ({placeholders})"
        )

    def snippet_statement(self, identifier_parameters: Sequence[str]) -> str:
        raise NotImplementedError(f"The {self.name} backend has no native snippet function")


class SqliteDialect(Dialect):
    """SQLite with an FTS5 virtual table; snippet() is available."""

    name = "sqlite"
    objects_table = "objects"
    fulltext_table = "fulltext"
    native_snippet = True
    unbounded_limit = "-1"

    # FTS5 accepts between 1 and 64 tokens per snippet
    max_snippet_tokens = 64

    @property
    def quote_character(self) -> str:
        return '"'

    def fulltext_predicate(self, parameter_name: str) -> str:
        table = self.quote(self.fulltext_table)
        return (
            f"({self.identifier_column} IN (SELECT {self.identifier_column} FROM {table} "
            f"WHERE {table} MATCH :{parameter_name}))"
        )

    def fulltext_query(self, searchword: str) -> str:
        """
        Quote every whitespace-separated term as an FTS5 string.

        Unquoted, FTS5 reads punctuation in words like "don't", "e-mail" or
        "node.js" as query syntax and fails. Quoted terms are still ANDed.
        """
        return " ".join('"' + term.replace('"', '""') + '"' for term in searchword.split())

    def date_comparison(self, column: str, comparator: str, value: str) -> str:
        return f"datetime({self.quote(column)}) {comparator} strftime('{DATETIME_FORMAT}', '{value}')"

    def append_with_space(self, column: str, parameter_name: str) -> str:
        quoted = self.quote(column)
        return f"CASE WHEN {quoted} = '' THEN :{parameter_name} ELSE {quoted} || ' ' || :{parameter_name} END"

    def snippet_statement(self, identifier_parameters: Sequence[str]) -> str:
        table = self.quote(self.fulltext_table)
        placeholders = ", ".join(f":{name}" for name in identifier_parameters)
        return (
            f"SELECT snippet({table}, -1, :begin_mark, :end_mark, :ellipsis, :tokens) AS snippet "
            f"FROM {table} WHERE {table} MATCH :searchword "
            f"AND {self.identifier_column} IN ({placeholders}) LIMIT 1"
        )

    def snippet_tokens(self, window_size: int) -> int:
        return max(1, min(window_size, self.max_snippet_tokens))


class MysqlDialect(Dialect):
    """MySQL/InnoDB with a FULLTEXT index; snippets are built in Python."""

    name = "mysql"
    objects_table = "fulltext_objects"
    fulltext_table = "fulltext_index"
    native_snippet = False
    unbounded_limit = "18446744073709551615"

    @property
    def quote_character(self) -> str:
        return "`"

    @property
    def fulltext_columns(self) -> str:
        return ", ".join(self.quote(bucket) for bucket in FULLTEXT_BUCKETS)

    def fulltext_predicate(self, parameter_name: str) -> str:
        return (
            f"({self.identifier_column} IN (SELECT {self.identifier_column} FROM {self.quote(self.fulltext_table)} "
            f"WHERE MATCH ({self.fulltext_columns}) AGAINST (:{parameter_name})))"
        )

    def date_comparison(self, column: str, comparator: str, value: str) -> str:
        return f"CAST({self.quote(column)} AS DATETIME) {comparator} CAST('{value}' AS DATETIME)"

    def append_with_space(self, column: str, parameter_name: str) -> str:
        quoted = self.quote(column)
        return f"CASE WHEN {quoted} = '' THEN :{parameter_name} ELSE CONCAT({quoted}, ' ', :{parameter_name}) END"


DIALECTS = {
    SqliteDialect.name: SqliteDialect,
    MysqlDialect.name: MysqlDialect,
}


def get_dialect(name: str) -> Dialect:
    try:
        return DIALECTS[name]()
    except KeyError:
        raise ValueError(f"Unknown index backend '{name}'. Expected one of: {', '.join(DIALECTS)}") from None
