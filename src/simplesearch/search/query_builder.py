"""
Query Builder - Fluent, backend-agnostic search over one index.

Predicates accumulate as WHERE fragments that are ANDed together. Values are
always bound as named parameters; only date comparisons and caller-supplied
custom conditions are rendered into the SQL text.
"""

from datetime import date
from hashlib import md5
from typing import Any, Dict, Iterator, List, Optional, Sequence, TYPE_CHECKING

from simplesearch.index.schema import FULLTEXT_BUCKETS, IDENTIFIER_COLUMN, normalize_property_value
from simplesearch.platform.logging import get_logger
from simplesearch.search.dialect import Dialect
from simplesearch.search.snippet import SnippetExtractor, searchable_text

if TYPE_CHECKING:
    from simplesearch.index.base import IndexStore

logger = get_logger(__name__)


def _chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for offset in range(0, len(items), size):
        yield items[offset:offset + size]


class QueryBuilder:
    """
    Accumulates predicates, sorting and pagination for one query.

    Every predicate method returns the builder so calls can be chained:

        index.query().exact_match("title", "Hello").fulltext("World").execute()
    """

    def __init__(self, index: "IndexStore", dialect: Optional[Dialect] = None):
        self.index = index
        self.dialect = dialect or index.dialect
        self._where: List[str] = []
        self._sorting: List[str] = []
        self._parameters: Dict[str, Any] = {}
        self._limit: Optional[int] = None
        self._from: Optional[int] = None

    # --- Sorting and pagination ---

    def sort_asc(self, property_name: str) -> "QueryBuilder":
        self._sorting.append(f"{self.dialect.qualified_column(property_name)} ASC")
        return self

    def sort_desc(self, property_name: str) -> "QueryBuilder":
        self._sorting.append(f"{self.dialect.qualified_column(property_name)} DESC")
        return self

    def limit(self, limit: Optional[int]) -> "QueryBuilder":
        """Return at most ``limit`` rows; None removes the bound."""
        self._limit = None if limit is None else int(limit)
        return self

    def from_(self, offset: Optional[int]) -> "QueryBuilder":
        """Skip the first ``offset`` rows; None removes the offset."""
        self._from = None if offset is None else int(offset)
        return self

    # --- Predicates ---

    def exact_match(self, property_name: str, value: Any) -> "QueryBuilder":
        return self._compare(property_name, value, "=")

    def like(self, property_name: str, value: Any) -> "QueryBuilder":
        parameter_name = self._parameter_name(property_name)
        self._where.append(f"({self.dialect.quote(property_name)} LIKE :{parameter_name})")
        self._parameters[parameter_name] = f"%{value}%"
        return self

    def any_match(self, property_name: str, values: Optional[Sequence[Any]]) -> "QueryBuilder":
        """Match rows whose property equals any of ``values``. Empty input adds nothing."""
        return self._any(property_name, values, "=", lambda value: value)

    def like_any_match(self, property_name: str, values: Optional[Sequence[Any]]) -> "QueryBuilder":
        """Match rows whose property contains any of ``values``. Empty input adds nothing."""
        return self._any(property_name, values, "LIKE", lambda value: f"%{value}%")

    def greater_than(self, property_name: str, value: Any) -> "QueryBuilder":
        return self._compare(property_name, value, ">")

    def greater_than_or_equal(self, property_name: str, value: Any) -> "QueryBuilder":
        return self._compare(property_name, value, ">=")

    def less_than(self, property_name: str, value: Any) -> "QueryBuilder":
        return self._compare(property_name, value, "<")

    def less_than_or_equal(self, property_name: str, value: Any) -> "QueryBuilder":
        return self._compare(property_name, value, "<=")

    def fulltext(self, searchword: str) -> "QueryBuilder":
        parameter_name = self._parameter_name("FULLTEXT")
        self._where.append(self.dialect.fulltext_predicate(parameter_name))
        self._parameters[parameter_name] = self.dialect.fulltext_query(searchword)
        return self

    def custom_condition(self, condition: str) -> "QueryBuilder":
        """Add a raw WHERE fragment verbatim. The caller is responsible for its safety."""
        self._where.append(condition)
        return self

    # --- Execution ---

    def build_query(self) -> str:
        query = f"SELECT * FROM {self.dialect.quote(self.dialect.objects_table)}"
        if self._where:
            query += " WHERE " + " AND ".join(self._where)
        if self._sorting:
            query += " ORDER BY " + ", ".join(self._sorting)

        if self._limit is not None:
            query += f" LIMIT {self._limit}"
        elif self._from is not None:
            # Neither backend accepts OFFSET without LIMIT
            query += f" LIMIT {self.dialect.unbounded_limit}"
        if self._from is not None:
            query += f" OFFSET {self._from}"

        return query

    @property
    def parameters(self) -> Dict[str, Any]:
        return dict(self._parameters)

    def execute(self) -> List[Dict[str, Any]]:
        """Run the query and return the matching rows (possibly empty)."""
        rows = self.index.execute_statement(self.build_query(), self._parameters)
        return list(rows) if rows else []

    def count(self) -> int:
        return len(self.execute())

    def fulltext_match_result(
        self,
        searchword: str,
        window_size: int = 60,
        ellipsis: str = "...",
        begin_mark: str = "<b>",
        end_mark: str = "</b>",
    ) -> str:
        """
        Produce a highlighted snippet for the first matching document.

        Args:
            searchword: Search terms, separated by whitespace
            window_size: Snippet length; characters for extracted snippets,
                tokens (at most 64) for the native SQLite snippet
            ellipsis: Marks text cut off at either end of the snippet
            begin_mark: Inserted immediately before each matched term
            end_mark: Inserted immediately after each matched term

        Returns:
            The snippet, or an empty string if no matching document yields one
        """
        searchword = searchword.strip()
        if not searchword:
            return ""

        identifiers = [row[IDENTIFIER_COLUMN] for row in self.execute()]
        extractor = SnippetExtractor(
            length=window_size, ellipsis=ellipsis, begin_mark=begin_mark, end_mark=end_mark
        )

        for chunk in _chunked(identifiers, self.dialect.max_identifier_parameters):
            identifier_parameters = {f"identifier_{position}": identifier for position, identifier in enumerate(chunk)}
            if self.dialect.native_snippet:
                snippet = self._native_snippet(identifier_parameters, searchword, extractor)
            else:
                snippet = self._extracted_snippet(identifier_parameters, searchword, extractor)
            if snippet:
                return snippet

        logger.debug("no_snippet_found", index=self.index.get_index_name(), searchword=searchword)
        return ""

    # --- Internals ---

    def _parameter_name(self, property_name: str, suffix: str = "") -> str:
        # Unique per (property, predicate position) so repeated predicates never collide
        digest = md5(f"{property_name}#{len(self._where)}#{suffix}".encode("utf-8")).hexdigest()
        return f"p_{digest}"

    def _compare(self, property_name: str, value: Any, comparator: str) -> "QueryBuilder":
        if isinstance(value, date):
            self._where.append(
                self.dialect.date_comparison(property_name, comparator, normalize_property_value(value))
            )
        else:
            parameter_name = self._parameter_name(property_name)
            self._parameters[parameter_name] = value
            self._where.append(f"({self.dialect.quote(property_name)} {comparator} :{parameter_name})")
        return self

    def _any(self, property_name: str, values: Optional[Sequence[Any]], operator: str, transform) -> "QueryBuilder":
        if not values or values[0] is None:
            return self

        column = self.dialect.quote(property_name)
        alternatives = []
        for position, value in enumerate(values):
            parameter_name = self._parameter_name(property_name, str(position))
            self._parameters[parameter_name] = transform(value)
            alternatives.append(f"({column} {operator} :{parameter_name})")

        self._where.append("(" + " OR ".join(alternatives) + ")")
        return self

    def _native_snippet(self, identifier_parameters: Dict[str, Any], searchword: str, extractor: SnippetExtractor) -> str:
        parameters = dict(identifier_parameters)
        parameters.update({
            "begin_mark": extractor.begin_mark,
            "end_mark": extractor.end_mark,
            "ellipsis": extractor.ellipsis,
            "tokens": self.dialect.snippet_tokens(extractor.length),
            "searchword": self.dialect.fulltext_query(searchword),
        })
        rows = self.index.execute_statement(self.dialect.snippet_statement(list(identifier_parameters)), parameters)
        if rows and rows[0].get("snippet"):
            return rows[0]["snippet"]
        return ""

    def _extracted_snippet(self, identifier_parameters: Dict[str, Any], searchword: str, extractor: SnippetExtractor) -> str:
        rows = self.index.execute_statement(
            self.dialect.fulltext_rows_statement(list(identifier_parameters)), identifier_parameters
        )
        rows_by_identifier = {row[IDENTIFIER_COLUMN]: row for row in rows}

        # Keep the order of the main query
        for identifier in identifier_parameters.values():
            row = rows_by_identifier.get(identifier)
            if row is None:
                continue
            text = searchable_text(row.get(bucket) for bucket in FULLTEXT_BUCKETS)
            snippet = extractor.extract(text, searchword)
            if snippet:
                return snippet
        return ""
