"""
Search Module - Querying an index.

This module provides:
- query_builder: QueryBuilder, fluent predicate accumulation and execution
- dialect: per-backend SQL formatting (quoting, fulltext syntax, snippets)
- snippet: keyword-in-context extraction for backends without a snippet function
"""

from .dialect import Dialect, MysqlDialect, SqliteDialect, get_dialect
from .query_builder import QueryBuilder
from .snippet import SnippetExtractor

__all__ = [
    "Dialect",
    "MysqlDialect",
    "SqliteDialect",
    "get_dialect",
    "QueryBuilder",
    "SnippetExtractor",
]
