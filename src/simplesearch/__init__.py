"""
SimpleSearch - Schema-evolving document index with fulltext search

This package contains:
- storage: Statement executors (embedded SQLite file, MySQL server)
- index: Index stores (schema evolution, document CRUD) and the index registry
- search: Query builder, backend dialects and keyword-in-context snippets
- platform: Cross-cutting concerns (configuration, logging)
"""

__version__ = "0.1.0"
