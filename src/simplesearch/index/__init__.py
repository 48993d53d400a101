"""
Index Module - Document stores with on-demand schema evolution.

This module provides:
- schema: SchemaRegistry and fulltext bucket definitions
- base: IndexStore, the shared write and read paths
- sqlite_index / mysql_index: the embedded and client-server backends
- registry: IndexRegistry, explicit ownership of open index instances
"""

from .schema import FULLTEXT_BUCKETS, IDENTIFIER_COLUMN, SchemaRegistry

__all__ = [
    "FULLTEXT_BUCKETS",
    "IDENTIFIER_COLUMN",
    "SchemaRegistry",
]
