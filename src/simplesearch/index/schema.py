"""
Index schema primitives.

The properties relation grows one column per property name ever indexed.
SchemaRegistry is the in-memory record of those columns; ``diff`` is pure and
the stores apply its result as a migration.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
import string
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping

IDENTIFIER_COLUMN = "__identifier__"

FULLTEXT_BUCKETS = ("h1", "h2", "h3", "h4", "h5", "h6", "text")

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def fold_column_name(name: str) -> str:
    """Column names differing only in ASCII case are the same column on both backends."""
    return name.translate(_ASCII_LOWER)


def normalize_property_value(value: Any) -> Any:
    """
    Convert a property value into a storable scalar.

    Lists, tuples and sets are flattened to a comma-joined string, dates are
    rendered with DATETIME_FORMAT so date comparisons work on the stored text.
    """
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(normalize_property_value(item)) for item in value)
    if isinstance(value, datetime):
        return value.strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).strftime(DATETIME_FORMAT)
    return value


def fulltext_bucket_values(fulltext: Mapping[str, Any]) -> Dict[str, str]:
    """All seven buckets, with missing or None buckets as empty strings."""
    return {bucket: str(fulltext.get(bucket) or "") for bucket in FULLTEXT_BUCKETS}


def supplied_fulltext_buckets(fulltext: Mapping[str, Any]) -> Dict[str, str]:
    """Only the known buckets actually present in ``fulltext``."""
    return {
        bucket: str(fulltext[bucket] if fulltext[bucket] is not None else "")
        for bucket in FULLTEXT_BUCKETS
        if bucket in fulltext
    }


@dataclass(frozen=True)
class SchemaRegistry:
    """Property columns known to exist on the properties relation."""

    columns: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_columns(cls, columns: Iterable[str]) -> "SchemaRegistry":
        return cls(frozenset(column for column in columns if column != IDENTIFIER_COLUMN))

    @property
    def folded_columns(self) -> FrozenSet[str]:
        return frozenset(fold_column_name(column) for column in self.columns)

    def __contains__(self, column: object) -> bool:
        return isinstance(column, str) and fold_column_name(column) in self.folded_columns

    def __len__(self) -> int:
        return len(self.columns)

    def diff(self, property_names: Iterable[str]) -> List[str]:
        """
        Columns that must be added before ``property_names`` can be stored.

        Order follows the input. Names are compared ignoring ASCII case, so
        duplicates and case variants of known columns are dropped.
        """
        known = set(self.folded_columns)
        missing: List[str] = []
        for name in property_names:
            folded = fold_column_name(name)
            if folded not in known:
                known.add(folded)
                missing.append(name)
        return missing

    def with_columns(self, columns: Iterable[str]) -> "SchemaRegistry":
        return SchemaRegistry(self.columns | frozenset(columns))
