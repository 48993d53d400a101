from datetime import date, datetime

from simplesearch.index.schema import (
    IDENTIFIER_COLUMN,
    SchemaRegistry,
    fulltext_bucket_values,
    normalize_property_value,
    supplied_fulltext_buckets,
)


def test_normalize_property_value():
    assert normalize_property_value("Hello") == "Hello"
    assert normalize_property_value(3) == 3
    assert normalize_property_value(None) is None
    assert normalize_property_value(["a", "b", 3]) == "a,b,3"
    assert normalize_property_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05"
    assert normalize_property_value(date(2024, 1, 2)) == "2024-01-02 00:00:00"


def test_fulltext_bucket_values_fills_missing_buckets():
    values = fulltext_bucket_values({"h1": "Title", "text": None, "unknown": "x"})

    assert values == {"h1": "Title", "h2": "", "h3": "", "h4": "", "h5": "", "h6": "", "text": ""}


def test_supplied_fulltext_buckets_keeps_only_given_buckets():
    assert supplied_fulltext_buckets({"h2": "Sub", "unknown": "x"}) == {"h2": "Sub"}
    assert supplied_fulltext_buckets({}) == {}


def test_from_columns_skips_identifier():
    schema = SchemaRegistry.from_columns([IDENTIFIER_COLUMN, "title", "price"])

    assert len(schema) == 2
    assert "title" in schema
    assert IDENTIFIER_COLUMN not in schema


def test_diff_is_ordered_and_unique():
    schema = SchemaRegistry.from_columns(["title"])

    assert schema.diff(["price", "title", "color", "price"]) == ["price", "color"]
    assert schema.diff(["title"]) == []


def test_with_columns_returns_new_registry():
    schema = SchemaRegistry.from_columns(["title"])
    grown = schema.with_columns(["price"])

    assert "price" in grown
    assert "price" not in schema


def test_column_names_ignore_ascii_case():
    schema = SchemaRegistry.from_columns(["Title"])

    assert "title" in schema
    assert "TITLE" in schema
    assert schema.diff(["title", "Price", "price"]) == ["Price"]
