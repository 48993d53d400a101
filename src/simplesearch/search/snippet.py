"""Keyword-in-context snippet extraction.

Used by the query builder when the backend has no native snippet function.
The window is anchored on the densest cluster of term occurrences, trimmed to
whole words and bounded by ellipsis markers. Highlight markers are applied
to the final window only, so offsets are always computed on plain text.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import html
import re


MARKUP_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")


def strip_markup(text: str) -> str:
    """Remove tags, decode entities and collapse whitespace."""
    without_tags = MARKUP_PATTERN.sub(" ", text)
    return WHITESPACE_PATTERN.sub(" ", html.unescape(without_tags)).strip()


def searchable_text(values: Iterable[object]) -> str:
    """Join the non-empty values into one plain-text block."""
    parts = [strip_markup(str(value)) for value in values if value not in (None, "")]
    return " ".join(part for part in parts if part)


def split_terms(searchword: str) -> list[str]:
    return [term for term in searchword.split() if term]


def highlight_terms(text: str, terms: Sequence[str], begin_mark: str, end_mark: str) -> str:
    """
    Wrap every case-insensitive occurrence of the terms in the markers.

    All terms go into one alternation, longest first, so a short term can
    never match inside a marker inserted for another term.
    """
    unique_terms = sorted({term.lower() for term in terms if term}, key=len, reverse=True)
    if not unique_terms:
        return text
    pattern = re.compile("|".join(re.escape(term) for term in unique_terms), re.IGNORECASE)
    return pattern.sub(lambda match: f"{begin_mark}{match.group(0)}{end_mark}", text)


def find_term_locations(text: str, terms: Sequence[str]) -> list[int]:
    """Sorted, unique start offsets of every term occurrence."""
    # Matched on the original text; lowercasing can change its length
    locations: set[int] = set()
    for term in terms:
        pattern = re.compile(re.escape(term), re.IGNORECASE)
        locations.update(match.start() for match in pattern.finditer(text))
    return sorted(locations)


def choose_anchor(locations: Sequence[int]) -> int:
    """
    Pick the occurrence the window is built around.

    With more than two occurrences, the one starting the closest pair of
    neighbours wins; the first such pair wins ties.
    """
    if not locations:
        return 0
    anchor = locations[0]
    if len(locations) <= 2:
        return anchor

    smallest_gap: int | None = None
    for current, following in zip(locations, locations[1:]):
        gap = following - current
        if smallest_gap is None or gap < smallest_gap:
            smallest_gap = gap
            anchor = current
    return anchor


def window_start(anchor: int, text_length: int, length: int) -> int:
    start = max(anchor - length // 3, 0)
    if text_length - start < length:
        start = max(text_length - length, 0)
    return start


@dataclass(frozen=True)
class SnippetExtractor:
    """Bounded, highlighted excerpt around the best-scoring term cluster."""

    length: int = 60
    ellipsis: str = "..."
    begin_mark: str = "<b>"
    end_mark: str = "</b>"

    def extract(self, text: str, searchword: str) -> str:
        terms = split_terms(searchword)
        if not text or not terms:
            return ""

        locations = find_term_locations(text, terms)
        if not locations:
            return ""

        marked = highlight_terms(text, terms, self.begin_mark, self.end_mark)
        if len(marked) <= self.length:
            return marked

        start = window_start(choose_anchor(locations), len(text), self.length)
        end = start + self.length
        window = text[start:end]

        truncated_end = end < len(text)
        truncated_start = start > 0

        # Cut partial words at either edge of the window
        if truncated_end and not text[end].isspace():
            last_space = window.rfind(" ")
            if last_space > 0:
                window = window[:last_space]
        if truncated_start and not text[start - 1].isspace():
            first_space = window.find(" ")
            if first_space != -1:
                window = window[first_space + 1:]

        snippet = highlight_terms(window.strip(), terms, self.begin_mark, self.end_mark)
        if truncated_end:
            snippet = snippet + self.ellipsis
        if truncated_start:
            snippet = self.ellipsis + snippet
        return snippet
