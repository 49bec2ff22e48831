"""Markup extraction – CSS queries against parsed site pages."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from .errors import ExtractionError


@dataclass(frozen=True)
class Query:
    """A CSS selector, optionally reading an attribute instead of text."""
    selector: str
    attr: str | None = None

    def __str__(self) -> str:
        return f"{self.selector} @{self.attr}" if self.attr else self.selector


def parse_html(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def nodes(doc: BeautifulSoup | Tag, query: Query, *, required: bool = True) -> list[Tag]:
    found = doc.select(query.selector)
    if not found and required:
        raise ExtractionError(str(query))
    return found


def texts(doc: BeautifulSoup | Tag, query: Query, *, required: bool = True) -> list[str]:
    """Stripped text of each match; elements with no text do not count as matches."""
    values = [t for t in (n.get_text().strip() for n in doc.select(query.selector)) if t]
    if not values and required:
        raise ExtractionError(str(query))
    return values


def attrs(doc: BeautifulSoup | Tag, query: Query, *, required: bool = True) -> list[str]:
    if not query.attr:
        raise ValueError(f"{query.selector} has no attribute to read")
    values = [v for v in (n.get(query.attr) for n in doc.select(query.selector)) if isinstance(v, str) and v]
    if not values and required:
        raise ExtractionError(str(query))
    return values


def first_text(doc: BeautifulSoup | Tag, query: Query) -> str:
    return texts(doc, query)[0]


def first_attr(doc: BeautifulSoup | Tag, query: Query) -> str:
    return attrs(doc, query)[0]


def optional_text(doc: BeautifulSoup | Tag, query: Query) -> str | None:
    found = texts(doc, query, required=False)
    return found[0] if found else None


def optional_attr(doc: BeautifulSoup | Tag, query: Query) -> str | None:
    found = attrs(doc, query, required=False)
    return found[0] if found else None


def token(value: str, index: int, query: Query) -> str:
    """The ``index``-th whitespace-delimited token of an extracted value."""
    parts = value.split()
    if len(parts) <= index:
        raise ExtractionError(f"{query} (token {index} of {value!r})")
    return parts[index]
