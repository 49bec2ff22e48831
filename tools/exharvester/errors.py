"""Exception hierarchy – one type per stage that can fail."""

from __future__ import annotations


class HarvesterError(Exception):
    """Base class for every error raised by the harvester."""


class AuthError(HarvesterError):
    """Login or cookie bootstrap did not produce a usable session."""


class HttpError(HarvesterError):
    """A request failed: non-2xx status, transport failure or timeout."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TooManyRedirects(HttpError):
    """A request exceeded the session's redirect hop limit."""


class ExtractionError(HarvesterError):
    """Expected markup was absent from a fetched document."""

    def __init__(self, query: str) -> None:
        super().__init__(f"no match for {query}")
        self.query = query


class PaginationOverflow(HarvesterError):
    """Gallery pagination kept yielding next-page links past the safety bound."""

    def __init__(self, url: str, max_pages: int) -> None:
        super().__init__(f"{url}: more than {max_pages} listing pages")
        self.url = url
        self.max_pages = max_pages


class ResolutionFailed(HarvesterError):
    """An image page could not be resolved and hosted within the retry budget."""

    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"could not resolve image from {url} after {attempts} attempts")
        self.url = url
        self.attempts = attempts


class UploadError(HarvesterError):
    """The remote image host rejected or failed a staged upload."""
