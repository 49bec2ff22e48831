"""Upload cache – source image URL → hosted URL, insert-once."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("exharvester.cache")


class UploadCache(Protocol):
    def get(self, url: str) -> str | None: ...

    def put(self, url: str, hosted_url: str) -> None: ...


class MemoryUploadCache:
    """Process-local cache.  A second ``put`` for a URL keeps the first value."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})

    def get(self, url: str) -> str | None:
        return self._entries.get(url)

    def put(self, url: str, hosted_url: str) -> None:
        existing = self._entries.setdefault(url, hosted_url)
        if existing != hosted_url:
            logger.debug("Keeping earlier upload of %s: %s", url, existing)

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        pass
