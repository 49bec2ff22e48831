"""ExHentai facade – one session, plus the resolvers that borrow it."""

from __future__ import annotations

import logging

import httpx

from . import session as session_mod
from .config import SiteConfig
from .gallery import GalleryResolver
from .models import BasicGalleryInfo, FullGalleryInfo
from .search import SearchResolver
from .session import Session

logger = logging.getLogger("exharvester.client")


class ExHentai:
    """Entry point for crawling.  Galleries it returns are plain data and
    stay usable after it is closed; resolving them needs an open instance."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._search = SearchResolver(session)
        self._gallery = GalleryResolver(session)

    @classmethod
    async def authenticate(
        cls, cfg: SiteConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> ExHentai:
        return cls(await session_mod.authenticate(cfg, transport=transport))

    @classmethod
    async def from_cookie(
        cls,
        cfg: SiteConfig,
        raw_cookie: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ExHentai:
        return cls(await session_mod.from_cookie(cfg, raw_cookie, transport=transport))

    @classmethod
    async def connect(
        cls, cfg: SiteConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> ExHentai:
        """Use the configured cookie when there is one, otherwise log in."""
        if cfg.cookie:
            return await cls.from_cookie(cfg, transport=transport)
        return await cls.authenticate(cfg, transport=transport)

    # ── lookups ──────────────────────────────────────────────────

    async def search(self, page: int) -> list[BasicGalleryInfo]:
        return await self._search.search(page)

    async def search_n_pages(self, n: int) -> list[BasicGalleryInfo]:
        return await self._search.search_n_pages(n)

    async def get_gallery_by_url(self, url: str) -> BasicGalleryInfo:
        return await self._search.get_gallery_by_url(url)

    async def resolve(self, basic: BasicGalleryInfo) -> FullGalleryInfo:
        return await self._gallery.resolve(basic)

    # ── lifecycle ────────────────────────────────────────────────

    async def aclose(self) -> None:
        await self.session.aclose()

    async def __aenter__(self) -> ExHentai:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
