"""Search listing – one shallow record per result row."""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from . import extract
from .errors import HarvesterError
from .extract import Query
from .gallery import TITLE
from .models import BasicGalleryInfo
from .session import Session

logger = logging.getLogger("exharvester.search")

RESULT_ROWS = Query("table.itg.gltc tr:not(:first-child)")
ROW_TITLE = Query("td.gl3m.glname > a > div")
ROW_LINK = Query("td.gl3m.glname > a", "href")


class SearchResolver:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.cfg = session.cfg

    async def search(self, page: int) -> list[BasicGalleryInfo]:
        """Fetch one results page.  Any unreadable row fails the whole page."""
        logger.debug("Searching page %d", page)
        params = [*self.cfg.search_params, ("page", str(page))]
        text, page_url = await self.session.get_text(self.cfg.search_url, params=params)
        doc = extract.parse_html(text)

        rows = extract.nodes(doc, RESULT_ROWS)
        logger.debug("Page %d has %d rows", page, len(rows))
        results = []
        for row in rows:
            title = extract.first_text(row, ROW_TITLE)
            url = urljoin(page_url, extract.first_attr(row, ROW_LINK))
            logger.debug("Found %s (%s)", title, url)
            results.append(BasicGalleryInfo(title=title, url=url, limit=True))
        return results

    async def search_n_pages(self, n: int) -> list[BasicGalleryInfo]:
        """Search pages ``0..n`` in order, logging and skipping pages that fail."""
        logger.info("Searching the first %d pages", n)
        results: list[BasicGalleryInfo] = []
        for page in range(n):
            try:
                results.extend(await self.search(page))
            except HarvesterError as exc:
                logger.error("Search page %d failed: %s", page, exc)
        logger.info("Found %d galleries", len(results))
        return results

    async def get_gallery_by_url(self, url: str) -> BasicGalleryInfo:
        logger.info("Fetching gallery %s", url)
        text, _ = await self.session.get_text(url)
        title = extract.first_text(extract.parse_html(text), TITLE)
        return BasicGalleryInfo(title=title, url=url, limit=True)
