"""Gallery resolution – metadata plus every listing page's image links."""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from . import extract
from .errors import PaginationOverflow
from .extract import Query
from .models import BasicGalleryInfo, FullGalleryInfo
from .session import Session

logger = logging.getLogger("exharvester.gallery")

TITLE = Query("h1#gn")
TITLE_JP = Query("h1#gj")
PARENT = Query('tr:has(> td:first-child:-soup-contains("Parent:")) > td:nth-child(2) a', "href")
TAG_ROWS = Query("div#taglist tr")
TAG_CATEGORY = Query("td:first-child")
TAG_VALUES = Query("td:nth-child(2) div a")
RATING = Query("td#rating_label")
FAVCOUNT = Query("td#favcount")
IMAGE_PAGES = Query("div#gdt a", "href")
NEXT_PAGE = Query("table.ptt td:last-child > a", "href")


def parse_tags(doc: BeautifulSoup) -> tuple[tuple[str, tuple[str, ...]], ...]:
    tags = []
    for row in extract.nodes(doc, TAG_ROWS, required=False):
        category = extract.first_text(row, TAG_CATEGORY).strip(":")
        tags.append((category, tuple(extract.texts(row, TAG_VALUES))))
    return tuple(tags)


def image_pages(doc: BeautifulSoup, base_url: str) -> list[str]:
    return [urljoin(base_url, href) for href in extract.attrs(doc, IMAGE_PAGES)]


def next_page(doc: BeautifulSoup, base_url: str) -> str | None:
    href = extract.optional_attr(doc, NEXT_PAGE)
    return urljoin(base_url, href) if href else None


class GalleryResolver:
    """Promotes a ``BasicGalleryInfo`` to a ``FullGalleryInfo``.

    Listing pages are fetched one after another since each page's next link is
    only known once it has been parsed.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.cfg = session.cfg

    async def resolve(self, basic: BasicGalleryInfo) -> FullGalleryInfo:
        logger.debug("Resolving gallery %s", basic.url)
        text, page_url = await self.session.get_text(basic.url)
        doc = extract.parse_html(text)

        title = extract.first_text(doc, TITLE)
        title_jp = extract.optional_text(doc, TITLE_JP)
        parent = extract.optional_attr(doc, PARENT)
        logger.debug("Parent gallery: %s", parent)
        tags = parse_tags(doc)
        logger.debug("Tags: %s", tags)
        rating = extract.token(extract.first_text(doc, RATING), 1, RATING)
        fav_cnt = extract.token(extract.first_text(doc, FAVCOUNT), 0, FAVCOUNT)
        logger.debug("Rating %s, favourited %s times", rating, fav_cnt)

        pages = image_pages(doc, page_url)
        fetched = 1
        while (url := next_page(doc, page_url)) is not None:
            if fetched >= self.cfg.max_pages:
                raise PaginationOverflow(basic.url, self.cfg.max_pages)
            logger.debug("Next listing page: %s", url)
            text, page_url = await self.session.get_text(url)
            doc = extract.parse_html(text)
            pages.extend(image_pages(doc, page_url))
            fetched += 1
        logger.debug("%s: %d image pages over %d listing pages", basic.url, len(pages), fetched)

        return FullGalleryInfo(
            title=title,
            title_jp=title_jp,
            url=basic.url,
            parent=parent,
            rating=rating,
            fav_cnt=fav_cnt,
            tags=tags,
            img_pages=tuple(pages),
            limit=basic.limit,
            max_img_cnt=self.cfg.max_img_cnt,
        )
