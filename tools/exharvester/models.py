"""Data records produced by the resolvers and the upload pipeline.

Records hold plain data only; anything that needs the network takes the
session explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import ResolutionFailed

logger = logging.getLogger("exharvester.models")


@dataclass(frozen=True)
class BasicGalleryInfo:
    """A search row or a user-supplied gallery link."""

    title: str
    url: str
    limit: bool = True  # cap the image count when uploading


@dataclass(frozen=True)
class FullGalleryInfo:
    """Complete gallery metadata plus every image page, in document order."""

    title: str
    url: str
    rating: str
    fav_cnt: str
    title_jp: str | None = None
    parent: str | None = None
    tags: tuple[tuple[str, tuple[str, ...]], ...] = ()
    img_pages: tuple[str, ...] = ()
    limit: bool = True
    max_img_cnt: int = 50

    @property
    def display_title(self) -> str:
        return self.title_jp or self.title

    def effective_image_pages(self) -> tuple[str, ...]:
        """Image pages to upload: the first ``max_img_cnt`` when limited."""
        if not self.limit:
            return self.img_pages
        pages = self.img_pages[: self.max_img_cnt]
        logger.info("Keeping %d of %d images", len(pages), len(self.img_pages))
        return pages


@dataclass
class UploadResult:
    """Hosted URLs index-aligned with the image pages that produced them.

    A ``None`` entry marks an item that failed under the collect-all policy;
    its error is in ``failures``.
    """

    hosted_urls: list[str | None]
    failures: list[ResolutionFailed] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def __len__(self) -> int:
        return len(self.hosted_urls)
