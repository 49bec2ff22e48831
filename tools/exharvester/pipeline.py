"""Image upload pipeline – image page → direct URL → cache or download+rehost."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from urllib.parse import urljoin, urlsplit

import httpx

from . import extract
from .cache import UploadCache
from .config import UploadConfig
from .errors import HttpError, ResolutionFailed
from .extract import Query
from .hosting import ImageHost, sniff_extension
from .models import FullGalleryInfo, UploadResult
from .session import Session

logger = logging.getLogger("exharvester.pipeline")

IMAGE_SRC = Query("img#img", "src")


class ImageUploadPipeline:
    """Mirrors a gallery's images with at most ``cfg.concurrency`` in flight.

    Two workers racing on the same unseen image may both upload it; the cache
    keeps whichever hosted URL is recorded first.
    """

    def __init__(
        self,
        session: Session,
        cache: UploadCache,
        host: ImageHost,
        cfg: UploadConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session
        self.cache = cache
        self.host = host
        self.cfg = cfg or UploadConfig()
        self._sleep = sleep
        self._transport = transport
        self.stats = {"cached": 0, "uploaded": 0, "failed": 0}

    def _download_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.cfg.timeout,
            proxy=self.cfg.proxy,
            follow_redirects=True,
            transport=self._transport,
        )

    # ── single image ─────────────────────────────────────────────

    async def resolve_image_url(self, page_url: str) -> str:
        """Read the direct image URL off an image page."""
        text, base_url = await self.session.get_text(page_url)
        return urljoin(base_url, extract.first_attr(extract.parse_html(text), IMAGE_SRC))

    async def upload_image(self, page_url: str) -> str:
        """One resolution attempt: returns the hosted URL for an image page."""
        logger.debug("Resolving image page %s", page_url)
        src = await self.resolve_image_url(page_url)

        cached = await asyncio.to_thread(self.cache.get, src)
        if cached:
            logger.debug("Cache hit for %s", src)
            self.stats["cached"] += 1
            return cached

        logger.debug("Downloading %s", src)
        async with self._download_client() as client:
            try:
                resp = await client.get(src)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                raise HttpError(f"GET {src}: {exc!r}", url=src) from exc
            data = resp.content
            ext = sniff_extension(data, Path(urlsplit(src).path).suffix)

            with tempfile.TemporaryDirectory(prefix="exharvester-") as tmp:
                path = Path(tmp) / f"image{ext}"
                path.write_bytes(data)
                logger.debug("Uploading %s (%d bytes)", path.name, len(data))
                hosted = await self.host.upload(path, client)

        await asyncio.to_thread(self.cache.put, src, hosted)
        self.stats["uploaded"] += 1
        return hosted

    async def upload_with_retry(self, page_url: str) -> str:
        """Retry ``upload_image`` with a fixed pause between failed attempts."""
        last_exc: Exception | None = None
        for attempt in range(1, self.cfg.attempts + 1):
            try:
                return await self.upload_image(page_url)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error(
                    "Attempt %d/%d for %s failed: %s", attempt, self.cfg.attempts, page_url, exc
                )
                last_exc = exc
            if attempt < self.cfg.attempts:
                await self._sleep(self.cfg.backoff)
        self.stats["failed"] += 1
        raise ResolutionFailed(page_url, self.cfg.attempts) from last_exc

    # ── whole gallery ────────────────────────────────────────────

    async def upload_gallery(self, full: FullGalleryInfo) -> UploadResult:
        return await self.upload_pages(full.effective_image_pages())

    async def upload_pages(self, pages: Sequence[str]) -> UploadResult:
        """Upload every image page; results keep the order of ``pages``."""
        total = len(pages)
        slots = asyncio.Semaphore(max(1, self.cfg.concurrency))
        dispatched = 0

        async def run(url: str) -> str:
            nonlocal dispatched
            async with slots:
                dispatched += 1
                logger.info("%d / %d", dispatched, total)
                return await self.upload_with_retry(url)

        tasks = [asyncio.create_task(run(url)) for url in pages]

        if self.cfg.fail_fast:
            try:
                hosted = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            return UploadResult(list(hosted))

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        result = UploadResult([])
        for outcome in outcomes:
            if isinstance(outcome, ResolutionFailed):
                result.hosted_urls.append(None)
                result.failures.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.hosted_urls.append(outcome)
        if result.failures:
            logger.warning("%d of %d images failed", len(result.failures), total)
        return result
