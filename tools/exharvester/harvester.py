"""Batch harvesting – search or URL → gallery → rehosted images."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .cache import MemoryUploadCache, UploadCache
from .client import ExHentai
from .config import HarvesterConfig
from .db import Database
from .hosting import ImageHost, S3Host, TelegraphHost
from .models import BasicGalleryInfo, FullGalleryInfo, UploadResult
from .pipeline import ImageUploadPipeline

logger = logging.getLogger("exharvester.core")


def make_cache(cfg: HarvesterConfig) -> UploadCache:
    if cfg.cache_driver == "memory":
        return MemoryUploadCache()
    return Database(cfg.db)


def make_host(cfg: HarvesterConfig) -> ImageHost:
    if cfg.host_driver == "s3":
        return S3Host(cfg.s3)
    return TelegraphHost(cfg.telegraph)


class Harvester:
    """Orchestrates the full gallery → image host pipeline."""

    def __init__(
        self,
        cfg: HarvesterConfig,
        exh: ExHentai,
        *,
        cache: UploadCache | None = None,
        host: ImageHost | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cfg = cfg
        self.exh = exh
        self.cache = cache if cache is not None else make_cache(cfg)
        self.host = host if host is not None else make_host(cfg)
        self.pipeline = ImageUploadPipeline(
            exh.session, self.cache, self.host, cfg.upload, sleep=sleep, transport=transport
        )
        self.stats = {"galleries": 0, "images": 0, "errors": 0}

    @classmethod
    async def open(cls, cfg: HarvesterConfig) -> Harvester:
        exh = await ExHentai.connect(cfg.site)
        try:
            return cls(cfg, exh)
        except BaseException:
            await exh.aclose()
            raise

    # ── galleries ────────────────────────────────────────────────

    async def harvest_gallery(self, basic: BasicGalleryInfo) -> tuple[FullGalleryInfo, UploadResult]:
        """Resolve one gallery and rehost its images."""
        full = await self.exh.resolve(basic)
        logger.info("Uploading %s (%d image pages)", full.display_title, len(full.img_pages))
        result = await self.pipeline.upload_gallery(full)
        self.stats["galleries"] += 1
        self.stats["images"] += len(result.hosted_urls) - len(result.failures)
        self.stats["errors"] += len(result.failures)
        return full, result

    async def harvest_url(self, url: str) -> tuple[FullGalleryInfo, UploadResult]:
        return await self.harvest_gallery(await self.exh.get_gallery_by_url(url))

    async def harvest_search(self, pages: int) -> list[tuple[FullGalleryInfo, UploadResult]]:
        """Harvest every gallery on the first ``pages`` search pages.

        A gallery that fails is logged and skipped; the batch carries on.
        """
        galleries = await self.exh.search_n_pages(pages)
        done: list[tuple[FullGalleryInfo, UploadResult]] = []

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
        ) as progress:
            task = progress.add_task("galleries", total=len(galleries))
            for basic in galleries:
                try:
                    done.append(await self.harvest_gallery(basic))
                except Exception as exc:  # pylint: disable=broad-except
                    logger.error("Error harvesting %s: %s", basic.url, exc)
                    self.stats["errors"] += 1
                progress.advance(task)

        logger.info("Search harvest complete: %d/%d galleries", len(done), len(galleries))
        return done

    def summary(self) -> dict[str, int]:
        return {
            **self.stats,
            "cached": self.pipeline.stats["cached"],
            "uploaded": self.pipeline.stats["uploaded"],
        }

    # ── lifecycle ────────────────────────────────────────────────

    async def aclose(self) -> None:
        await self.exh.aclose()
        close = getattr(self.cache, "close", None)
        if close is not None:
            close()

    async def __aenter__(self) -> Harvester:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
