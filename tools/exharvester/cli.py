"""CLI entry-point for the gallery harvester."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .client import ExHentai
from .config import (
    DatabaseConfig,
    HarvesterConfig,
    S3Config,
    SiteConfig,
    TelegraphConfig,
    UploadConfig,
    parse_search_params,
)
from .errors import HarvesterError
from .harvester import Harvester
from .models import FullGalleryInfo, UploadResult

console = Console()

T = TypeVar("T")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )
    # Suppress noisy libraries
    for name in ("httpx", "httpcore", "boto3", "botocore", "urllib3", "s3transfer", "PIL"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _run(coro: Callable[[], Coroutine[Any, Any, T]]) -> T:
    """Run a coroutine, turning harvester errors into a clean exit."""
    try:
        return asyncio.run(coro())
    except HarvesterError as exc:
        console.print(f"[red]✗[/red] {exc}")
        sys.exit(1)


def _print_stats(stats: dict) -> None:
    table = Table(title="Harvest Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key, val in stats.items():
        table.add_row(key.capitalize(), str(val))
    console.print(table)


def _print_gallery(full: FullGalleryInfo) -> None:
    table = Table(title=full.display_title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("URL", full.url)
    if full.title_jp:
        table.add_row("Title", full.title)
    if full.parent:
        table.add_row("Parent", full.parent)
    table.add_row("Rating", full.rating)
    table.add_row("Favorites", full.fav_cnt)
    for category, values in full.tags:
        table.add_row(category, ", ".join(values))
    table.add_row("Image pages", str(len(full.img_pages)))
    console.print(table)


def _print_result(result: UploadResult) -> None:
    for idx, url in enumerate(result.hosted_urls, start=1):
        console.print(f"{idx:>4}  {url or '[red]failed[/red]'}")
    for failure in result.failures:
        console.print(f"[red]✗[/red] {failure}")


@click.group()
@click.option("--host", envvar="EXH_HOST", default="exhentai.org", help="Gallery site host")
@click.option("--username", envvar="EXH_USERNAME", default="", help="Forum account name")
@click.option("--password", envvar="EXH_PASSWORD", default="", help="Forum account password")
@click.option("--cookie", envvar="EXH_COOKIE", default=None, help="Raw cookie string (skips the login POST)")
@click.option("--proxy", envvar="EXH_PROXY", default=None, help="Proxy for site requests")
@click.option("--search-params", envvar="EXH_SEARCH_PARAMS", default="", help="Search query string, e.g. f_cats=704")
@click.option("--max-img-cnt", envvar="EXH_MAX_IMG_CNT", default=50, type=int, help="Image cap for limited galleries")
@click.option("--max-pages", envvar="EXH_MAX_PAGES", default=100, type=int, help="Listing pages per gallery before giving up")
@click.option("--upload-proxy", envvar="UPLOAD_PROXY", default=None, help="Proxy for image download and upload")
@click.option("--concurrency", envvar="UPLOAD_CONCURRENCY", default=4, type=int, help="Images resolved in parallel")
@click.option("--fail-fast/--collect-all", envvar="UPLOAD_FAIL_FAST", default=True, help="Abort a gallery on the first failed image")
@click.option("--host-driver", type=click.Choice(["telegraph", "s3"]), envvar="HOST_DRIVER", default="telegraph", help="Where images are rehosted")
@click.option("--cache-driver", type=click.Choice(["postgres", "memory"]), envvar="CACHE_DRIVER", default="postgres", help="Upload cache backend")
@click.option("--db-host", envvar="DB_HOST", default="localhost", help="PostgreSQL host")
@click.option("--db-port", envvar="DB_PORT", default=5432, type=int, help="PostgreSQL port")
@click.option("--db-name", envvar="DB_NAME", default="exharvester", help="PostgreSQL database name")
@click.option("--db-user", envvar="DB_USER", default="exharvester", help="PostgreSQL user")
@click.option("--db-password", envvar="DB_PASSWORD", default="exharvester", help="PostgreSQL password")
@click.option("--s3-endpoint", envvar="S3_ENDPOINT", default="http://localhost:9000", help="MinIO/S3 endpoint URL")
@click.option("--s3-access-key", envvar="S3_ACCESS_KEY", default="minioadmin", help="S3 access key")
@click.option("--s3-secret-key", envvar="S3_SECRET_KEY", default="minioadmin", help="S3 secret key")
@click.option("--s3-bucket", envvar="S3_BUCKET", default="exharvester", help="S3 bucket name")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, **kwargs: object) -> None:
    """ExHentai Harvester – mirror gallery images to an image host.

    Logs in (or reuses a cookie), resolves galleries page by page and
    re-uploads their images, remembering every upload so it is never
    repeated.
    """
    _setup_logging(bool(kwargs.pop("verbose")))
    ctx.ensure_object(dict)
    host = str(kwargs["host"])
    ctx.obj["cfg"] = HarvesterConfig(
        site=SiteConfig(
            host=host,
            username=kwargs["username"],  # type: ignore[arg-type]
            password=kwargs["password"],  # type: ignore[arg-type]
            cookie=kwargs["cookie"] or None,  # type: ignore[arg-type]
            proxy=kwargs["proxy"] or None,  # type: ignore[arg-type]
            search_url=f"https://{host}/",
            search_params=parse_search_params(str(kwargs["search_params"])),
            max_img_cnt=kwargs["max_img_cnt"],  # type: ignore[arg-type]
            max_pages=kwargs["max_pages"],  # type: ignore[arg-type]
        ),
        upload=UploadConfig(
            proxy=kwargs["upload_proxy"] or None,  # type: ignore[arg-type]
            concurrency=kwargs["concurrency"],  # type: ignore[arg-type]
            fail_fast=bool(kwargs["fail_fast"]),
        ),
        telegraph=TelegraphConfig.from_env(),
        db=DatabaseConfig(
            host=kwargs["db_host"],  # type: ignore[arg-type]
            port=kwargs["db_port"],  # type: ignore[arg-type]
            dbname=kwargs["db_name"],  # type: ignore[arg-type]
            user=kwargs["db_user"],  # type: ignore[arg-type]
            password=kwargs["db_password"],  # type: ignore[arg-type]
        ),
        s3=S3Config(
            endpoint=kwargs["s3_endpoint"],  # type: ignore[arg-type]
            access_key=kwargs["s3_access_key"],  # type: ignore[arg-type]
            secret_key=kwargs["s3_secret_key"],  # type: ignore[arg-type]
            bucket=kwargs["s3_bucket"],  # type: ignore[arg-type]
        ),
        host_driver=kwargs["host_driver"],  # type: ignore[arg-type]
        cache_driver=kwargs["cache_driver"],  # type: ignore[arg-type]
    )


# ─── Commands ────────────────────────────────────────────────────


@cli.command()
@click.option("--pages", default=1, type=int, help="Number of result pages to read")
@click.pass_context
def search(ctx: click.Context, pages: int) -> None:
    """List galleries from the configured search.

    Example: exharvester --search-params f_search=english search --pages 2
    """
    cfg: HarvesterConfig = ctx.obj["cfg"]

    async def go() -> list:
        async with await ExHentai.connect(cfg.site) as exh:
            return await exh.search_n_pages(pages)

    galleries = _run(go)
    table = Table(title="Search Results", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Title", max_width=60)
    table.add_column("URL")
    for idx, basic in enumerate(galleries, start=1):
        table.add_row(str(idx), basic.title, basic.url)
    console.print(table)


@cli.command()
@click.argument("url")
@click.pass_context
def gallery(ctx: click.Context, url: str) -> None:
    """Show a gallery's metadata without uploading anything.

    Example: exharvester gallery https://exhentai.org/g/123/abcdef/
    """
    cfg: HarvesterConfig = ctx.obj["cfg"]

    async def go() -> FullGalleryInfo:
        async with await ExHentai.connect(cfg.site) as exh:
            return await exh.resolve(await exh.get_gallery_by_url(url))

    _print_gallery(_run(go))


@cli.command()
@click.argument("url")
@click.pass_context
def upload(ctx: click.Context, url: str) -> None:
    """Rehost one gallery's images and print the hosted URLs.

    Example: exharvester upload https://exhentai.org/g/123/abcdef/
    """
    cfg: HarvesterConfig = ctx.obj["cfg"]

    async def go() -> tuple[FullGalleryInfo, UploadResult, dict]:
        async with await Harvester.open(cfg) as h:
            full, result = await h.harvest_url(url)
            return full, result, h.summary()

    console.print(f"[bold]Harvesting [cyan]{url}[/cyan]...[/bold]")
    full, result, stats = _run(go)
    _print_gallery(full)
    _print_result(result)
    _print_stats(stats)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--pages", default=1, type=int, help="Number of result pages to harvest")
@click.pass_context
def batch(ctx: click.Context, pages: int) -> None:
    """Search, then rehost every gallery found.

    Example: exharvester batch --pages 3
    """
    cfg: HarvesterConfig = ctx.obj["cfg"]

    async def go() -> tuple[int, dict]:
        async with await Harvester.open(cfg) as h:
            done = await h.harvest_search(pages)
            return len(done), h.summary()

    count, stats = _run(go)
    console.print(f"[green]✓[/green] Harvested {count} galleries")
    _print_stats(stats)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
