"""Shared fixtures: site markup builders and mock-transport sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

import httpx
import pytest

from exharvester.config import SiteConfig, UploadConfig
from exharvester.session import Session

Handler = Callable[[httpx.Request], httpx.Response]


def gallery_html(
    *,
    title: str = "Title",
    title_jp: str = "",
    parent: str | None = None,
    tags: Sequence[tuple[str, Sequence[str]]] = (),
    rating: str = "Average: 4.50",
    fav: str = "123 times",
    pages: Sequence[str] = (),
    next_url: str | None = None,
) -> str:
    parent_cell = f'<a href="{parent}">{parent}</a>' if parent else "None"
    tag_rows = "".join(
        f'<tr><td class="tc">{category}:</td><td>'
        + "".join(f'<div class="gt"><a href="#">{value}</a></div>' for value in values)
        + "</td></tr>"
        for category, values in tags
    )
    next_cell = f'<td><a href="{next_url}">&gt;</a></td>' if next_url else '<td class="ptdd">&gt;</td>'
    thumbs = "".join(f'<div class="gdtm"><a href="{page}"><img alt=""></a></div>' for page in pages)
    return f"""<html><body>
<div id="gd2"><h1 id="gn">{title}</h1><h1 id="gj">{title_jp}</h1></div>
<div id="gdd"><table>
<tr><td class="gdt1">Posted:</td><td class="gdt2">2019-05-01 12:00</td></tr>
<tr><td class="gdt1">Parent:</td><td class="gdt2">{parent_cell}</td></tr>
</table></div>
<table><tr><td id="rating_label">{rating}</td></tr></table>
<table><tr><td id="favcount">{fav}</td></tr></table>
<div id="taglist"><table>{tag_rows}</table></div>
<table class="ptt"><tr><td class="ptds"><a href="#">1</a></td>{next_cell}</tr></table>
<div id="gdt">{thumbs}</div>
</body></html>"""


def search_html(rows: Sequence[tuple[str, str]]) -> str:
    body = "".join(
        f'<tr><td class="gl1c glcat">Doujinshi</td>'
        f'<td class="gl3m glname"><a href="{href}"><div class="glink">{title}</div></a></td></tr>'
        for title, href in rows
    )
    return f"""<html><body>
<table class="itg gltc">
<tr><th>Category</th><th>Title</th></tr>
{body}
</table>
</body></html>"""


def image_page_html(src: str) -> str:
    return f'<html><body><div id="i3"><a href="#"><img id="img" src="{src}"></a></div></body></html>'


@pytest.fixture
def site_cfg() -> SiteConfig:
    return SiteConfig(
        host="exhentai.org",
        username="user",
        password="secret",
        search_url="https://exhentai.org/",
        search_params=(("f_search", "english"),),
        max_img_cnt=3,
        max_pages=5,
    )


@pytest.fixture
def upload_cfg() -> UploadConfig:
    return UploadConfig(concurrency=2, attempts=5, backoff=10.0)


@pytest.fixture
def make_session(site_cfg: SiteConfig) -> Callable[[Handler], Session]:
    def build(handler: Handler, **kwargs: object) -> Session:
        return Session(site_cfg, transport=httpx.MockTransport(handler), **kwargs)  # type: ignore[arg-type]

    return build


class FakeHost:
    """Image host returning ``https://host.test/<payload>`` for each upload."""

    def __init__(self, delays: dict[str, float] | None = None) -> None:
        self.delays = delays or {}
        self.uploaded: list[Path] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def upload(self, path: Path, client: httpx.AsyncClient) -> str:
        assert path.exists()
        payload = path.read_bytes().decode()
        self.uploaded.append(path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(payload, 0))
        finally:
            self.in_flight -= 1
        return f"https://host.test/{payload}"


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()
