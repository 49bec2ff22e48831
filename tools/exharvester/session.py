"""Authenticated site session – cookie jar, fixed headers, optional proxy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import SiteConfig
from .errors import AuthError, HttpError, TooManyRedirects

logger = logging.getLogger("exharvester.session")

USER_AGENT = "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:67.0) Gecko/20100101 Firefox/67.0"


@dataclass(frozen=True)
class HeaderSet:
    """Request headers fixed for the lifetime of a session.

    ``Host`` is not sent as a default header: httpx derives it from each
    request URL, which matches ``host`` for every site request and stays
    correct for the forum login endpoint.
    """
    host: str
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    accept_language: str = "zh-CN,en-US;q=0.7,en;q=0.3"
    user_agent: str = USER_AGENT

    @property
    def referer(self) -> str:
        return f"https://{self.host}/"

    def as_dict(self) -> dict[str, str]:
        return {
            "Accept": self.accept,
            "Accept-Language": self.accept_language,
            "Cache-Control": "max-age=0",
            "DNT": "1",
            "Referer": self.referer,
            "Upgrade-Insecure-Requests": "1",
            "User-Agent": self.user_agent,
        }


def parse_cookie(raw: str) -> dict[str, str]:
    """Split a ``name=value; name2=value2`` string as copied from a browser.

    Values are kept verbatim, spaces and quotes included; pieces without a
    name are dropped.
    """
    cookies: dict[str, str] = {}
    for piece in raw.split(";"):
        name, sep, value = piece.partition("=")
        name = name.strip()
        if sep and name:
            cookies[name] = value.strip()
    return cookies


class Session:
    """Owns the site's HTTP client; shared by reference with the resolvers.

    httpx only counts redirect hops, it never rejects a redirect back to the
    same URL.  The site relies on that: the login cookie changes between hops.
    """

    def __init__(
        self,
        cfg: SiteConfig,
        *,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cfg = cfg
        self.headers = HeaderSet(cfg.host)
        jar = httpx.Cookies()
        for name, value in (cookies or {}).items():
            jar.set(name, value, domain=cfg.host)
        self._client = httpx.AsyncClient(
            headers=self.headers.as_dict(),
            cookies=jar,
            timeout=cfg.timeout,
            follow_redirects=True,
            max_redirects=cfg.max_redirects,
            proxy=cfg.proxy,
            transport=transport,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.TooManyRedirects as exc:
            raise TooManyRedirects(f"{method} {url}: {exc}", url=url) from exc
        except httpx.HTTPStatusError as exc:
            raise HttpError(
                f"{method} {url}: HTTP {exc.response.status_code}",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise HttpError(f"{method} {url}: {exc!r}", url=url) from exc
        return resp

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def get_text(self, url: str, **kwargs: Any) -> tuple[str, str]:
        """Fetch a page, returning its body and the final URL after redirects."""
        resp = await self.get(url, **kwargs)
        return resp.text, str(resp.url)

    # ── bootstrap ────────────────────────────────────────────────

    async def fetch_filter_cookies(self) -> None:
        # uconfig/mytags hand out the content-filter preference cookies
        await self.get(f"{self.cfg.base_url}/uconfig.php")
        await self.get(f"{self.cfg.base_url}/mytags")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


async def authenticate(
    cfg: SiteConfig, *, transport: httpx.AsyncBaseTransport | None = None
) -> Session:
    """Log in through the forum, then visit the gallery host for its cookies."""
    session = Session(cfg, transport=transport)
    try:
        logger.info("Logging in as %s", cfg.username)
        await session.post(
            cfg.login_url,
            params={"act": "Login", "CODE": "01"},
            data={
                "CookieDate": "1",
                "b": "d",
                "bt": "1-6",
                "UserName": cfg.username,
                "PassWord": cfg.password,
                "ipb_login_submit": "Login!",
            },
        )
        logger.info("Entering %s", cfg.host)
        await session.get(cfg.base_url)
        await session.fetch_filter_cookies()
    except HttpError as exc:
        await session.aclose()
        raise AuthError(f"login failed: {exc}") from exc
    logger.info("Login succeeded")
    return session


async def from_cookie(
    cfg: SiteConfig, raw_cookie: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None
) -> Session:
    """Build a session from a pre-obtained cookie string, skipping the login POST."""
    raw = raw_cookie if raw_cookie is not None else cfg.cookie
    if not raw:
        raise AuthError("no cookie configured")
    cookies = parse_cookie(raw)
    if not cookies:
        raise AuthError("cookie string contains no name=value pairs")
    session = Session(cfg, cookies=cookies, transport=transport)
    try:
        await session.fetch_filter_cookies()
    except HttpError as exc:
        await session.aclose()
        raise AuthError(f"cookie bootstrap failed: {exc}") from exc
    logger.info("Login succeeded")
    return session
