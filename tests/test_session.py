"""Session bootstrap: login sequence, cookie bootstrap, redirect limit."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from exharvester.errors import AuthError, HttpError, TooManyRedirects
from exharvester.session import HeaderSet, authenticate, from_cookie, parse_cookie


def _recorder(calls: list[httpx.Request], overrides: dict[str, httpx.Response] | None = None):
    overrides = overrides or {}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        key = f"{request.method} {request.url.host}{request.url.path}"
        if key in overrides:
            return overrides[key]
        if key == "GET exhentai.org/":
            return httpx.Response(200, headers={"Set-Cookie": "igneous=abc123; Path=/"}, text="ok")
        return httpx.Response(200, text="ok")

    return handler


class TestHeaders:
    def test_header_set_is_derived_from_host(self):
        headers = HeaderSet("exhentai.org").as_dict()
        assert headers["Referer"] == "https://exhentai.org/"
        assert headers["User-Agent"].startswith("Mozilla/5.0")
        assert "Accept-Language" in headers

    def test_parse_cookie(self):
        assert parse_cookie("ipb_member_id=42; ipb_pass_hash=abc") == {
            "ipb_member_id": "42",
            "ipb_pass_hash": "abc",
        }

    def test_parse_cookie_keeps_values_verbatim(self):
        assert parse_cookie("ipb_member_id=42; sk=a b; igneous=xyz==; ;flag") == {
            "ipb_member_id": "42",
            "sk": "a b",
            "igneous": "xyz==",
        }


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_login_sequence(self, site_cfg):
        calls: list[httpx.Request] = []
        session = await authenticate(site_cfg, transport=httpx.MockTransport(_recorder(calls)))
        async with session:
            seen = [f"{r.method} {r.url.host}{r.url.path}" for r in calls]
            assert seen == [
                "POST forums.e-hentai.org/index.php",
                "GET exhentai.org/",
                "GET exhentai.org/uconfig.php",
                "GET exhentai.org/mytags",
            ]
            login = calls[0]
            assert login.url.params["act"] == "Login"
            assert login.url.params["CODE"] == "01"
            form = parse_qs(login.content.decode())
            assert form["UserName"] == ["user"]
            assert form["PassWord"] == ["secret"]
            # cookie handed out by the gallery host is sent on later requests
            assert "igneous=abc123" in calls[2].headers["cookie"]
            assert calls[3].headers["referer"] == "https://exhentai.org/"

    @pytest.mark.asyncio
    async def test_rejected_login_raises_auth_error(self, site_cfg):
        calls: list[httpx.Request] = []
        handler = _recorder(calls, {"POST forums.e-hentai.org/index.php": httpx.Response(403)})
        with pytest.raises(AuthError) as info:
            await authenticate(site_cfg, transport=httpx.MockTransport(handler))
        assert isinstance(info.value.__cause__, HttpError)
        assert info.value.__cause__.status_code == 403
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_same_url_redirects_are_followed_up_to_the_limit(self, site_cfg):
        hops = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/" and request.url.host == "exhentai.org":
                hops["n"] += 1
                if hops["n"] <= site_cfg.max_redirects:
                    return httpx.Response(302, headers={"Location": "https://exhentai.org/"})
            return httpx.Response(200, text="ok")

        session = await authenticate(site_cfg, transport=httpx.MockTransport(handler))
        await session.aclose()
        assert hops["n"] == site_cfg.max_redirects + 1

    @pytest.mark.asyncio
    async def test_redirect_loop_raises_auth_error(self, site_cfg):
        hops = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/" and request.url.host == "exhentai.org":
                hops["n"] += 1
                return httpx.Response(302, headers={"Location": "https://exhentai.org/"})
            return httpx.Response(200, text="ok")

        with pytest.raises(AuthError) as info:
            await authenticate(site_cfg, transport=httpx.MockTransport(handler))
        assert isinstance(info.value.__cause__, TooManyRedirects)
        assert hops["n"] == site_cfg.max_redirects + 1


class TestFromCookie:
    @pytest.mark.asyncio
    async def test_skips_login_and_sends_cookie(self, site_cfg):
        calls: list[httpx.Request] = []
        session = await from_cookie(
            site_cfg,
            "ipb_member_id=42; ipb_pass_hash=abc",
            transport=httpx.MockTransport(_recorder(calls)),
        )
        async with session:
            assert [r.url.path for r in calls] == ["/uconfig.php", "/mytags"]
            for request in calls:
                assert "ipb_member_id=42" in request.headers["cookie"]
                assert "ipb_pass_hash=abc" in request.headers["cookie"]

    @pytest.mark.asyncio
    async def test_value_with_space_is_not_dropped(self, site_cfg):
        calls: list[httpx.Request] = []
        session = await from_cookie(
            site_cfg,
            "ipb_member_id=42; sk=a b",
            transport=httpx.MockTransport(_recorder(calls)),
        )
        async with session:
            assert "ipb_member_id=42" in calls[0].headers["cookie"]
            assert "sk=a b" in calls[0].headers["cookie"]

    @pytest.mark.asyncio
    async def test_failed_bootstrap_raises_auth_error(self, site_cfg):
        handler = _recorder([], {"GET exhentai.org/mytags": httpx.Response(500)})
        with pytest.raises(AuthError):
            await from_cookie(site_cfg, "ipb_member_id=42", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_missing_cookie(self, site_cfg):
        with pytest.raises(AuthError):
            await from_cookie(site_cfg)


class TestRequests:
    @pytest.mark.asyncio
    async def test_non_success_status_raises_http_error(self, make_session):
        async with make_session(lambda request: httpx.Response(404)) as session:
            with pytest.raises(HttpError) as info:
                await session.get("https://exhentai.org/g/1/")
        assert info.value.status_code == 404
        assert info.value.url == "https://exhentai.org/g/1/"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_http_error(self, make_session):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with make_session(handler) as session:
            with pytest.raises(HttpError) as info:
                await session.get("https://exhentai.org/")
        assert info.value.status_code is None
        assert isinstance(info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_get_text_reports_final_url(self, make_session):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://exhentai.org/new"})
            return httpx.Response(200, text="moved")

        async with make_session(handler) as session:
            text, url = await session.get_text("https://exhentai.org/old")
        assert text == "moved"
        assert url == "https://exhentai.org/new"
