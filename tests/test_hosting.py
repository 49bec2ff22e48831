"""Image hosts: Telegraph responses, S3 keys and extension sniffing."""

from __future__ import annotations

import io
import re
from unittest.mock import MagicMock, patch

import httpx
import pytest
from PIL import Image

from exharvester.config import S3Config, TelegraphConfig
from exharvester.errors import UploadError
from exharvester.hosting import S3Host, TelegraphHost, guess_mime, sniff_extension


def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), "red").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def staged(tmp_path):
    path = tmp_path / "image.png"
    path.write_bytes(_png())
    return path


class TestSniffExtension:
    def test_decoded_format_wins(self):
        assert sniff_extension(_png(), ".jpg") == ".png"

    def test_falls_back_to_known_suffix(self):
        assert sniff_extension(b"not an image", ".GIF") == ".gif"

    def test_unknown_suffix_defaults_to_jpg(self):
        assert sniff_extension(b"not an image", ".php") == ".jpg"
        assert sniff_extension(b"not an image") == ".jpg"

    def test_guess_mime(self):
        assert guess_mime(".JPG") == "image/jpeg"
        assert guess_mime(".bin") == "application/octet-stream"


class TestTelegraphHost:
    @pytest.mark.asyncio
    async def test_upload_returns_absolute_url(self, staged):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"src": "/file/abc123.png"}])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            url = await TelegraphHost(TelegraphConfig()).upload(staged, client)

        assert url == "https://telegra.ph/file/abc123.png"
        assert str(seen[0].url) == "https://telegra.ph/upload"
        assert b'filename="image.png"' in seen[0].content
        assert b"image/png" in seen[0].content

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"error": "File type invalid"}),
            httpx.Response(200, json=[]),
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(502),
        ],
    )
    async def test_rejections_raise_upload_error(self, staged, response):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as client:
            with pytest.raises(UploadError):
                await TelegraphHost().upload(staged, client)


class TestS3Host:
    @pytest.mark.asyncio
    async def test_upload_puts_object_under_hash_key(self, staged):
        cfg = S3Config(endpoint="http://minio:9000", bucket="images")
        with patch("exharvester.hosting.boto3.client") as make_client:
            s3 = MagicMock()
            make_client.return_value = s3
            host = S3Host(cfg)
            url = await host.upload(staged, MagicMock())

        s3.head_bucket.assert_called_once_with(Bucket="images")
        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "images"
        assert kwargs["ContentType"] == "image/png"
        assert kwargs["Body"] == staged.read_bytes()
        assert re.fullmatch(r"\d{4}/\d{2}/\d{2}/[0-9a-f]{64}\.png", kwargs["Key"])
        assert url == f"http://minio:9000/images/{kwargs['Key']}"
