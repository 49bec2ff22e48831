"""Remote image hosts – Telegraph and MinIO/S3."""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from .config import S3Config, TelegraphConfig
from .errors import UploadError

logger = logging.getLogger("exharvester.hosting")

# Map file extension → MIME type
MIME_MAP: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}

# Pillow format name → file extension
FORMAT_EXT: dict[str, str] = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "GIF": ".gif",
    "WEBP": ".webp",
    "BMP": ".bmp",
}


def guess_mime(ext: str) -> str:
    return MIME_MAP.get(ext.lower(), "application/octet-stream")


def sniff_extension(data: bytes, fallback: str = "") -> str:
    """File extension for an image payload, from its decoded format if Pillow knows it."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            ext = FORMAT_EXT.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        ext = None
    if ext:
        return ext
    fallback = fallback.lower()
    return fallback if fallback in MIME_MAP else ".jpg"


class ImageHost(Protocol):
    async def upload(self, path: Path, client: httpx.AsyncClient) -> str:
        """Upload a staged file, returning its hosted URL."""
        ...


class TelegraphHost:
    """telegra.ph anonymous file upload."""

    def __init__(self, cfg: TelegraphConfig | None = None) -> None:
        self.cfg = cfg or TelegraphConfig()

    async def upload(self, path: Path, client: httpx.AsyncClient) -> str:
        files = {"file": (path.name, path.read_bytes(), guess_mime(path.suffix))}
        try:
            resp = await client.post(self.cfg.upload_url, files=files)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UploadError(f"telegraph upload failed: {exc!r}") from exc

        if isinstance(body, dict) and "error" in body:
            raise UploadError(f"telegraph upload failed: {body['error']}")
        try:
            src = body[0]["src"]
        except (IndexError, KeyError, TypeError) as exc:
            raise UploadError(f"unexpected telegraph response: {body!r}") from exc
        return f"{self.cfg.base_url}{src}" if src.startswith("/") else src


class S3Host:
    """Upload images to MinIO / S3 under a content-hash key."""

    def __init__(self, cfg: S3Config | None = None) -> None:
        self.cfg = cfg or S3Config.from_env()
        self._s3 = boto3.client(
            "s3",
            endpoint_url=self.cfg.endpoint,
            aws_access_key_id=self.cfg.access_key,
            aws_secret_access_key=self.cfg.secret_key,
            config=BotoConfig(signature_version="s3v4"),
            use_ssl=self.cfg.use_ssl,
        )
        self._ensure_bucket()

    def _ensure_bucket(self) -> None:
        try:
            self._s3.head_bucket(Bucket=self.cfg.bucket)
        except ClientError:
            try:
                self._s3.create_bucket(Bucket=self.cfg.bucket)
                logger.info("Created bucket: %s", self.cfg.bucket)
            except (BotoCoreError, ClientError) as exc:
                logger.warning("Could not ensure bucket %s exists: %s", self.cfg.bucket, exc)

    @staticmethod
    def storage_key(data: bytes, ext: str) -> str:
        now = datetime.now(timezone.utc)
        return f"{now:%Y/%m/%d}/{hashlib.sha256(data).hexdigest()}{ext}"

    def _put(self, data: bytes, ext: str) -> str:
        key = self.storage_key(data, ext)
        try:
            self._s3.put_object(
                Bucket=self.cfg.bucket,
                Key=key,
                Body=data,
                ContentType=guess_mime(ext),
            )
        except (BotoCoreError, ClientError) as exc:
            raise UploadError(f"s3 upload failed: {exc}") from exc
        return f"{self.cfg.endpoint}/{self.cfg.bucket}/{key}"

    async def upload(self, path: Path, client: httpx.AsyncClient) -> str:
        return await asyncio.to_thread(self._put, path.read_bytes(), path.suffix)
