"""Configuration and environment settings for the harvester."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import parse_qsl


def _opt(name: str) -> str | None:
    return os.getenv(name) or None


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def parse_search_params(raw: str) -> tuple[tuple[str, str], ...]:
    """Turn ``f_cats=704&f_search=english`` into ordered key/value pairs."""
    return tuple(parse_qsl(raw.lstrip("?"), keep_blank_values=True))


@dataclass(frozen=True)
class SiteConfig:
    """Gallery site access.  ``cookie`` takes precedence over username/password."""
    host: str = "exhentai.org"
    username: str = ""
    password: str = ""
    cookie: str | None = None
    proxy: str | None = None
    login_url: str = "https://forums.e-hentai.org/index.php"
    search_url: str = "https://exhentai.org/"
    search_params: tuple[tuple[str, str], ...] = ()
    max_img_cnt: int = 50
    max_pages: int = 100  # listing pages per gallery before giving up
    timeout: float = 15.0
    max_redirects: int = 3

    @property
    def base_url(self) -> str:
        return f"https://{self.host}"

    @classmethod
    def from_env(cls) -> SiteConfig:
        host = os.getenv("EXH_HOST", "exhentai.org")
        return cls(
            host=host,
            username=os.getenv("EXH_USERNAME", ""),
            password=os.getenv("EXH_PASSWORD", ""),
            cookie=_opt("EXH_COOKIE"),
            proxy=_opt("EXH_PROXY"),
            search_url=os.getenv("EXH_SEARCH_URL", f"https://{host}/"),
            search_params=parse_search_params(os.getenv("EXH_SEARCH_PARAMS", "")),
            max_img_cnt=int(os.getenv("EXH_MAX_IMG_CNT", "50")),
            max_pages=int(os.getenv("EXH_MAX_PAGES", "100")),
        )


@dataclass(frozen=True)
class UploadConfig:
    """Image download/re-upload behaviour."""
    proxy: str | None = None
    timeout: float = 30.0
    attempts: int = 5
    backoff: float = 10.0  # seconds between failed attempts
    concurrency: int = 4
    fail_fast: bool = True

    @classmethod
    def from_env(cls) -> UploadConfig:
        return cls(
            proxy=_opt("UPLOAD_PROXY"),
            concurrency=int(os.getenv("UPLOAD_CONCURRENCY", "4")),
            fail_fast=_flag("UPLOAD_FAIL_FAST", "true"),
        )


@dataclass(frozen=True)
class TelegraphConfig:
    upload_url: str = "https://telegra.ph/upload"
    base_url: str = "https://telegra.ph"

    @classmethod
    def from_env(cls) -> TelegraphConfig:
        return cls(
            upload_url=os.getenv("TELEGRAPH_UPLOAD_URL", "https://telegra.ph/upload"),
            base_url=os.getenv("TELEGRAPH_BASE_URL", "https://telegra.ph"),
        )


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = "localhost"
    port: int = 5432
    dbname: str = "exharvester"
    user: str = "exharvester"
    password: str = "exharvester"

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.dbname}"

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            dbname=os.getenv("DB_NAME", "exharvester"),
            user=os.getenv("DB_USER", "exharvester"),
            password=os.getenv("DB_PASSWORD", "exharvester"),
        )


@dataclass(frozen=True)
class S3Config:
    endpoint: str = "http://localhost:9000"
    access_key: str = "minioadmin"
    secret_key: str = "minioadmin"
    bucket: str = "exharvester"
    use_ssl: bool = False

    @classmethod
    def from_env(cls) -> S3Config:
        return cls(
            endpoint=os.getenv("S3_ENDPOINT", "http://localhost:9000"),
            access_key=os.getenv("S3_ACCESS_KEY", "minioadmin"),
            secret_key=os.getenv("S3_SECRET_KEY", "minioadmin"),
            bucket=os.getenv("S3_BUCKET", "exharvester"),
            use_ssl=_flag("S3_USE_SSL", "false"),
        )


@dataclass(frozen=True)
class HarvesterConfig:
    site: SiteConfig = field(default_factory=SiteConfig.from_env)
    upload: UploadConfig = field(default_factory=UploadConfig.from_env)
    telegraph: TelegraphConfig = field(default_factory=TelegraphConfig.from_env)
    db: DatabaseConfig = field(default_factory=DatabaseConfig.from_env)
    s3: S3Config = field(default_factory=S3Config.from_env)
    host_driver: str = "telegraph"  # telegraph | s3
    cache_driver: str = "postgres"  # postgres | memory
