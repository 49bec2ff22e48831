"""PostgreSQL-backed upload cache."""

from __future__ import annotations

import logging
import threading

import psycopg
from psycopg.rows import dict_row

from .config import DatabaseConfig

logger = logging.getLogger("exharvester.db")

SCHEMA = """CREATE TABLE IF NOT EXISTS images (
    url         TEXT PRIMARY KEY,
    hosted_url  TEXT NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
)"""


class Database:
    """Postgres interface for the image cache.  Satisfies ``UploadCache``.

    The pipeline calls it from worker threads; one lock covers both the lazy
    connect and each statement/commit pair on the shared connection.
    """

    def __init__(self, cfg: DatabaseConfig | None = None) -> None:
        self.cfg = cfg or DatabaseConfig.from_env()
        self._conn: psycopg.Connection | None = None
        self._lock = threading.RLock()

    @property
    def conn(self) -> psycopg.Connection:
        if self._conn is None or self._conn.closed:
            with self._lock:
                if self._conn is None or self._conn.closed:
                    conn = psycopg.connect(self.cfg.dsn, row_factory=dict_row, autocommit=False)
                    conn.execute(SCHEMA)
                    conn.commit()
                    logger.debug("Connected to %s", self.cfg.host)
                    self._conn = conn
        return self._conn

    # ── image cache ──────────────────────────────────────────────

    def get(self, url: str) -> str | None:
        """Return the hosted URL recorded for a source image, if any."""
        with self._lock:
            row = self.conn.execute(
                "SELECT hosted_url FROM images WHERE url = %s", (url,)
            ).fetchone()
            self.conn.commit()
        return row["hosted_url"] if row else None

    def put(self, url: str, hosted_url: str) -> None:
        """Record an upload.  The first recorded hosted URL for a source wins."""
        with self._lock:
            try:
                self.conn.execute(
                    """INSERT INTO images (url, hosted_url)
                       VALUES (%s, %s)
                       ON CONFLICT (url) DO NOTHING""",
                    (url, hosted_url),
                )
                self.conn.commit()
            except psycopg.Error:
                self.conn.rollback()
                raise

    def count(self) -> int:
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) AS n FROM images").fetchone()
            self.conn.commit()
        return row["n"]

    def close(self) -> None:
        with self._lock:
            if self._conn and not self._conn.closed:
                self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
