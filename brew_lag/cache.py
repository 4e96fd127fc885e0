"""Persistent cache of mined revision targets.

Mining a formula's history is the slow part of a planning run, so results
are stored in a small SQLite database keyed by everything that can change
the answer: formula, installed version, core tap HEAD, lag offset and the
cache schema version. Any new commit in the tap or a different offset makes
old rows unreachable rather than stale.

Each worker process opens its own connection. Values are deterministic for a
key, so concurrent writers race harmlessly: the first row written for a key
wins and later inserts are ignored.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .models import RevisionTarget

SCHEMA_VERSION = 3

_CREATE = """
CREATE TABLE IF NOT EXISTS targets (
    package TEXT NOT NULL,
    installed_version TEXT NOT NULL,
    catalog_head TEXT NOT NULL,
    lag_offset INTEGER NOT NULL,
    schema_version INTEGER NOT NULL,
    version_label TEXT NOT NULL,
    revision_handle TEXT,
    definition_path TEXT,
    timestamp INTEGER,
    lag_depth INTEGER,
    PRIMARY KEY (package, installed_version, catalog_head, lag_offset, schema_version)
)
"""


class CacheKey(BaseModel):
    """Identity of a cached mining result."""

    model_config = ConfigDict(frozen=True)

    package: str
    installed_version: str
    catalog_head: str
    offset: int
    schema_version: int = SCHEMA_VERSION

    def as_row(self) -> tuple[str, str, str, int, int]:
        return (
            self.package,
            self.installed_version,
            self.catalog_head,
            self.offset,
            self.schema_version,
        )


class CacheStore:
    """Keyed store of RevisionTargets with first-write-wins semantics.

    Usage:
        with CacheStore(config.cache_path) as cache:
            target = cache.get(key)
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = None

    def open(self) -> CacheStore:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Generous timeout: several workers may be writing at once.
        self._conn = sqlite3.connect(self.path, timeout=30)
        self._conn.execute(_CREATE)
        self._conn.commit()
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> CacheStore:
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("CacheStore is not open")
        return self._conn

    def get(self, key: CacheKey) -> RevisionTarget | None:
        """Return the cached target for ``key``, or None on a miss."""
        row = self.conn.execute(
            """
            SELECT version_label, revision_handle, definition_path, timestamp, lag_depth
            FROM targets
            WHERE package = ? AND installed_version = ? AND catalog_head = ?
              AND lag_offset = ? AND schema_version = ?
            """,
            key.as_row(),
        ).fetchone()
        if row is None:
            return None
        label, handle, path, timestamp, lag_depth = row
        return RevisionTarget(
            package=key.package,
            installed_version=key.installed_version,
            version_label=label,
            revision_handle=handle,
            definition_path=path,
            timestamp=timestamp,
            lag_depth=lag_depth,
        )

    def put(self, key: CacheKey, target: RevisionTarget) -> bool:
        """Store ``target`` under ``key``.

        Returns:
            True if the row was written, False if the key already existed
            (the existing row is kept).
        """
        cursor = self.conn.execute(
            "INSERT OR IGNORE INTO targets VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                *key.as_row(),
                target.version_label,
                target.revision_handle,
                target.definition_path,
                target.timestamp,
                target.lag_depth,
            ),
        )
        self.conn.commit()
        return cursor.rowcount == 1

    def __len__(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM targets").fetchone()[0]
