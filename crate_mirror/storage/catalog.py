"""
Manages the SQLite catalog that records every known crate version and whether
its archive has been mirrored.
"""

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from crate_mirror.exceptions import ConflictError, StoreError
from crate_mirror.models.catalog import CatalogSummary, PendingVersion, SyncRecord

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE crate (
    name TEXT PRIMARY KEY NOT NULL COLLATE NOCASE,
    description TEXT,
    documentation TEXT
);

CREATE TABLE crate_version (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL COLLATE NOCASE,
    version TEXT NOT NULL,
    size INTEGER DEFAULT 0,
    checksum TEXT NOT NULL,
    yanked INTEGER DEFAULT 0,
    downloaded INTEGER DEFAULT 0,
    license TEXT,
    last_update TEXT,
    UNIQUE (name, version)
);

CREATE INDEX idx_crate_version_downloaded ON crate_version(downloaded);

CREATE TABLE update_history (
    commit_id TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
"""


def utc_now() -> str:
    """Timestamp format used for ``last_update`` and the sync log."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class CatalogStore:
    """
    The persistent record of known crates, their versions and sync history.

    Reads use one connection per executor thread, reused across queries, and
    may run concurrently from many tasks. All mutations share one long-lived
    connection and are serialized by a lock, matching SQLite's single-writer
    model.
    """

    def __init__(self, db_path: Path, pool_size: int = 8):
        self.db_path = Path(db_path)
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._write_lock = threading.Lock()
        self._local = threading.local()
        self._readers: list[sqlite3.Connection] = []
        self._readers_lock = threading.Lock()
        self._conn = self._open()

    def _connect(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        return conn

    def _open(self) -> sqlite3.Connection:
        """
        Opens the catalog, creating the schema when the database file is new.
        Existing databases are used as they are.
        """
        existed = self.db_path.is_file() and self.db_path.stat().st_size > 0
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            if not existed:
                conn.executescript(SCHEMA)
                conn.commit()
                log.info(f"Created catalog database at [dim]{self.db_path}[/dim]")
            return conn
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Cannot open catalog at '{self.db_path}': {e}") from e

    def _reader(self) -> sqlite3.Connection:
        """The calling thread's read connection, opened on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA temp_store=MEMORY;")
            self._local.conn = conn
            with self._readers_lock:
                self._readers.append(conn)
        return conn

    def close(self) -> None:
        with self._readers_lock:
            for conn in self._readers:
                conn.close()
            self._readers.clear()
        with self._write_lock:
            self._conn.close()

    async def _run_in_executor(self, func: Callable[..., Any], *args: Any) -> Any:
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    def _read(self, query: str, params: tuple = ()) -> list[tuple]:
        try:
            return self._reader().execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Catalog query failed: {e}") from e

    def _write(self, statement: str, params: tuple = ()) -> int:
        """Executes and commits one statement, returning the affected row count."""
        with self._write_lock:
            try:
                cursor = self._conn.execute(statement, params)
                self._conn.commit()
                return cursor.rowcount
            except sqlite3.Error:
                self._conn.rollback()
                raise

    # Reconciliation queries

    def _package_exists_sync(self, name: str) -> bool:
        rows = self._read("SELECT 1 FROM crate WHERE name = ? LIMIT 1", (name,))
        return bool(rows)

    async def package_exists(self, name: str) -> bool:
        """Whether a crate row has already been created."""
        return await self._run_in_executor(self._package_exists_sync, name)

    def _known_versions_sync(self, name: str) -> set[str]:
        rows = self._read("SELECT version FROM crate_version WHERE name = ?", (name,))
        return {row[0] for row in rows}

    async def known_versions(self, name: str) -> set[str]:
        """All version strings already catalogued for a crate."""
        return await self._run_in_executor(self._known_versions_sync, name)

    def _pending_versions_sync(self) -> list[PendingVersion]:
        rows = self._read(
            "SELECT name, version, checksum, yanked FROM crate_version"
            " WHERE downloaded = 0 ORDER BY id"
        )
        return [
            PendingVersion(name=name, version=version, checksum=cksum, yanked=bool(y))
            for name, version, cksum, y in rows
        ]

    async def pending_versions(self) -> list[PendingVersion]:
        """Every catalogued version whose archive has not been retrieved yet."""
        return await self._run_in_executor(self._pending_versions_sync)

    # Mutations

    def _upsert_package_sync(
        self, name: str, description: str | None, documentation: str | None
    ) -> None:
        try:
            self._write(
                "INSERT INTO crate (name, description, documentation) VALUES (?, ?, ?)"
                " ON CONFLICT(name) DO UPDATE SET"
                " description = excluded.description,"
                " documentation = excluded.documentation",
                (name, description, documentation),
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to upsert crate '{name}': {e}") from e

    async def upsert_package(
        self, name: str, description: str | None, documentation: str | None
    ) -> None:
        await asyncio.to_thread(
            self._upsert_package_sync, name, description, documentation
        )

    def _insert_version_sync(
        self,
        name: str,
        version: str,
        checksum: str,
        yanked: bool,
        license: str | None,
    ) -> None:
        try:
            self._write(
                "INSERT INTO crate_version (name, version, checksum, yanked, license)"
                " VALUES (?, ?, ?, ?, ?)",
                (name, version, checksum, int(yanked), license),
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Version {name}-{version} is already catalogued.") from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert {name}-{version}: {e}") from e

    async def insert_version(
        self,
        name: str,
        version: str,
        checksum: str,
        yanked: bool,
        license: str | None = None,
    ) -> None:
        """
        Adds a new, not yet downloaded version.

        Raises:
            ConflictError: If (name, version) is already in the catalog.
        """
        await asyncio.to_thread(
            self._insert_version_sync, name, version, checksum, yanked, license
        )

    def _mark_downloaded_sync(
        self, name: str, version: str, size: int, timestamp: str
    ) -> bool:
        try:
            changed = self._write(
                "UPDATE crate_version SET downloaded = 1, size = ?, last_update = ?"
                " WHERE name = ? AND version = ? AND downloaded = 0",
                (size, timestamp, name, version),
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to mark {name}-{version} downloaded: {e}") from e
        return changed > 0

    async def mark_downloaded(
        self, name: str, version: str, size: int, timestamp: str | None = None
    ) -> bool:
        """
        Flags a version as retrieved. Rows only ever move from pending to
        downloaded; returns False when the row was missing or already downloaded.
        """
        return await asyncio.to_thread(
            self._mark_downloaded_sync, name, version, size, timestamp or utc_now()
        )

    def _record_sync_sync(self, revision: str, timestamp: str) -> None:
        try:
            self._write(
                "INSERT INTO update_history (commit_id, timestamp) VALUES (?, ?)",
                (revision, timestamp),
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to record sync of {revision}: {e}") from e

    async def record_sync(self, revision: str, timestamp: str | None = None) -> None:
        """Appends an index revision to the audit log."""
        await asyncio.to_thread(self._record_sync_sync, revision, timestamp or utc_now())

    # Maintenance

    def _summary_sync(self) -> CatalogSummary:
        (packages,) = self._read("SELECT COUNT(*) FROM crate")[0]
        versions, downloaded, yanked, total_size = self._read(
            "SELECT COUNT(*), COALESCE(SUM(downloaded), 0),"
            " COALESCE(SUM(yanked), 0), COALESCE(SUM(size), 0) FROM crate_version"
        )[0]
        last = self._read(
            "SELECT commit_id, timestamp FROM update_history ORDER BY rowid DESC LIMIT 1"
        )
        return CatalogSummary(
            packages=packages,
            versions=versions,
            downloaded=downloaded,
            pending=versions - downloaded,
            yanked=yanked,
            total_size=total_size,
            last_sync=SyncRecord(revision=last[0][0], timestamp=last[0][1])
            if last
            else None,
        )

    async def summary(self) -> CatalogSummary:
        """Aggregate counts for status displays."""
        return await self._run_in_executor(self._summary_sync)

    def _vacuum_sync(self) -> None:
        with self._write_lock:
            try:
                self._conn.execute("VACUUM;")
                self._conn.execute("ANALYZE;")
                self._conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"Database vacuum failed: {e}") from e
        log.info("Catalog database optimized successfully.")

    async def vacuum(self) -> None:
        """Optimizes the database file by rebuilding it."""
        await asyncio.to_thread(self._vacuum_sync)
