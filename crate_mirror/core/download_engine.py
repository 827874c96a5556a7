"""
Retrieves every pending archive, verifies it and stores it in the sharded layout.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
from rich.markup import escape

from crate_mirror.api.client import RegistryAPIClient
from crate_mirror.cli.progress_manager import ProgressManager
from crate_mirror.exceptions import (
    FilesystemError,
    IntegrityMismatchError,
    MalformedError,
    RegistryError,
)
from crate_mirror.models.catalog import PendingVersion
from crate_mirror.models.config import MirrorConfig
from crate_mirror.models.stats import SyncStats
from crate_mirror.storage.catalog import CatalogStore
from crate_mirror.utils.formatting import format_size, truncate_body
from crate_mirror.utils.integrity import verify_checksum, verify_file
from crate_mirror.utils.path import archive_filename, create_dir, shard_directory

from .worker_pool import WorkerPool

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredArchive:
    """A verified archive on disk, waiting to be flagged in the catalog."""

    version: PendingVersion
    size: int
    recovered: bool = False


class DownloadEngine:
    """
    Downloads all catalogued versions that are not yet mirrored.

    An archive is only ever written after its sha256 digest matched the
    catalogued checksum, and a version is only flagged as downloaded after its
    archive reached its final path. Failed versions stay pending and are
    retried on the next run. Archives already present and intact (for example
    from an interrupted run) are flagged without being fetched again.
    """

    def __init__(
        self,
        store: CatalogStore,
        client: RegistryAPIClient,
        config: MirrorConfig,
        stats: SyncStats,
        progress: Optional[ProgressManager] = None,
    ):
        self.store = store
        self.client = client
        self.config = config
        self.stats = stats
        self.progress = progress
        self._writer: Optional[WorkerPool[StoredArchive]] = None

    async def run(self) -> SyncStats:
        pending = await self.store.pending_versions()
        if not self.config.download_yanked:
            skipped = sum(1 for v in pending if v.yanked)
            pending = [v for v in pending if not v.yanked]
            if skipped:
                log.info(f"Not downloading {skipped} yanked versions")

        self.stats.versions_pending = len(pending)
        if not pending:
            log.info("[green]All catalogued versions are already mirrored.[/green]")
            return self.stats

        log.info(f"Downloading {len(pending)} pending versions")
        if self.progress:
            self.progress.start_stage("Downloading archives", len(pending))

        size = self.config.pool_size
        self._writer = WorkerPool("catalog-writer", self._record, size=1)
        async with self._writer:
            async with WorkerPool(
                "download", self._process_version, size=size, maxsize=size * 2
            ) as workers:
                for version in pending:
                    await workers.submit(version)

        log.info(
            f"Downloaded {self.stats.versions_downloaded} archives "
            f"({format_size(self.stats.bytes_downloaded)}), "
            f"{self.stats.versions_failed} failed"
        )
        return self.stats

    async def _process_version(self, version: PendingVersion) -> None:
        """Retrieves one version; every failure is contained to that version."""
        failed = True
        try:
            stored = await self._retrieve(version)
            failed = False
        except IntegrityMismatchError as e:
            self.stats.checksum_mismatches += 1
            self.stats.versions_failed += 1
            self.stats.record_failure(version.label)
            log.warning(
                f"[yellow]Hash mismatch for crate {escape(version.label)}.[/yellow] "
                f"Got {e.actual}, expected {e.expected}. "
                f"Response body: {escape(truncate_body(e.body))}"
            )
            return
        except (RegistryError, MalformedError, FilesystemError) as e:
            self.stats.versions_failed += 1
            self.stats.record_failure(version.label)
            log.error(f"[red]✗ Failed:[/] {escape(version.label)} ({e})")
            return
        finally:
            if self.progress:
                self.progress.advance(failed=failed)

        await self._writer.submit(stored)

    async def _retrieve(self, version: PendingVersion) -> StoredArchive:
        directory = shard_directory(self.config.crates_dir, version.name)
        await asyncio.to_thread(create_dir, directory)
        target = directory / archive_filename(version.name, version.version)

        if await asyncio.to_thread(verify_file, target, version.checksum):
            log.debug(f"{version.label} is already on disk, skipping download")
            return StoredArchive(version, target.stat().st_size, recovered=True)

        data = await self.client.fetch_archive(version.name, version.version)
        matches, actual = await asyncio.to_thread(verify_checksum, data, version.checksum)
        if not matches:
            raise IntegrityMismatchError(
                version.name, version.version, version.checksum, actual, body=data
            )

        await self._write_archive(target, data)
        return StoredArchive(version, len(data))

    async def _write_archive(self, target: Path, data: bytes) -> None:
        """Writes to a temporary sibling and renames it into place."""
        temp_path = target.with_name(f"{target.name}.part")
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await asyncio.to_thread(os.replace, temp_path, target)
        except OSError as e:
            raise FilesystemError(f"Cannot write '{target}': {e}") from e
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError as e:
                    log.debug(f"Could not remove '{temp_path}': {e}")

    async def _record(self, stored: StoredArchive) -> None:
        """The single catalog writer for this stage."""
        version = stored.version
        if not await self.store.mark_downloaded(version.name, version.version, stored.size):
            log.debug(f"{version.label} was already flagged as downloaded")
            return
        if stored.recovered:
            self.stats.versions_recovered += 1
        else:
            self.stats.versions_downloaded += 1
            self.stats.bytes_downloaded += stored.size
