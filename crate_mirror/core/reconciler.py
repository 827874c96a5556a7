"""
Walks the index checkout and brings the catalog up to date with it.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from rich.markup import escape

from crate_mirror.api.client import RegistryAPIClient
from crate_mirror.cli.progress_manager import ProgressManager
from crate_mirror.exceptions import (
    ConflictError,
    FilesystemError,
    MalformedError,
    RegistryError,
)
from crate_mirror.index.reader import collect_leaf_files, read_entries
from crate_mirror.models.catalog import IndexEntry, PackageInfo
from crate_mirror.models.config import MirrorConfig
from crate_mirror.models.stats import SyncStats
from crate_mirror.storage.catalog import CatalogStore

from .worker_pool import WorkerPool

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewPackage:
    info: PackageInfo


@dataclass(frozen=True)
class NewVersion:
    entry: IndexEntry
    license: Optional[str] = None


CatalogWrite = Union[NewPackage, NewVersion]


class IndexReconciler:
    """
    Adds every crate and version present in the index but missing from the
    catalog.

    Index files are processed concurrently by a pool of workers. Each worker
    fetches crate metadata for unknown crates, optionally the license of each
    new version, and hands the resulting rows to a single writer so catalog
    mutations never run concurrently. Writes for one file are queued in file
    order, so a crate row always lands before its versions.
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
        self._writer: Optional[WorkerPool[CatalogWrite]] = None

    async def run(self) -> SyncStats:
        """
        Reconciles the whole index.

        Raises:
            StoreError: If the catalog rejects a write for any reason other
                than a duplicate version.
        """
        files = await asyncio.to_thread(collect_leaf_files, self.config.registry_dir)
        log.info(f"Reconciling {len(files)} index files with the catalog")
        if self.progress:
            self.progress.start_stage("Reconciling index", len(files))

        size = self.config.pool_size
        self._writer = WorkerPool("catalog-writer", self._apply, size=1, maxsize=size * 4)
        async with self._writer:
            async with WorkerPool(
                "reconcile", self._reconcile_file, size=size, maxsize=size * 2
            ) as workers:
                for path in files:
                    await workers.submit(path)

        log.info(
            f"Catalog updated: {self.stats.packages_added} new crates, "
            f"{self.stats.versions_added} new versions"
        )
        return self.stats

    async def _reconcile_file(self, path: Path) -> None:
        """Processes one index file; any registry or parse failure only skips the file."""
        failed = False
        try:
            await self._reconcile_entries(path)
        except (RegistryError, MalformedError, FilesystemError) as e:
            failed = True
            self.stats.files_aborted += 1
            self.stats.record_failure(path.name)
            log.warning(f"[yellow]Skipping rest of {escape(path.name)}:[/yellow] {e}")
        finally:
            self.stats.files_scanned += 1
            if self.progress:
                self.progress.advance(failed=failed)

    async def _reconcile_entries(self, path: Path) -> None:
        name = path.name
        if not await self.store.package_exists(name):
            try:
                info = await self.client.fetch_package_info(name)
            except (RegistryError, MalformedError):
                self.stats.packages_failed += 1
                raise
            await self._writer.submit(NewPackage(info))

        known = await self.store.known_versions(name)
        async for entry in read_entries(path):
            if entry.version in known:
                continue
            known.add(entry.version)

            license = None
            if self.config.enrich_license:
                license = (
                    await self.client.fetch_version_info(entry.name, entry.version)
                ).license
            await self._writer.submit(NewVersion(entry, license))

    async def _apply(self, write: CatalogWrite) -> None:
        """The single catalog writer. Duplicates are reported, other store errors are fatal."""
        if isinstance(write, NewPackage):
            info = write.info
            await self.store.upsert_package(info.name, info.description, info.documentation)
            self.stats.packages_added += 1
            log.debug(f"Added crate {info.name}")
            return

        entry = write.entry
        try:
            await self.store.insert_version(
                entry.name, entry.version, entry.checksum, entry.yanked, write.license
            )
        except ConflictError as e:
            self.stats.versions_conflicted += 1
            log.warning(f"[yellow]{e}[/yellow]")
            return
        self.stats.versions_added += 1
        log.debug(f"Added {entry.name}-{entry.version}")
