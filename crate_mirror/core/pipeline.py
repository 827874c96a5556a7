"""
Runs a complete mirror pass: refresh the index, reconcile the catalog and
download pending archives.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Optional

from crate_mirror.api.client import RegistryAPIClient
from crate_mirror.cli.progress_manager import ProgressManager
from crate_mirror.exceptions import IndexSyncError
from crate_mirror.index.reader import read_index_config
from crate_mirror.index.repository import IndexRepository
from crate_mirror.models.config import MirrorConfig
from crate_mirror.models.stats import SyncStats
from crate_mirror.storage.catalog import CatalogStore
from crate_mirror.utils.path import create_dir

from .download_engine import DownloadEngine
from .reconciler import IndexReconciler

log = logging.getLogger(__name__)

HISTORY_FILE = "sync_history.jsonl"


class MirrorPipeline:
    """
    Orchestrates one sync run.

    The reconciler completes before the download engine starts, so downloads
    always see every version the current index snapshot added. Fatal errors
    (catalog failures, an unusable storage root or index) propagate to the
    caller; everything per crate or per version is counted in the returned
    stats instead.
    """

    def __init__(
        self,
        config: MirrorConfig,
        api_client: Optional[RegistryAPIClient] = None,
        progress: Optional[ProgressManager] = None,
    ):
        self.config = config
        self.progress = progress
        self.stats = SyncStats()
        self._api_client = api_client
        self.start_time = time.monotonic()

    async def run(self) -> SyncStats:
        """
        Executes the pipeline.

        Raises:
            StoreError: If the catalog cannot be opened or written.
            FilesystemError: If the archive root cannot be created.
            IndexSyncError: If the index has never been cloned and cloning fails.
            ConfigurationError: If the index has no usable ``config.json``.
        """
        self.start_time = time.monotonic()
        store = CatalogStore(self.config.db_file, pool_size=self.config.pool_size)
        try:
            await asyncio.to_thread(create_dir, self.config.crates_dir)

            if self.config.update_index:
                await self._refresh_index(store)

            base_url = await asyncio.to_thread(read_index_config, self.config.registry_dir)
            client = self._api_client or RegistryAPIClient.from_config(base_url, self.config)
            try:
                await IndexReconciler(
                    store, client, self.config, self.stats, self.progress
                ).run()
                await DownloadEngine(
                    store, client, self.config, self.stats, self.progress
                ).run()
            finally:
                if self._api_client is None:
                    await client.close()
        finally:
            store.close()
        return self.stats

    async def _refresh_index(self, store: CatalogStore) -> None:
        """
        Clones or fast-forwards the index and logs the revision in the catalog.
        A failed pull keeps the existing snapshot; a failed first clone is fatal.
        """
        repository = IndexRepository(self.config.registry_dir, self.config.index_url)
        if repository.exists:
            try:
                revision = await repository.refresh()
            except IndexSyncError as e:
                log.warning(
                    f"[yellow]Could not update the index, using the local copy:[/yellow] {e}"
                )
                return
        else:
            revision = await repository.refresh()

        self.stats.revision = revision
        self.stats.index_refreshed = True
        await store.record_sync(revision)
        log.info(f"Index at revision [bold]{revision}[/bold]")

    def save_sync_history(self) -> None:
        """Appends the stats of this run to the history file next to the config."""
        if not self.config.config_path:
            return
        history_file = Path(self.config.config_path) / HISTORY_FILE
        try:
            with open(history_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "duration_seconds": round(time.monotonic() - self.start_time, 2),
                    **self.stats.as_dict(),
                }
                json.dump(session_data, f)
                f.write("\n")
        except IOError as e:
            log.warning(f"[yellow]Could not save sync history:[/] {e}")
