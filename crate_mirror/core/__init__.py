"""
Core application engine for mirroring the registry.

The `MirrorPipeline` coordinates a run: the `IndexReconciler` brings the
catalog in line with the index, then the `DownloadEngine` fetches and verifies
every pending archive. Both stages fan work out over a `WorkerPool`.
"""

from .download_engine import DownloadEngine
from .pipeline import MirrorPipeline
from .reconciler import IndexReconciler
from .worker_pool import WorkerPool

__all__ = ["DownloadEngine", "IndexReconciler", "MirrorPipeline", "WorkerPool"]
