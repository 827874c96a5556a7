"""
Data Models Layer.

This package contains the pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration,
index entries and run statistics.
"""

from .catalog import (
    CatalogSummary,
    IndexEntry,
    PackageInfo,
    PendingVersion,
    SyncRecord,
    VersionInfo,
)
from .config import MirrorConfig
from .stats import SyncStats

__all__ = [
    "CatalogSummary",
    "IndexEntry",
    "MirrorConfig",
    "PackageInfo",
    "PendingVersion",
    "SyncRecord",
    "SyncStats",
    "VersionInfo",
]
