"""
Index Layer.

Reads and refreshes the git checkout of the registry index.
"""

from .reader import collect_leaf_files, iter_leaf_files, read_entries, read_index_config
from .repository import IndexRepository

__all__ = [
    "IndexRepository",
    "collect_leaf_files",
    "iter_leaf_files",
    "read_entries",
    "read_index_config",
]
