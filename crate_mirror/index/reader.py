"""
Reads the registry index checkout: its API configuration and the per-crate
files of JSON lines.
"""

import json
import logging
import os
from pathlib import Path
from typing import AsyncIterator, Iterator

import aiofiles

from crate_mirror.exceptions import ConfigurationError, FilesystemError, MalformedError
from crate_mirror.models.catalog import IndexEntry

log = logging.getLogger(__name__)

INDEX_CONFIG_FILE = "config.json"


def read_index_config(registry_path: Path) -> str:
    """
    Returns the registry download API base URL (the ``dl`` key) from the index
    root's ``config.json``.

    Raises:
        ConfigurationError: If the file is missing, undecodable or has no ``dl``.
    """
    config_file = registry_path / INDEX_CONFIG_FILE
    try:
        with open(config_file, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read index config '{config_file}': {e}") from e

    dl = data.get("dl") if isinstance(data, dict) else None
    if not isinstance(dl, str) or not dl.strip():
        raise ConfigurationError(f"Index config '{config_file}' has no 'dl' URL.")
    return dl.strip().rstrip("/")


def iter_leaf_files(registry_path: Path) -> Iterator[Path]:
    """
    Yields every per-crate file below the index root in a stable order.

    Hidden entries (``.git``, ``.github``, ...) and the root ``config.json`` are
    not crate files and are skipped.
    """
    for dirpath, dirnames, filenames in os.walk(registry_path):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        is_root = Path(dirpath) == registry_path
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            if is_root and filename == INDEX_CONFIG_FILE:
                continue
            yield Path(dirpath) / filename


def collect_leaf_files(registry_path: Path) -> list[Path]:
    return list(iter_leaf_files(registry_path))


async def read_entries(path: Path) -> AsyncIterator[IndexEntry]:
    """
    Parses an index file entry by entry, in file order.

    Blank lines are ignored. The first malformed line raises ``MalformedError``;
    entries before it have already been yielded.

    Raises:
        FilesystemError: If the file cannot be read.
        MalformedError: On the first line that is not a valid entry.
    """
    try:
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
    except OSError as e:
        raise FilesystemError(f"Cannot read index file '{path}': {e}") from e

    for lineno, line in enumerate(content.splitlines(), 1):
        if not line.strip():
            continue
        try:
            yield IndexEntry.parse_line(line)
        except MalformedError as e:
            raise MalformedError(f"{path.name}:{lineno}: {e}") from e
