"""
Utilities for the sharded on-disk layout of mirrored archives.
"""

from pathlib import Path

from crate_mirror.exceptions import FilesystemError

ARCHIVE_EXTENSION = "crate"


def shard(name: str) -> str:
    """
    Returns the relative, sharded directory of a crate.

    The layout follows the registry index: one and two character names live
    under ``1/`` and ``2/``, three character names under ``3/{first char}/``,
    and everything else under ``{name[0:2]}/{name[2:4]}/``.

    >>> shard("abcd")
    'ab/cd/abcd'
    """
    if not name:
        raise ValueError("Crate name cannot be empty.")
    if len(name) == 1:
        return f"1/{name}"
    if len(name) == 2:
        return f"2/{name}"
    if len(name) == 3:
        return f"3/{name[0]}/{name}"
    return f"{name[0:2]}/{name[2:4]}/{name}"


def shard_directory(root: Path, name: str) -> Path:
    """Absolute storage directory of a crate below the archive root."""
    return root.joinpath(*shard(name).split("/"))


def archive_filename(name: str, version: str) -> str:
    return f"{name}-{version}.{ARCHIVE_EXTENSION}"


def archive_path(root: Path, name: str, version: str) -> Path:
    """Full path of the stored archive for one crate version."""
    return shard_directory(root, name) / archive_filename(name, version)


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    try:
        directory_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Cannot create directory '{directory_path}': {e}") from e
