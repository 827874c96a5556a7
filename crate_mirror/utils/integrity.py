"""
Provides methods for checking the integrity of downloaded archives.
"""

import hashlib
import logging
from pathlib import Path

log = logging.getLogger(__name__)

_READ_CHUNK = 1024 * 1024


def sha256_hex(data: bytes) -> str:
    """Lowercase hex sha256 digest of a buffer."""
    return hashlib.sha256(data).hexdigest()


def file_sha256_hex(path: Path) -> str:
    """Lowercase hex sha256 digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(_READ_CHUNK):
            digest.update(chunk)
    return digest.hexdigest()


def verify_checksum(data: bytes, expected: str) -> tuple[bool, str]:
    """
    Compares the digest of ``data`` with an expected hex checksum.

    Returns:
        A tuple of (matches, computed digest).
    """
    actual = sha256_hex(data)
    return actual == expected.lower(), actual


def verify_file(path: Path, expected: str) -> bool:
    """
    Checks whether an archive already on disk matches its checksum.

    Missing or unreadable files simply do not match.
    """
    try:
        return file_sha256_hex(path) == expected.lower()
    except OSError as e:
        log.debug(f"Could not verify '{path}': {e}")
        return False
