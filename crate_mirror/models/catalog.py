"""
Records exchanged between the index, the registry API and the catalog.
"""

import json
import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from crate_mirror.exceptions import MalformedError

_CHECKSUM_RE = re.compile(r"^[0-9a-f]{64}$")
_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_VERSION_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z.+-]*$")


class IndexEntry(BaseModel):
    """
    One line of an index file: a single published version of a crate.

    Only the fields needed for reconciliation are kept; dependency and feature
    data are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(min_length=1)
    version: str = Field(alias="vers", min_length=1)
    checksum: str = Field(alias="cksum")
    yanked: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not _NAME_RE.match(v):
            raise ValueError(f"invalid crate name: {v!r}")
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not _VERSION_RE.match(v):
            raise ValueError(f"invalid version: {v!r}")
        return v

    @field_validator("checksum")
    @classmethod
    def validate_checksum(cls, v: str) -> str:
        v = v.lower()
        if not _CHECKSUM_RE.match(v):
            raise ValueError("checksum must be a 64 character hex sha256 digest")
        return v

    @classmethod
    def parse_line(cls, line: str | bytes) -> "IndexEntry":
        """
        Parses one JSON line from an index file.

        Raises:
            MalformedError: If the line is not valid JSON or lacks required fields.
        """
        try:
            return cls.model_validate(json.loads(line))
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            raise MalformedError(f"Invalid index entry: {e}") from e


@dataclass(frozen=True)
class PackageInfo:
    """Descriptive metadata of a crate as reported by the registry."""

    name: str
    description: str | None = None
    documentation: str | None = None


@dataclass(frozen=True)
class VersionInfo:
    """Per-version metadata the index itself omits."""

    license: str | None = None


@dataclass(frozen=True)
class PendingVersion:
    """A catalogued version whose archive has not been retrieved yet."""

    name: str
    version: str
    checksum: str
    yanked: bool = False

    @property
    def label(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass(frozen=True)
class SyncRecord:
    """An entry of the index refresh audit log."""

    revision: str
    timestamp: str


@dataclass(frozen=True)
class CatalogSummary:
    """Aggregate counts over the catalog."""

    packages: int = 0
    versions: int = 0
    downloaded: int = 0
    pending: int = 0
    yanked: int = 0
    total_size: int = 0
    last_sync: SyncRecord | None = None
