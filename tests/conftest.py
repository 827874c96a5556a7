"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path

import pytest

from crate_mirror.exceptions import MalformedError, NotFoundError, TransportError
from crate_mirror.models.catalog import PackageInfo, VersionInfo
from crate_mirror.models.config import MirrorConfig
from crate_mirror.utils.integrity import sha256_hex
from crate_mirror.utils.path import shard

API_BASE = "https://registry.test/api/v1/crates"


def archive_bytes(name: str, version: str) -> bytes:
    """Deterministic fake archive payload for a crate version."""
    return f"archive of {name} {version}".encode()


def index_line(name: str, version: str, yanked: bool = False, **extra) -> str:
    """One index entry whose checksum matches ``archive_bytes``."""
    record = {
        "name": name,
        "vers": version,
        "deps": [],
        "cksum": sha256_hex(archive_bytes(name, version)),
        "features": {},
        "yanked": yanked,
    }
    record.update(extra)
    return json.dumps(record)


class IndexTree:
    """Builds a registry index checkout on disk."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "config.json").write_text(
            json.dumps({"dl": API_BASE, "api": "https://registry.test"})
        )

    def path_for(self, name: str) -> Path:
        return self.root.joinpath(*shard(name.lower()).split("/"))

    def add_crate(self, name: str, *versions: str, yanked: tuple = ()) -> Path:
        lines = [index_line(name, v, yanked=v in yanked) for v in versions]
        return self.write_lines(name, lines)

    def write_lines(self, name: str, lines: list[str]) -> Path:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(f"{line}\n" for line in lines))
        return path

    def append(self, name: str, *versions: str) -> None:
        with open(self.path_for(name), "a") as f:
            for version in versions:
                f.write(index_line(name, version) + "\n")


class FakeRegistryClient:
    """
    In-memory stand-in for RegistryAPIClient with the same async interface.

    Every crate is known unless listed in ``failing_packages``; archives are
    served from ``archives`` which defaults to ``archive_bytes`` payloads.
    """

    def __init__(self):
        self.archives: dict[tuple[str, str], bytes] = {}
        self.licenses: dict[tuple[str, str], str] = {}
        self.failing_packages: set[str] = set()
        self.failing_versions: set[tuple[str, str]] = set()
        self.missing_archives: set[tuple[str, str]] = set()
        self.malformed_packages: set[str] = set()
        self.calls: list[tuple] = []
        self.closed = False

    async def fetch_package_info(self, name: str) -> PackageInfo:
        self.calls.append(("package", name))
        if name in self.failing_packages:
            raise TransportError(f"{API_BASE}/{name}: connection reset")
        if name in self.malformed_packages:
            raise MalformedError(f"Response for crate '{name}' has no 'crate' object.")
        return PackageInfo(
            name=name,
            description=f"The {name} crate",
            documentation=f"https://docs.test/{name}",
        )

    async def fetch_version_info(self, name: str, version: str) -> VersionInfo:
        self.calls.append(("version", name, version))
        if (name, version) in self.failing_versions:
            raise NotFoundError(f"{API_BASE}/{name}/{version}", 404, "Not Found")
        return VersionInfo(license=self.licenses.get((name, version), "MIT"))

    async def fetch_archive(self, name: str, version: str) -> bytes:
        self.calls.append(("archive", name, version))
        if (name, version) in self.missing_archives:
            raise NotFoundError(f"{API_BASE}/{name}/{version}/download", 404)
        return self.archives.get((name, version), archive_bytes(name, version))

    async def close(self) -> None:
        self.closed = True

    def archive_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "archive"]


@pytest.fixture
def index_tree(tmp_path) -> IndexTree:
    return IndexTree(tmp_path / "registry")


@pytest.fixture
def fake_client() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def config(tmp_path, index_tree) -> MirrorConfig:
    return MirrorConfig(
        registry_path=str(index_tree.root),
        crates_path=str(tmp_path / "crates"),
        db_path=str(tmp_path / "catalog.db"),
        update_index=False,
        workers=4,
    )
