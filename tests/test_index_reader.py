"""
Tests for walking and parsing the index checkout.
"""

import asyncio
import json

import pytest

from conftest import API_BASE, index_line
from crate_mirror.exceptions import ConfigurationError, FilesystemError, MalformedError
from crate_mirror.index.reader import iter_leaf_files, read_entries, read_index_config


def collect(path):
    """Drains read_entries, returning (entries, error)."""

    async def _collect():
        entries = []
        try:
            async for entry in read_entries(path):
                entries.append(entry)
        except (MalformedError, FilesystemError) as e:
            return entries, e
        return entries, None

    return asyncio.run(_collect())


class TestIterLeafFiles:
    def test_finds_every_crate_file(self, index_tree):
        index_tree.add_crate("a", "1.0.0")
        index_tree.add_crate("ab", "1.0.0")
        index_tree.add_crate("abc", "1.0.0")
        index_tree.add_crate("serde", "1.0.0")
        names = sorted(p.name for p in iter_leaf_files(index_tree.root))
        assert names == ["a", "ab", "abc", "serde"]

    def test_skips_git_hidden_entries_and_root_config(self, index_tree):
        index_tree.add_crate("rand", "0.1.0")
        (index_tree.root / ".git" / "objects").mkdir(parents=True)
        (index_tree.root / ".git" / "HEAD").write_text("ref: refs/heads/master\n")
        (index_tree.root / ".github").mkdir()
        (index_tree.root / ".github" / "workflow.yml").write_text("on: push\n")
        (index_tree.root / ".gitignore").write_text("*\n")
        assert [p.name for p in iter_leaf_files(index_tree.root)] == ["rand"]

    def test_order_is_stable(self, index_tree):
        for name in ("zeta", "alpha", "mid", "b"):
            index_tree.add_crate(name, "1.0.0")
        first = list(iter_leaf_files(index_tree.root))
        assert first == list(iter_leaf_files(index_tree.root))


class TestReadEntries:
    def test_entries_in_file_order(self, index_tree):
        path = index_tree.add_crate("rand", "0.1.0", "0.2.0", "0.3.0", yanked=("0.2.0",))
        entries, error = collect(path)
        assert error is None
        assert [e.version for e in entries] == ["0.1.0", "0.2.0", "0.3.0"]
        assert [e.yanked for e in entries] == [False, True, False]

    def test_blank_lines_ignored(self, index_tree):
        path = index_tree.write_lines(
            "rand", [index_line("rand", "0.1.0"), "", "   ", index_line("rand", "0.2.0")]
        )
        entries, error = collect(path)
        assert error is None
        assert len(entries) == 2

    def test_malformed_line_stops_after_earlier_entries(self, index_tree):
        path = index_tree.write_lines(
            "rand",
            [
                index_line("rand", "0.1.0"),
                '{"name": "rand", "vers": ',
                index_line("rand", "0.3.0"),
            ],
        )
        entries, error = collect(path)
        assert [e.version for e in entries] == ["0.1.0"]
        assert isinstance(error, MalformedError)
        assert "rand:2" in str(error)

    def test_missing_file(self, tmp_path):
        entries, error = collect(tmp_path / "nope")
        assert entries == []
        assert isinstance(error, FilesystemError)


class TestReadIndexConfig:
    def test_returns_download_base(self, index_tree):
        assert read_index_config(index_tree.root) == API_BASE

    def test_trailing_slash_removed(self, index_tree):
        (index_tree.root / "config.json").write_text(json.dumps({"dl": API_BASE + "/"}))
        assert read_index_config(index_tree.root) == API_BASE

    def test_missing_config(self, tmp_path):
        with pytest.raises(ConfigurationError):
            read_index_config(tmp_path)

    @pytest.mark.parametrize("content", ["{", "[]", json.dumps({"api": "x"}), '{"dl": ""}'])
    def test_invalid_config(self, index_tree, content):
        (index_tree.root / "config.json").write_text(content)
        with pytest.raises(ConfigurationError):
            read_index_config(index_tree.root)
