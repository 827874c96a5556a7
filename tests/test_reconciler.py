"""
Tests for IndexReconciler: catalog updates from the index checkout.
"""

import asyncio
import sqlite3

from conftest import index_line
from crate_mirror.core.reconciler import IndexReconciler
from crate_mirror.models.stats import SyncStats
from crate_mirror.storage.catalog import CatalogStore


def reconcile(config, client):
    """One reconciler pass with a fresh store; returns (stats, pending, summary)."""

    async def _run():
        store = CatalogStore(config.db_file)
        try:
            stats = await IndexReconciler(store, client, config, SyncStats()).run()
            pending = await store.pending_versions()
            summary = await store.summary()
        finally:
            store.close()
        return stats, pending, summary

    return asyncio.run(_run())


def versions_of(pending, name):
    return [p.version for p in pending if p.name.lower() == name.lower()]


class TestReconcile:
    def test_adds_crates_and_versions(self, config, index_tree, fake_client):
        index_tree.add_crate("a", "0.1.0")
        index_tree.add_crate("serde", "1.0.0", "1.0.1", yanked=("1.0.0",))

        stats, pending, summary = reconcile(config, fake_client)

        assert stats.files_scanned == 2
        assert stats.packages_added == 2
        assert stats.versions_added == 3
        assert summary.packages == 2
        assert summary.yanked == 1
        assert versions_of(pending, "serde") == ["1.0.0", "1.0.1"]
        assert all(not p.name.startswith(".") for p in pending)

    def test_second_run_adds_nothing(self, config, index_tree, fake_client):
        index_tree.add_crate("rand", "0.1.0", "0.2.0")
        index_tree.add_crate("tokio", "1.0.0")

        reconcile(config, fake_client)
        fake_client.calls.clear()
        stats, pending, summary = reconcile(config, fake_client)

        assert stats.versions_added == 0
        assert stats.packages_added == 0
        assert summary.versions == 3
        assert fake_client.calls == []

    def test_appended_versions_are_picked_up(self, config, index_tree, fake_client):
        index_tree.add_crate("rand", "0.1.0")
        reconcile(config, fake_client)

        index_tree.append("rand", "0.2.0", "0.3.0")
        fake_client.calls.clear()
        stats, pending, _ = reconcile(config, fake_client)

        assert stats.versions_added == 2
        assert versions_of(pending, "rand") == ["0.1.0", "0.2.0", "0.3.0"]
        assert ("package", "rand") not in fake_client.calls

    def test_license_enrichment(self, config, index_tree, fake_client):
        index_tree.add_crate("rand", "0.1.0")
        fake_client.licenses[("rand", "0.1.0")] = "Apache-2.0"
        reconcile(config, fake_client)

        with sqlite3.connect(config.db_file) as conn:
            row = conn.execute("SELECT license FROM crate_version").fetchone()
        assert row == ("Apache-2.0",)

    def test_license_enrichment_can_be_disabled(self, config, index_tree, fake_client):
        config.enrich_license = False
        index_tree.add_crate("rand", "0.1.0")
        stats, _, _ = reconcile(config, fake_client)

        assert stats.versions_added == 1
        assert not any(call[0] == "version" for call in fake_client.calls)

    def test_published_casing_is_kept(self, config, index_tree, fake_client):
        index_tree.write_lines("inflector", [index_line("Inflector", "0.11.4")])
        stats, pending, _ = reconcile(config, fake_client)

        assert stats.versions_added == 1
        assert pending[0].name == "Inflector"

        again, _, summary = reconcile(config, fake_client)
        assert again.versions_added == 0
        assert summary.versions == 1


class TestFailureIsolation:
    def test_metadata_failure_skips_only_that_crate(self, config, index_tree, fake_client):
        index_tree.add_crate("good", "1.0.0")
        index_tree.add_crate("flaky", "1.0.0", "2.0.0")
        fake_client.failing_packages.add("flaky")

        stats, pending, summary = reconcile(config, fake_client)

        assert stats.packages_failed == 1
        assert stats.files_aborted == 1
        assert "flaky" in stats.failures
        assert versions_of(pending, "flaky") == []
        assert versions_of(pending, "good") == ["1.0.0"]
        assert summary.packages == 1

    def test_metadata_failure_is_retried_next_run(self, config, index_tree, fake_client):
        index_tree.add_crate("flaky", "1.0.0")
        fake_client.failing_packages.add("flaky")
        reconcile(config, fake_client)

        fake_client.failing_packages.clear()
        stats, pending, _ = reconcile(config, fake_client)

        assert stats.packages_added == 1
        assert versions_of(pending, "flaky") == ["1.0.0"]

    def test_malformed_line_keeps_earlier_entries(self, config, index_tree, fake_client):
        index_tree.write_lines(
            "rand",
            [
                index_line("rand", "0.1.0"),
                index_line("rand", "0.2.0"),
                "{this is not json",
                index_line("rand", "0.3.0"),
            ],
        )
        index_tree.add_crate("other", "1.0.0")

        stats, pending, _ = reconcile(config, fake_client)

        assert stats.files_aborted == 1
        assert versions_of(pending, "rand") == ["0.1.0", "0.2.0"]
        assert versions_of(pending, "other") == ["1.0.0"]

    def test_license_failure_stops_the_file(self, config, index_tree, fake_client):
        index_tree.add_crate("rand", "0.1.0", "0.2.0", "0.3.0")
        fake_client.failing_versions.add(("rand", "0.2.0"))

        stats, pending, _ = reconcile(config, fake_client)

        assert stats.files_aborted == 1
        assert versions_of(pending, "rand") == ["0.1.0"]

        fake_client.failing_versions.clear()
        stats, pending, _ = reconcile(config, fake_client)
        assert versions_of(pending, "rand") == ["0.1.0", "0.2.0", "0.3.0"]

    def test_duplicate_line_is_counted_once(self, config, index_tree, fake_client):
        index_tree.write_lines(
            "rand", [index_line("rand", "0.1.0"), index_line("rand", "0.1.0")]
        )
        stats, pending, _ = reconcile(config, fake_client)

        assert stats.versions_added == 1
        assert len(pending) == 1
