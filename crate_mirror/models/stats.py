"""
Dataclass for tracking the counters of a mirror run.
"""

from dataclasses import asdict, dataclass, field


@dataclass
class SyncStats:
    """Tracks statistics for a sync session, one section per pipeline stage."""

    revision: str | None = None
    index_refreshed: bool = False

    # Reconciliation
    files_scanned: int = 0
    files_aborted: int = 0
    packages_added: int = 0
    packages_failed: int = 0
    versions_added: int = 0
    versions_conflicted: int = 0

    # Retrieval
    versions_pending: int = 0
    versions_downloaded: int = 0
    versions_recovered: int = 0
    versions_failed: int = 0
    checksum_mismatches: int = 0
    bytes_downloaded: int = 0

    failures: list[str] = field(default_factory=list, repr=False)

    def record_failure(self, label: str) -> None:
        """Keeps the label of a failed item for the end-of-run summary."""
        if len(self.failures) < 50:
            self.failures.append(label)

    def as_dict(self) -> dict:
        data = asdict(self)
        data.pop("failures")
        return data
