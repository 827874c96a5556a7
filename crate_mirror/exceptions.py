"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class CrateMirrorError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(CrateMirrorError):
    """Raised for issues related to configuration loading or validation."""


class IndexSyncError(CrateMirrorError):
    """Raised when the local index checkout cannot be cloned or inspected."""


class RegistryError(CrateMirrorError):
    """Base class for failures talking to the registry HTTP API."""


class TransportError(RegistryError):
    """Raised when the registry is unreachable or a request times out."""


class NotFoundError(RegistryError):
    """Raised when the registry answers with a non-success HTTP status."""

    def __init__(self, url: str, status: int, reason: str | None = None):
        self.url = url
        self.status = status
        super().__init__(f"{url}: {status} {reason or ''}".rstrip())


class MalformedError(CrateMirrorError):
    """Raised when a registry response or an index line cannot be decoded."""


class IntegrityMismatchError(CrateMirrorError):
    """Raised when an archive's digest does not match the expected checksum."""

    def __init__(
        self, name: str, version: str, expected: str, actual: str, body: bytes = b""
    ):
        self.name = name
        self.version = version
        self.expected = expected
        self.actual = actual
        self.body = body
        super().__init__(
            f"Hash mismatch for crate {name}-{version}. "
            f"Got {actual}, expected {expected}"
        )


class StoreError(CrateMirrorError):
    """Raised when the catalog database cannot be opened, read or written."""


class ConflictError(StoreError):
    """Raised when inserting a (name, version) pair that is already catalogued."""


class FilesystemError(CrateMirrorError):
    """Raised when a storage directory or archive file cannot be created."""
