"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crate_mirror import __version__

DEFAULT_INDEX_URL = "https://github.com/rust-lang/crates.io-index"
DEFAULT_USER_AGENT = f"crate-mirror/{__version__}"

# Upper bound for the worker pools of both pipeline stages
MAX_WORKERS = 256


class MirrorConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Index source and local paths
    index_url: str = DEFAULT_INDEX_URL
    registry_path: str
    crates_path: str
    db_path: str
    update_index: bool = True

    # Concurrency & HTTP Settings
    workers: int = 0
    requests_per_second: float = 10.0
    timeout: float = 60.0
    user_agent: str = DEFAULT_USER_AGENT

    # Content Options
    enrich_license: bool = True
    download_yanked: bool = True

    # Internal field not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("index_url", "registry_path", "crates_path", "db_path")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Rejects blank locations."""
        if not v:
            raise ValueError("Value cannot be empty.")
        return v

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers (0 selects the default)."""
        if v < 0 or v > MAX_WORKERS:
            raise ValueError(f"Workers must be between 0 and {MAX_WORKERS}.")
        return v

    @field_validator("requests_per_second", "timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be greater than zero.")
        return v

    @property
    def pool_size(self) -> int:
        """Worker count for both stages: explicit value or twice the CPU count."""
        if self.workers:
            return self.workers
        return 2 * (os.cpu_count() or 1)

    @property
    def registry_dir(self) -> Path:
        return Path(self.registry_path).expanduser()

    @property
    def crates_dir(self) -> Path:
        return Path(self.crates_path).expanduser()

    @property
    def db_file(self) -> Path:
        return Path(self.db_path).expanduser()

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
