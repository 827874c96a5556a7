"""
Storage Layer.

This package handles all data persistence: the configuration file and the
SQLite catalog of mirrored crate versions.
"""

from .catalog import CatalogStore
from .config_manager import ConfigManager

__all__ = ["CatalogStore", "ConfigManager"]
