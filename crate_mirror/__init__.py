"""
crate-mirror: a local, offline-capable replica of the crates.io registry.
"""

__version__ = "0.3.0"
