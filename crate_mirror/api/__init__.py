"""
Registry API Layer.

This package handles all communication with the registry's HTTP API.
"""

from .client import RegistryAPIClient
from .rate_limiter import AdaptiveRateLimiter

__all__ = ["AdaptiveRateLimiter", "RegistryAPIClient"]
