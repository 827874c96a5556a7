"""
Async client for the registry's crate metadata and download endpoints.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from crate_mirror.exceptions import MalformedError, NotFoundError, TransportError
from crate_mirror.models.catalog import PackageInfo, VersionInfo
from crate_mirror.models.config import DEFAULT_USER_AGENT, MirrorConfig

from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)


class RegistryAPIClient:
    """
    Async client for the registry HTTP surface rooted at the index's ``dl`` URL.

    Endpoints:
    - ``GET {base}/{name}``: crate metadata (description, documentation)
    - ``GET {base}/{name}/{version}``: version metadata (license)
    - ``GET {base}/{name}/{version}/download``: the raw ``.crate`` archive

    Every failure surfaces as a typed exception: ``TransportError`` for network
    problems, ``NotFoundError`` for any non-2xx status and ``MalformedError`` for
    bodies that cannot be decoded. Nothing is retried here.
    """

    def __init__(
        self,
        base_url: str,
        max_workers: int = 8,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 60.0,
        requests_per_second: float = 10.0,
    ):
        """
        Initializes the API client.

        Args:
            base_url: The registry API root, e.g. ``https://crates.io/api/v1/crates``.
            max_workers: The number of concurrent workers, used to tune the connection pool.
            user_agent: Identifies the mirror to the registry operators.
            timeout: Total seconds allowed per request, body included.
            requests_per_second: Initial request rate for the adaptive limiter.
        """
        self.base_url = base_url.rstrip("/")
        self.max_workers = max_workers
        self.user_agent = user_agent
        self.timeout = timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = AdaptiveRateLimiter(requests_per_second)

    @classmethod
    def from_config(cls, base_url: str, config: MirrorConfig) -> "RegistryAPIClient":
        return cls(
            base_url,
            max_workers=config.pool_size,
            user_agent=config.user_agent,
            timeout=config.timeout,
            requests_per_second=config.requests_per_second,
        )

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_workers * 2,
                limit_per_host=self.max_workers,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept-Encoding": "gzip, deflate",
                },
                timeout=aiohttp.ClientTimeout(
                    total=self.timeout, connect=15, sock_read=30
                ),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "RegistryAPIClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get(self, path: str) -> bytes:
        """
        Performs a rate-limited GET and returns the full body.

        Raises:
            TransportError: On connection failures and timeouts.
            NotFoundError: On any non-2xx response.
        """
        await self._initialize_session()
        await self._rate_limiter.acquire()

        url = f"{self.base_url}/{path}"
        start_time = time.monotonic()
        try:
            async with self._session.get(url) as r:
                if r.status == 429:
                    await self._rate_limiter.on_429()
                if not 200 <= r.status < 300:
                    raise NotFoundError(url, r.status, r.reason)
                body = await r.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Request to {url} failed: {e!r}")
            raise TransportError(f"{url}: {e!r}") from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log.debug(f"GET {url} -> {len(body)} bytes in {duration_ms:.0f} ms")
        return body

    async def _get_json(self, path: str) -> Dict[str, Any]:
        body = await self._get(path)
        try:
            data = json.loads(body)
        except ValueError as e:
            raise MalformedError(f"Undecodable response from '{path}': {e}") from e
        if not isinstance(data, dict):
            raise MalformedError(f"Unexpected response shape from '{path}'.")
        return data

    # Public API Methods
    async def fetch_package_info(self, name: str) -> PackageInfo:
        """Fetches a crate's description and documentation URL."""
        data = await self._get_json(name)
        crate = data.get("crate")
        if not isinstance(crate, dict):
            raise MalformedError(f"Response for crate '{name}' has no 'crate' object.")
        return PackageInfo(
            name=crate.get("id") or crate.get("name") or name,
            description=crate.get("description"),
            documentation=crate.get("documentation"),
        )

    async def fetch_version_info(self, name: str, version: str) -> VersionInfo:
        """Fetches the license of a single crate version."""
        data = await self._get_json(f"{name}/{version}")
        info = data.get("version")
        if not isinstance(info, dict):
            raise MalformedError(
                f"Response for '{name}-{version}' has no 'version' object."
            )
        return VersionInfo(license=info.get("license"))

    async def fetch_archive(self, name: str, version: str) -> bytes:
        """Downloads the complete archive of a crate version into memory."""
        return await self._get(f"{name}/{version}/download")
