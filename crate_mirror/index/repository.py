"""
Keeps the local git checkout of the registry index up to date.
"""

import asyncio
import logging
from pathlib import Path

from crate_mirror.exceptions import IndexSyncError

log = logging.getLogger(__name__)


class IndexRepository:
    """A git checkout of the registry index at a fixed local path."""

    def __init__(self, path: Path, url: str):
        self.path = Path(path)
        self.url = url

    @property
    def exists(self) -> bool:
        return (self.path / ".git").exists()

    async def _git(self, *args: str, cwd: Path) -> str:
        """Runs a git command and returns its stdout."""
        log.debug(f"Running git {' '.join(args)} in {cwd}")
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise IndexSyncError(f"Cannot run git: {e}") from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise IndexSyncError(
                f"git {args[0]} failed ({proc.returncode}): "
                f"{stderr.decode(errors='replace').strip()}"
            )
        return stdout.decode(errors="replace").strip()

    async def clone(self) -> None:
        log.info(f"Cloning {self.url} into [dim]{self.path}[/dim]")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IndexSyncError(f"Cannot create '{self.path.parent}': {e}") from e
        await self._git("clone", self.url, str(self.path), cwd=self.path.parent)

    async def pull(self) -> None:
        log.info(f"Pulling in [dim]{self.path}[/dim]")
        await self._git("pull", "--rebase=false", "--ff-only", cwd=self.path)
        log.info(f"{self.path} is up to date")

    async def head_revision(self) -> str:
        return await self._git("rev-parse", "HEAD", cwd=self.path)

    async def refresh(self) -> str:
        """
        Clones the index on first use, fast-forwards it otherwise, and returns
        the checked-out revision id.
        """
        if self.exists:
            await self.pull()
        else:
            await self.clone()
        return await self.head_revision()
