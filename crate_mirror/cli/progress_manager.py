"""
Manages a Rich progress display for the stages of a mirror run.
"""

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


class ProgressManager:
    """
    One progress bar per pipeline stage (reconciling the index, downloading
    archives), plus running counts of failures shown in the bar description.
    """

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            MofNCompleteColumn(),
            "•",
            TimeElapsedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
            disable=not enabled,
        )
        self._task_id: TaskID | None = None
        self._description = ""
        self._failed = 0
        self._total = 0

    def start_stage(self, description: str, total: int) -> None:
        """Finishes the current bar, if any, and opens a new one."""
        self.finish_stage()
        self._description = description
        self._failed = 0
        self._total = total
        self._task_id = self.progress.add_task(
            f"[bold blue]{description}", total=total
        )

    def advance(self, count: int = 1, failed: bool = False) -> None:
        if self._task_id is None:
            return
        if failed:
            self._failed += 1
            self.progress.update(
                self._task_id,
                description=f"[bold blue]{self._description} "
                f"[red]({self._failed} failed)[/red]",
            )
        self.progress.advance(self._task_id, count)

    def finish_stage(self) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=self._total)
            self._task_id = None

    async def __aenter__(self) -> "ProgressManager":
        self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.finish_stage()
        self.progress.stop()
