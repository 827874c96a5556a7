"""
Contains functions for formatting and printing rich output to the console.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from crate_mirror.models.catalog import CatalogSummary
from crate_mirror.models.stats import SyncStats
from crate_mirror.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `crate-mirror init` to create a configuration file.",
            "• Check the values with `crate-mirror show-config`.",
        ],
        "StoreError": [
            "• Check that the catalog path is writable and not used by another run.",
            "• A corrupted catalog can be moved aside; it is rebuilt from the index.",
        ],
        "FilesystemError": [
            "• Check that the archive root exists or can be created.",
            "• Verify free disk space and permissions.",
        ],
        "IndexSyncError": [
            "• Check that git is installed and the index URL is reachable.",
            "• Use `--no-update-index` to mirror from the existing checkout.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• The registry might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_status_table(summary: CatalogSummary):
    """Displays catalog counts and the last index sync."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(justify="right")

    table.add_row("Crates:", f"{summary.packages:,}")
    table.add_row("Versions:", f"{summary.versions:,}")
    table.add_row("Downloaded:", f"[green]{summary.downloaded:,}[/green]")
    table.add_row("Pending:", f"[yellow]{summary.pending:,}[/yellow]")
    table.add_row("Yanked:", f"{summary.yanked:,}")
    table.add_row("Mirrored Size:", f"[cyan]{format_size(summary.total_size)}[/cyan]")

    if summary.last_sync:
        table.add_row("", "")
        table.add_row("Index Revision:", f"[dim]{summary.last_sync.revision}[/dim]")
        table.add_row("Last Sync:", summary.last_sync.timestamp)
    else:
        table.add_row("Last Sync:", "[dim]never[/dim]")

    console.print(Panel(table, title="[bold]Catalog Status[/bold]", expand=False))


def print_summary_panel(stats: SyncStats, duration_s: float):
    """Displays the final summary of a sync run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=22)
    stats_table.add_column(style="white", justify="left")

    if stats.index_refreshed:
        stats_table.add_row("Index Revision:", f"[dim]{stats.revision}[/dim]")

    # Reconciliation
    stats_table.add_row("Index Files:", str(stats.files_scanned))
    stats_table.add_row(
        "+ New Crates:", f"[bold green]{stats.packages_added}[/bold green]"
    )
    stats_table.add_row(
        "+ New Versions:", f"[bold green]{stats.versions_added}[/bold green]"
    )
    if stats.files_aborted > 0:
        stats_table.add_row(
            "⚠ Files Skipped:", f"[yellow]{stats.files_aborted}[/yellow]"
        )
    if stats.versions_conflicted > 0:
        stats_table.add_row(
            "⚠ Duplicates:", f"[yellow]{stats.versions_conflicted}[/yellow]"
        )

    stats_table.add_row("", "")  # Spacer

    # Retrieval
    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.versions_downloaded}[/bold green]"
    )
    if stats.versions_recovered > 0:
        stats_table.add_row(
            "○ Already on Disk:", f"[yellow]{stats.versions_recovered}[/yellow]"
        )
    if stats.versions_failed > 0:
        failed = f"[bold red]{stats.versions_failed}[/bold red]"
        if stats.checksum_mismatches:
            failed += f" [red]({stats.checksum_mismatches} hash mismatches)[/red]"
        stats_table.add_row("✗ Failed:", failed)

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_downloaded)}[/cyan]"
    )
    avg_speed = stats.bytes_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.failures:
        stats_table.add_row("", "")
        stats_table.add_row("Failed Items:", f"[dim]{', '.join(stats.failures)}[/dim]")

    has_failures = stats.versions_failed or stats.files_aborted
    console.print()
    console.print(
        Panel(
            stats_table,
            title="📦 [bold]Sync Complete[/bold]",
            border_style="yellow" if has_failures else "green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
