"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from crate_mirror import __version__
from crate_mirror.core.pipeline import MirrorPipeline
from crate_mirror.exceptions import CrateMirrorError
from crate_mirror.models.config import DEFAULT_INDEX_URL, MirrorConfig
from crate_mirror.storage.catalog import CatalogStore
from crate_mirror.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_status_table,
    print_summary_panel,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("crate_mirror")

app = typer.Typer(
    name="crate-mirror",
    help=(
        "Mirror a crate registry: sync the index, catalog every version and"
        " download verified archives. Use 'crate-mirror <command> --help' for"
        " more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "crate-mirror"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

CONFIG_OPTION_HELP = "Path to the configuration file."


def _load_config(config_file: Path, cli_options: dict | None = None) -> MirrorConfig:
    try:
        return ConfigManager(config_file).load_config(cli_options)
    except CrateMirrorError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Crate Registry Mirror CLI"""
    if version:
        console.print(f"[bold]crate-mirror[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("crate_mirror").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    registry_path: Path = typer.Argument(..., help="Local checkout of the index."),
    crates_path: Path = typer.Argument(..., help="Root directory for archives."),
    db_path: Path = typer.Argument(..., help="Catalog database file."),
    index_url: str = typer.Option(
        DEFAULT_INDEX_URL, "--index-url", help="Git URL of the registry index."
    ),
    config_file: Path = typer.Option(CONFIG_FILE, "--config", help=CONFIG_OPTION_HELP),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Initialize a configuration file for a new mirror."""
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "index_url": index_url,
        "registry_path": str(registry_path.expanduser().resolve()),
        "crates_path": str(crates_path.expanduser().resolve()),
        "db_path": str(db_path.expanduser().resolve()),
    }
    try:
        ConfigManager(config_file).save_new_config(settings)
    except CrateMirrorError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"\n[bold green]✓ Configuration saved to '{config_file}'[/bold green]")
    console.print("Ready to mirror! Try: [cyan]crate-mirror sync[/cyan]")


@app.command()
def sync(
    config_file: Path = typer.Option(CONFIG_FILE, "--config", help=CONFIG_OPTION_HELP),
    no_update_index: bool = typer.Option(
        False,
        "--no-update-index",
        help="Reconcile from the existing index checkout without pulling.",
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of concurrent workers per stage (default: 2 x CPU count).",
    ),
):
    """Refresh the index, update the catalog and download pending archives."""
    cli_options = {
        key: value
        for key, value in {
            "update_index": False if no_update_index else None,
            "workers": workers,
        }.items()
        if value is not None
    }
    config = _load_config(config_file, cli_options)
    pipeline = MirrorPipeline(config)

    async def _sync_async():
        async with ProgressManager(
            console=console, enabled=console.is_terminal
        ) as progress_manager:
            pipeline.progress = progress_manager
            console.print("[bold cyan]📦 Starting sync session...[/bold cyan]")
            return await pipeline.run()

    try:
        stats = asyncio.run(_sync_async())
    except KeyboardInterrupt:
        console.print(
            "\n[yellow]⚠️  Sync interrupted. Pending versions will be retried on the"
            " next run.[/yellow]"
        )
        raise typer.Exit(code=130) from None
    except CrateMirrorError as e:
        console.print(format_error_with_suggestions(e))
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1) from e

    print_summary_panel(stats, time.monotonic() - pipeline.start_time)
    pipeline.save_sync_history()


@app.command()
def status(
    config_file: Path = typer.Option(CONFIG_FILE, "--config", help=CONFIG_OPTION_HELP),
):
    """Show catalog counts and the last index sync."""
    config = _load_config(config_file)
    if not config.db_file.is_file():
        console.print(
            "[yellow]No catalog yet.[/yellow] Run [cyan]crate-mirror sync[/cyan] first."
        )
        raise typer.Exit()

    async def _get_status():
        store = CatalogStore(config.db_file)
        try:
            return await store.summary()
        finally:
            store.close()

    try:
        summary = asyncio.run(_get_status())
    except CrateMirrorError as e:
        console.print(f"[red]Error accessing catalog: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_status_table(summary)


@app.command(name="show-config")
def show_config(
    config_file: Path = typer.Option(CONFIG_FILE, "--config", help=CONFIG_OPTION_HELP),
):
    """Display the effective configuration."""
    config = _load_config(config_file)
    config_data = {key: getattr(config, key) for key in sorted(config.get_ini_keys())}
    config_data["workers"] = f"{config.workers} (pool size {config.pool_size})"
    print_config(config_file, config_data)


@app.command()
def vacuum(
    config_file: Path = typer.Option(CONFIG_FILE, "--config", help=CONFIG_OPTION_HELP),
):
    """Optimize the catalog database."""
    config = _load_config(config_file)
    if not config.db_file.is_file():
        console.print("[yellow]No catalog to optimize.[/yellow]")
        raise typer.Exit()

    async def _vacuum():
        console.print("[cyan]Optimizing catalog database...[/cyan]")
        store = CatalogStore(config.db_file)
        try:
            await store.vacuum()
        finally:
            store.close()

    try:
        asyncio.run(_vacuum())
    except CrateMirrorError as e:
        console.print(f"[red]✗ Optimization failed: {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print("[green]✓ Database optimized.[/green]")
