"""
Main entry point for the crate-mirror application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from crate_mirror.cli.app import app
from crate_mirror.cli.formatters import format_error_with_suggestions
from crate_mirror.exceptions import CrateMirrorError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("crate_mirror")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print(
            "\n[yellow]⚠️  Interrupted. Pending versions will be retried on the"
            " next sync.[/yellow]"
        )
        sys.exit(130)
    except CrateMirrorError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
