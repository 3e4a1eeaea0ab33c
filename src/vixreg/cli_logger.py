"""Console output helpers shared by the CLI commands."""

import logging

from rich.console import Console
from rich.logging import RichHandler

_console = Console(stderr=False)
_err_console = Console(stderr=True)


def success(message: str) -> None:
    """Print a green check line."""
    _console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """Print a red cross line on stderr."""
    _err_console.print(f"[red]✗[/red] {message}")


def warning(message: str) -> None:
    """Print a yellow warning line on stderr."""
    _err_console.print(f"[yellow]![/yellow] {message}")


def info(message: str) -> None:
    _console.print(message)


def dim(message: str) -> None:
    _console.print(f"[dim]{message}[/dim]")


def setup_logging(verbose: bool = False) -> None:
    """Route library log records through rich.

    Library modules only call ``logging.getLogger(__name__)``; this is the
    single place a handler gets attached.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False)],
        force=True,
    )
