"""vix-registry CLI entry point."""

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from vixreg import __version__, cli_logger, exit_codes
from vixreg.builder import (
    DEFAULT_OUTPUT,
    BuildReport,
    RegistryMetadataError,
    RegistryNotFoundError,
    build_snapshot,
    locate_registry_root,
    write_snapshot,
)
from vixreg.cache import SnapshotCache
from vixreg.config import Settings
from vixreg.errors import format_validation_errors, handle_cli_error
from vixreg.freshness import RefreshThrottle
from vixreg.loader import HttpSnapshotSource, IndexLoader, SnapshotFetchError, SnapshotInvalidError
from vixreg.search import NOT_FOUND
from vixreg.worker import SearchWorker

app = typer.Typer(
    name="vix-registry",
    help="Build and search an offline snapshot of the Vix package registry.",
    no_args_is_help=True,
)
cache_app = typer.Typer(
    help="Inspect or reset the local snapshot cache.",
    no_args_is_help=True,
)
app.add_typer(cache_app, name="cache")

console = Console()


class SortChoice(str, Enum):
    """Result orderings accepted by ``search``."""

    SCORE = "score"
    LATEST = "latest"


def load_settings() -> Settings:
    """Load settings, turning configuration errors into a clean exit."""
    try:
        return Settings.load()
    except ValidationError as e:
        cli_logger.error(f"Invalid configuration: {format_validation_errors(e)}")
        raise typer.Exit(exit_codes.INVALID_ARGS) from e
    except ValueError as e:
        cli_logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(exit_codes.INVALID_ARGS) from e


def make_loader(settings: Settings) -> IndexLoader:
    return IndexLoader(
        cache=SnapshotCache(settings.cache_db_path),
        source=HttpSnapshotSource(settings.snapshot_url),
        throttle=RefreshThrottle(settings.home, settings.refresh_interval),
        background_timeout=settings.background_timeout,
        cold_timeout=settings.cold_timeout,
    )


@contextmanager
def search_session(settings: Settings) -> Iterator[SearchWorker]:
    """Load the snapshot into a running search worker.

    On exit the worker is stopped and any background refresh gets up to
    its timeout to finish writing the cache.

    Raises:
        typer.Exit: With NETWORK_ERROR if nothing is cached and the fetch
            fails, or SNAPSHOT_INVALID if the fetched or cached document is
            not a usable snapshot.
    """
    loader = make_loader(settings)
    try:
        result = loader.load()
    except SnapshotInvalidError as e:
        cli_logger.error(f"Registry snapshot is malformed: {e}")
        raise typer.Exit(exit_codes.SNAPSHOT_INVALID) from e
    except SnapshotFetchError as e:
        cli_logger.error(f"Could not fetch the registry snapshot: {e}")
        cli_logger.dim(f"  • source: {settings.snapshot_url}")
        raise typer.Exit(exit_codes.NETWORK_ERROR) from e

    worker = SearchWorker().start()
    try:
        loaded = worker.request({"type": "load", "data": result.data})
        if not loaded["ok"]:
            cli_logger.error("Registry snapshot is malformed (no entries list)")
            raise typer.Exit(exit_codes.SNAPSHOT_INVALID)
        yield worker
    finally:
        worker.stop()
        loader.wait_for_refresh(settings.background_timeout)


def _print_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _print_hits(response: dict[str, Any]) -> None:
    """Print a page of hits as a table with a paging footer."""
    hits = response["hits"]
    if not hits:
        cli_logger.info("No packages found.")
        return

    show_score = response["mode"] == "search"
    table = Table(show_header=True, header_style="bold")
    table.add_column("PACKAGE", style="cyan")
    table.add_column("LATEST")
    table.add_column("DESCRIPTION")
    if show_score:
        table.add_column("SCORE", justify="right")

    for hit in hits:
        row = [hit["id"], hit["latest"] or "-", hit["description"] or ""]
        if show_score:
            row.append(str(hit["score"]))
        table.add_row(*row)

    console.print(table)

    first = response["offset"] + 1
    last = response["offset"] + len(hits)
    cli_logger.dim(f"{first}-{last} of {response['total']} · snapshot {response['version'] or 'unknown'}")


def _print_package(pkg: dict[str, Any]) -> None:
    stats = pkg["stats"]
    console.print(f"[bold cyan]{pkg['id']}[/bold cyan] [dim]{pkg['latest'] or 'no release'}[/dim]")
    if pkg["displayName"] != pkg["name"]:
        console.print(pkg["displayName"])
    if pkg["description"]:
        console.print(pkg["description"])
    console.print()

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="dim")
    table.add_column()
    table.add_row("versions", str(stats["versionCount"]))
    table.add_row("license", pkg["license"] or "-")
    table.add_row("homepage", pkg["homepage"] or "-")
    table.add_row("repo", pkg["repo"] or "-")
    table.add_row("keywords", ", ".join(pkg["keywords"]) or "-")
    console.print(table)

    if pkg["readme"]:
        console.print()
        console.print(pkg["readme"])


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"vix-registry {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging.",
    ),
) -> None:
    """Build and search an offline snapshot of the Vix package registry."""
    cli_logger.setup_logging(verbose)


@app.command()
def build(
    registry: Annotated[
        Path | None,
        typer.Option(
            "--registry",
            "-r",
            help="Registry checkout to build from (registry.json + index/).",
        ),
    ] = None,
    out: Annotated[
        Path,
        typer.Option("--out", "-o", help="Where to write the snapshot."),
    ] = DEFAULT_OUTPUT,
    no_clone: Annotated[
        bool,
        typer.Option("--no-clone", help="Never clone the registry from its remote."),
    ] = False,
) -> None:
    """Build the all.min.json snapshot from the registry descriptors.

    Malformed descriptors are skipped; the build still succeeds.
    """
    settings = load_settings()
    report = BuildReport()

    try:
        root = locate_registry_root(settings, explicit=registry, allow_clone=not no_clone)
        snapshot = build_snapshot(root, report=report)
    except (RegistryNotFoundError, RegistryMetadataError) as e:
        cli_logger.error(str(e))
        cli_logger.dim("  • Expected a folder containing registry.json and index/")
        raise typer.Exit(exit_codes.REGISTRY_NOT_FOUND) from e

    path = write_snapshot(snapshot, out)
    cli_logger.success(f"Registry index built: {path} (entries: {snapshot['meta']['entryCount']})")
    cli_logger.dim(f"  • source: {root}")
    if report.skipped:
        cli_logger.warning(f"Skipped {len(report.skipped)} malformed descriptor(s): {', '.join(report.skipped)}")
    raise typer.Exit(exit_codes.SUCCESS)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to look for in ids, names, descriptions and keywords.")],
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Hits per page (1-200).")] = None,
    offset: Annotated[int, typer.Option("--offset", help="Hits to skip.")] = 0,
    sort: Annotated[SortChoice, typer.Option("--sort", help="Order by relevance or newest release.")] = SortChoice.SCORE,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw response message.")] = False,
) -> None:
    """Search the registry snapshot.

    An empty query lists every package, newest first.
    """
    settings = load_settings()
    with search_session(settings) as worker:
        response = worker.request({
            "type": "search",
            "query": query,
            "limit": limit or settings.search_limit,
            "offset": offset,
            "sort": sort.value,
        })

    if as_json:
        _print_json(response)
    else:
        _print_hits(response)


@app.command()
def browse(
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Packages per page (1-200).")] = None,
    offset: Annotated[int, typer.Option("--offset", help="Packages to skip.")] = 0,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw response message.")] = False,
) -> None:
    """List every package, newest release first."""
    settings = load_settings()
    with search_session(settings) as worker:
        response = worker.request({
            "type": "browse",
            "limit": limit or settings.browse_limit,
            "offset": offset,
        })

    if as_json:
        _print_json(response)
    else:
        _print_hits(response)


@app.command()
def show(
    package_id: Annotated[str, typer.Argument(metavar="NAMESPACE/NAME", help="Exact package id.")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw response message.")] = False,
) -> None:
    """Show one package by its exact id."""
    settings = load_settings()
    with search_session(settings) as worker:
        response = worker.request({"type": "getPackage", "id": package_id})

    if as_json:
        _print_json(response)
    elif response["ok"]:
        _print_package(response["pkg"])

    if not response["ok"]:
        if not as_json:
            cli_logger.error(f"Package not found: {package_id}")
        code = exit_codes.PACKAGE_NOT_FOUND if response.get("error") == NOT_FOUND else exit_codes.SNAPSHOT_INVALID
        raise typer.Exit(code)


@cache_app.command("show")
def cache_show() -> None:
    """Show what the local snapshot cache holds."""
    settings = load_settings()
    cached = SnapshotCache(settings.cache_db_path).get()
    if cached is None:
        cli_logger.info("No cached snapshot.")
        cli_logger.dim(f"  • database: {settings.cache_db_path}")
        return

    meta = cached.meta or {}
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="dim")
    table.add_column()
    table.add_row("registry", str(meta.get("registryId", "-")))
    table.add_row("generated", cached.generated_at or "-")
    table.add_row("entries", str(meta.get("entryCount", "-")))
    table.add_row("source", str(meta.get("sourceRepo") or "-"))
    table.add_row("database", str(settings.cache_db_path))
    console.print(table)


@cache_app.command("clear")
def cache_clear() -> None:
    """Drop the cached snapshot; the next query fetches it again."""
    settings = load_settings()
    SnapshotCache(settings.cache_db_path).clear()
    RefreshThrottle(settings.home, settings.refresh_interval).reset()
    cli_logger.success("Snapshot cache cleared")


def main_cli() -> None:
    """CLI entry point with top-level exception handling.

    Wraps the Typer app so unexpected exceptions print a clean message
    instead of a traceback.
    """
    try:
        app()
    except Exception as e:
        sys.exit(handle_cli_error(e))


if __name__ == "__main__":
    main_cli()
