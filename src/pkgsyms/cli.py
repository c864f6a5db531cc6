"""Typer CLI entry point for pkgsyms.

Bridges the synchronous Typer world to the async search via asyncio.run().
The JSON result is the only thing written to stdout; progress, warnings,
and the summary go to stderr.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from pkgsyms import __version__
from pkgsyms.config import SymbolsConfig, load_config, parse_tags
from pkgsyms.exceptions import PkgSymsError
from pkgsyms.search import GoExtractor, SearchResult, SymbolSearch

app = typer.Typer(
    name="pkgsyms",
    help="Search package-level symbols across a source tree.",
    rich_markup_mode="rich",
)
console = Console(stderr=True)


def _error_exit(message: str, hint: str | None = None) -> None:
    """Print a styled error and exit."""
    console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
    raise typer.Exit(code=1)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"pkgsyms v{__version__}")
        raise typer.Exit()


def _build_config(
    root: Path,
    tags: str | None,
    listing_concurrency: int | None,
    parse_concurrency: int | None,
) -> SymbolsConfig:
    config = load_config(root)
    if tags is not None:
        config.build_tags = parse_tags(tags)
    if listing_concurrency is not None:
        config.listing_concurrency = listing_concurrency
    if parse_concurrency is not None:
        config.parse_concurrency = parse_concurrency
    config.validate()
    return config


def _run_search(root: Path, query: str, config: SymbolsConfig, quiet: bool) -> SearchResult:
    search = SymbolSearch(GoExtractor(config.build_tags), config)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
        disable=quiet,
    ) as progress:
        task = progress.add_task("[cyan]Extracting packages", total=None)

        def on_progress(completed: int, total: int) -> None:
            progress.update(task, completed=completed, total=total)

        return asyncio.run(search.run(root, query, progress=on_progress))


def _print_summary(result: SearchResult) -> None:
    for failure in result.failures:
        console.print(
            f"[yellow]Warning[/yellow]: {failure.stage} failed for "
            f"{failure.import_path or '<root>'}: {failure.message}"
        )
    console.print(
        f"[green]Search[/green] matched [bold]{len(result.symbols)}[/bold] symbols "
        f"in [bold]{result.completed}[/bold] packages"
    )


@app.command()
def main(
    root: Annotated[Path, typer.Argument(help="Workspace root to search")],
    query: Annotated[str, typer.Argument(help="Case-insensitive name substring")] = "",
    tags: Annotated[
        str | None, typer.Option("--tags", help="Comma-separated build tags")
    ] = None,
    listing_concurrency: Annotated[
        int | None,
        typer.Option("--listing-concurrency", help="Max concurrent directory listings"),
    ] = None,
    parse_concurrency: Annotated[
        int | None,
        typer.Option("--parse-concurrency", help="Max concurrent package parses"),
    ] = None,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="No progress output")] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = None,
) -> None:
    """Print every symbol under ROOT whose name contains QUERY, as JSON."""
    try:
        config = _build_config(root, tags, listing_concurrency, parse_concurrency)
        result = _run_search(root, query, config, quiet)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=130)
    except PkgSymsError as exc:
        _error_exit(str(exc))
        return
    except Exception as exc:  # noqa: BLE001
        console.print_exception(show_locals=False)
        _error_exit(f"Unexpected error: {exc}")
        return

    typer.echo(result.to_json())
    if not quiet:
        _print_summary(result)
