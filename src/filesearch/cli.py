"""
Typer CLI for indexing and searching agent files.

Provides commands for indexing folders, running searches, and managing
per-agent collections.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from filesearch.config import get_settings
from filesearch.exceptions import IndexingError
from filesearch.retrieval.types import SearchOptions
from filesearch.services.search_service import FileSearchService
from filesearch.utils.logging import bind_context, clear_context, configure_logging, get_logger

app = typer.Typer(
    name="filesearch",
    help="Hybrid semantic + keyword search over synced files",
    add_completion=False,
)
console = Console()
logger = get_logger(__name__)

ServiceAction = Callable[[FileSearchService], Awaitable[int]]


def iter_files(paths: list[Path]) -> Iterator[tuple[Path, str]]:
    """Yield ``(file, relative_path)`` for files and, recursively, directories."""
    for root in paths:
        if root.is_dir():
            for path in sorted(root.rglob("*")):
                if path.is_file():
                    yield path, path.relative_to(root).as_posix()
        elif root.is_file():
            yield root, root.name
        else:
            logger.warning(f"Skipping '{root}': not a file or directory")


def run_with_service(command: str, action: ServiceAction, agent_id: str | None = None) -> None:
    """Run ``action`` against a connected service and exit with its status."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    bind_context(command=command, agent_id=agent_id)

    async def run_action() -> int:
        service = await FileSearchService.create(settings)
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        exit_code = asyncio.run(run_action())
    except Exception as e:
        logger.error(f"Command '{command}' failed: {e}", exc_info=True)
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}")
        raise typer.Exit(1) from e
    finally:
        clear_context()

    raise typer.Exit(exit_code)


@app.command()
def index(
    agent_id: Annotated[str, typer.Argument(help="Agent identifier")],
    folder_id: Annotated[str, typer.Argument(help="Folder the files belong to")],
    paths: Annotated[list[Path], typer.Argument(help="Files or directories to index")],
) -> None:
    """
    Index files into an agent collection.

    Directories are walked recursively; files that are not UTF-8 text are skipped.
    """

    async def index_files(service: FileSearchService) -> int:
        indexed = 0
        failures = 0
        for path, relative_path in iter_files(paths):
            try:
                text = path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.warning(f"Skipping '{path}': not UTF-8 text")
                continue

            try:
                await service.indexer.index_file(
                    agent_id, folder_id, str(path), text, relative_path
                )
                indexed += 1
            except IndexingError as e:
                console.print(f"[bold red]✗[/bold red] {e}")
                failures += 1

        console.print(
            f"[bold green]✓[/bold green] Indexed {indexed} files"
            + (f" ([bold red]{failures} failed[/bold red])" if failures else "")
        )
        return 0 if failures == 0 else 1

    run_with_service("index", index_files, agent_id)


@app.command()
def search(
    agent_id: Annotated[str, typer.Argument(help="Agent identifier")],
    query: Annotated[str, typer.Argument(help="Query text")],
    top_k: Annotated[
        int,
        typer.Option("--top-k", "-k", help="Maximum number of results", min=1),
    ] = 10,
    min_score: Annotated[
        float,
        typer.Option("--min-score", help="Minimum similarity score", min=0.0),
    ] = 0.01,
    folders: Annotated[
        list[str] | None,
        typer.Option("--folder", "-f", help="Restrict to a folder (repeatable)"),
    ] = None,
) -> None:
    """Search an agent collection and print ranked hits."""
    options = SearchOptions(top_k=top_k, min_score=min_score, folder_ids=folders or None)

    async def run_search(service: FileSearchService) -> int:
        hits = await service.search(agent_id, query, options)
        if not hits:
            console.print("[yellow]No results[/yellow]")
            return 0

        table = Table(title=f"Results for '{query}'")
        table.add_column("#", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Location")
        for rank, hit in enumerate(hits, start=1):
            table.add_row(str(rank), f"{hit.score:.4f}", hit.citation)
        console.print(table)
        return 0

    run_with_service("search", run_search, agent_id)


@app.command()
def drop(agent_id: Annotated[str, typer.Argument(help="Agent identifier")]) -> None:
    """Drop an agent collection."""

    async def drop_collection(service: FileSearchService) -> int:
        deleted = await service.indexer.delete_agent_collection(agent_id)
        console.print("Dropped" if deleted else "Nothing to drop")
        return 0

    run_with_service("drop", drop_collection, agent_id)


@app.command()
def stats(agent_id: Annotated[str, typer.Argument(help="Agent identifier")]) -> None:
    """Show whether an agent collection exists and how many rows it holds."""

    async def show_stats(service: FileSearchService) -> int:
        collection_stats = await service.indexer.collection_stats(agent_id)
        if not collection_stats.exists:
            console.print(f"No collection for agent '{agent_id}'")
            return 0
        console.print(f"[bold]Rows:[/bold] {collection_stats.row_count}")
        return 0

    run_with_service("stats", show_stats, agent_id)


@app.command()
def collections() -> None:
    """List agent collections."""

    async def list_collections(service: FileSearchService) -> int:
        for name in await service.indexer.list_agent_collections():
            console.print(name)
        return 0

    run_with_service("collections", list_collections)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
