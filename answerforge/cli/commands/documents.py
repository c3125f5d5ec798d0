"""Evidence commands - ingest documents and backfill embeddings.

Examples:
    answerforge ingest ./policies --org acme
    answerforge embed --org acme
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import typer
from rich.table import Table

from answerforge.cli import context
from answerforge.cli.console import get_console, tip
from answerforge.core.exceptions import NotFoundError
from answerforge.ingest.documents import (
    SUPPORTED_EXTENSIONS,
    DocumentIngestor,
    IngestResult,
)


def collect_files(path: Path) -> List[Path]:
    """Supported files under path, or path itself when it is a file."""
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise NotFoundError(f"Path does not exist: {path}")
    return sorted(
        p for p in path.rglob("*")
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    )


async def _ingest_all(
    ingestor: DocumentIngestor, org: str, files: List[Path], embed: bool
) -> tuple[List[IngestResult], int]:
    results = [await ingestor.ingest_file(org, file) for file in files]
    embedded = await ingestor.embed_pending(org) if embed else 0
    return results, embedded


def ingest_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File or directory to ingest"),
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
    embed: bool = typer.Option(
        True, "--embed/--no-embed", help="Embed new chunks after ingesting"
    ),
) -> None:
    """Ingest .txt and .md evidence documents for an organization.

    Examples:
        answerforge ingest security.md --org acme
        answerforge ingest ./policies --org acme --no-embed
    """
    console = get_console()
    files = collect_files(path)
    if not files:
        console.print(f"[yellow]No supported files found in {path}[/yellow]")
        raise typer.Exit(code=1)

    config = context.load_cli_config(ctx)
    components = context.create_components(config)
    results, embedded = asyncio.run(
        _ingest_all(components.ingestor, org, files, embed)
    )

    table = Table(title="Ingested documents")
    table.add_column("Document", style="cyan")
    table.add_column("Chunks", justify="right", style="green")
    for result in results:
        table.add_row(result.name, str(result.chunk_count))
    console.print(table)

    if embed:
        console.print(f"[green]Embedded {embedded} chunk(s)[/green]")
    else:
        tip(f"run 'answerforge embed --org {org}' before answering questions")


def embed_command(
    ctx: typer.Context,
    org: str = typer.Option(..., "--org", "-o", help="Organization id"),
) -> None:
    """Embed every evidence chunk that has no embedding yet."""
    config = context.load_cli_config(ctx)
    components = context.create_components(config)

    embedded = asyncio.run(components.ingestor.embed_pending(org))
    availability = asyncio.run(components.store.embedding_availability(org))

    console = get_console()
    console.print(f"[green]Embedded {embedded} chunk(s)[/green]")
    console.print(
        f"Evidence: {availability.embedded}/{availability.total} chunks embedded"
    )
