#!/usr/bin/env python3
"""
hybridrag CLI - Command Line Interface
Ingest documents and query them with hybrid retrieval
"""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import click
from rich.console import Console
from rich.table import Table

from hybridrag._version import __version__
from hybridrag.core.config import Settings
from hybridrag.core.exceptions import HybridRagError
from hybridrag.services.rag_service import RagService, create_rag_service

console = Console()

T = TypeVar("T")


def _run(
    config: Optional[str],
    memory: bool,
    files: Tuple[str, ...],
    category: Optional[str],
    action: Callable[[RagService], Awaitable[T]],
) -> T:
    """Build a service, ingest ``files``, run ``action`` and close the clients."""

    async def _main() -> T:
        settings = Settings(config_path=Path(config) if config else None)
        service = create_rag_service(settings, memory=memory)
        try:
            for file in files:
                await _ingest_file(service, Path(file), category)
            return await action(service)
        finally:
            await service.close()

    return asyncio.run(_main())


async def _ingest_file(service: RagService, path: Path, category: Optional[str]) -> int:
    text = path.read_text(encoding="utf-8", errors="replace")
    categories = [category] if category else []
    count = await service.ingest_document(path.name, text, categories)
    console.print(f"[green]✓[/green] {path.name}: {count} chunks")
    return count


config_option = click.option(
    "--config", type=click.Path(exists=True, dir_okay=False), help="Path to a .hybridrag file"
)
memory_option = click.option(
    "--memory", is_flag=True, help="Keep vectors in process instead of Weaviate"
)
file_option = click.option(
    "--file",
    "files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Ingest this file before querying (repeatable)",
)


@click.group()
@click.version_option(version=__version__, prog_name="hybridrag")
def cli():
    """hybridrag - hybrid dense + BM25 retrieval with reranking and caching"""
    pass


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--category", help="Category tag for every chunk")
@config_option
@memory_option
def ingest(files: Tuple[str, ...], category: Optional[str], config: Optional[str], memory: bool):
    """Chunk, embed and index FILES"""

    async def _summary(service: RagService) -> int:
        return service.lexical_index.size

    total = _run(config, memory, files, category, _summary)
    console.print(f"[bold green]Indexed {total} lexical chunks[/bold green]")


@cli.command()
@click.argument("question")
@click.option("--top-k", type=int, default=None, help="Number of context chunks")
@click.option("--category", help="Only use chunks with this category")
@file_option
@config_option
@memory_option
def ask(
    question: str,
    top_k: Optional[int],
    category: Optional[str],
    files: Tuple[str, ...],
    config: Optional[str],
    memory: bool,
):
    """Answer QUESTION from the indexed documents"""
    result = _run(
        config, memory, files, category, lambda s: s.answer(question, top_k, category)
    )

    console.print(f"\n[bold cyan]Answer[/bold cyan]{' (cached)' if result.cached else ''}")
    console.print(result.answer)

    if result.sources:
        table = Table(title="Sources")
        table.add_column("Document")
        table.add_column("Chunk", justify="right")
        table.add_column("Score", justify="right")
        for source in result.sources:
            table.add_row(
                source.document_id, str(source.chunk_index), f"{source.relevance_score:.3f}"
            )
        console.print(table)


@cli.command()
@click.argument("query")
@click.option("--top-k", type=int, default=None, help="Number of results")
@click.option("--category", help="Only return chunks with this category")
@file_option
@config_option
@memory_option
def search(
    query: str,
    top_k: Optional[int],
    category: Optional[str],
    files: Tuple[str, ...],
    config: Optional[str],
    memory: bool,
):
    """Show fused retrieval results for QUERY"""
    results = _run(config, memory, files, category, lambda s: s.retrieve(query, top_k, category))

    if not results:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("#", justify="right")
    table.add_column("Document")
    table.add_column("Chunk", justify="right")
    table.add_column("Fused", justify="right")
    table.add_column("Dense", justify="right")
    table.add_column("BM25", justify="right")
    table.add_column("Text")
    for rank, result in enumerate(results, 1):
        table.add_row(
            str(rank),
            result.document_id,
            str(result.chunk_index),
            f"{result.fused_score:.4f}",
            f"{result.dense_score:.3f}" if result.in_dense else "-",
            f"{result.sparse_score:.3f}" if result.in_sparse else "-",
            result.text[:80].replace("\n", " "),
        )
    console.print(table)


@cli.command()
@file_option
@config_option
@memory_option
def stats(files: Tuple[str, ...], config: Optional[str], memory: bool):
    """Print index, cache and rerank statistics as JSON"""

    async def _stats(service: RagService):
        return service.get_stats()

    console.print_json(json.dumps(_run(config, memory, files, None, _stats), default=str))


def main():
    """Main entry point"""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user.")
        sys.exit(0)
    except HybridRagError as e:
        click.echo(click.style(f"Error [{e.code}]: {e.message}", fg="red"))
        for suggestion in e.suggestions:
            click.echo(f"  - {suggestion}")
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        if os.environ.get("HYBRIDRAG_DEBUG"):
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
