"""quire load / search / chat: index lifecycle and retrieval from the shell.

Each command runs in a fresh process, so the notebook index is loaded (or
confirmed loaded) on every invocation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from quire.cli.session import DEFAULT_DB, console, open_service

DbOption = Annotated[Path, typer.Option("--db", help="Path to .quire.db.")]


def load_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Ingest every source of a notebook into the vector index."""
    with open_service(db) as service:
        service.storage.get_notebook(notebook_id)
        report = service.ensure_index_loaded(notebook_id)

    console.print(
        f"[green]✓[/] Loaded notebook {notebook_id}: "
        f"{len(report.ingested)} sources, {sum(report.ingested.values())} chunks"
    )
    if report.skipped:
        console.print(f"  [dim]{len(report.skipped)} empty source(s) skipped[/]")
    if not report.complete:
        console.print(f"  [yellow]⚠ {len(report.failed)} source(s) failed; index is incomplete:[/]")
        for source_id, error in report.failed.items():
            console.print(f"    {source_id}: {error}", highlight=False)


def search_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    query: Annotated[str, typer.Argument(help="Search query.")],
    top_k: Annotated[
        int | None, typer.Option("--top-k", "-k", help="Number of results (clamped to retrieval.max_top_k).")
    ] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Show the most relevant chunks of a notebook for a query."""
    with open_service(db) as service:
        results = service.search(notebook_id, query, top_k)

    if not results:
        console.print("[yellow]No matching chunks.[/]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Source")
    table.add_column("Text")
    for i, r in enumerate(results, start=1):
        snippet = " ".join(r.text.split())
        if len(snippet) > 120:
            snippet = snippet[:117] + "..."
        table.add_row(str(i), f"{r.score:.3f}", f"{r.source_name} [{r.chunk_index}]", snippet)
    console.print(table)


def chat_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    message: Annotated[str, typer.Argument(help="Question to ask.")],
    top_k: Annotated[int | None, typer.Option("--top-k", "-k")] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Ask a question grounded in a notebook's sources."""
    with open_service(db) as service:
        answer = service.chat(notebook_id, message, top_k=top_k)

    console.print(answer.message, highlight=False)
    if answer.sources:
        console.print("\n[bold]Sources:[/]")
        for i, ref in enumerate(answer.sources, start=1):
            console.print(f"  {i}. {ref.source_name}", highlight=False)
