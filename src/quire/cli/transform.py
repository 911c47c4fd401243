"""quire transform / quire notes commands.

Usage:
  quire transform <notebook-id> summary --length short
  quire transform <notebook-id> ppt --source <id> --source <id> --prompt "for engineers"
  quire notes <notebook-id>
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from quire.cli.session import DEFAULT_DB, console, open_service
from quire.context import RequestContext
from quire.db.models import ImageMetadata, Note, SlideDeckMetadata, TransformationType
from quire.transform.orchestrator import TransformationRequest

DbOption = Annotated[Path, typer.Option("--db", help="Path to .quire.db.")]


def transform_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    type_: Annotated[TransformationType, typer.Argument(metavar="TYPE", help="Transformation type.")],
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Source id to use (repeatable). Defaults to all."),
    ] = None,
    prompt: Annotated[str, typer.Option("--prompt", "-p", help="Extra instruction.")] = "",
    length: Annotated[str, typer.Option("--length", help="short | medium | long")] = "medium",
    format_: Annotated[str, typer.Option("--format", help="markdown | text")] = "markdown",
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Give up after this many seconds.")
    ] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Generate a note (summary, faq, ppt, ...) from a notebook's sources."""
    request = TransformationRequest(
        type=type_,
        prompt=prompt,
        source_ids=list(source or []),
        length=length,
        format=format_,
        actor="cli",
    )
    context = RequestContext.with_timeout(timeout) if timeout is not None else None

    with open_service(db) as service:
        service.storage.get_notebook(notebook_id)
        note = service.run_transformation(notebook_id, request, context)

    console.print(f"[green]✓[/] Created note [bold]{note.title}[/] ({note.id})")
    _print_note(note)


def notes_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    as_json: Annotated[bool, typer.Option("--json", help="Print notes as JSON.")] = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """List the notes of a notebook, newest first."""
    with open_service(db) as service:
        service.storage.get_notebook(notebook_id)
        notes = service.storage.list_notes(notebook_id)

    if as_json:
        payload = [
            {
                "id": n.id,
                "title": n.title,
                "type": n.type,
                "content": n.content,
                "source_ids": n.source_ids,
                "metadata": n.metadata.to_dict(),
                "created_at": n.created_at,
            }
            for n in notes
        ]
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    if not notes:
        console.print("[yellow]No notes yet.[/]  Run:  quire transform <notebook-id> summary")
        return

    table = Table(title="Notes", show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Type")
    table.add_column("Title", style="bold")
    table.add_column("Sources", justify="right")
    table.add_column("Created")
    for n in notes:
        table.add_row(n.id, n.type, n.title, str(len(n.source_ids)), n.created_at or "")
    console.print(table)


def _print_note(note: Note) -> None:
    meta = note.metadata
    if note.content:
        console.print(Panel(note.content, title=note.title, expand=False))
    if isinstance(meta, ImageMetadata):
        if meta.image_url:
            console.print(f"  Image: {meta.image_url}", highlight=False)
    elif isinstance(meta, SlideDeckMetadata):
        console.print(f"  Slides: {len(meta.outline)} parsed, {len(meta.slides)} rendered")
        for url in meta.slides:
            console.print(f"    {url}", highlight=False)
    image_error = getattr(meta, "image_error", None)
    if image_error:
        console.print(f"  [yellow]⚠ Images:[/] {image_error}")
