"""quire notebook / quire source commands.

Commands:
  quire notebook create NAME         create a notebook, print its id
  quire notebook list                list notebooks
  quire source add --notebook ID     store a source (ingested now if the index is loaded)
  quire source list NOTEBOOK_ID      list sources with chunk counts
  quire source remove SOURCE_ID      delete a source and its chunks
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from quire.cli.errors import err_file_unreadable, err_source_input
from quire.cli.session import DEFAULT_DB, console, open_service

notebook_app = typer.Typer(name="notebook", help="Create and list notebooks.", add_completion=False)
source_app = typer.Typer(name="source", help="Add, list and remove sources.", add_completion=False)

DbOption = Annotated[Path, typer.Option("--db", help="Path to .quire.db.")]


@notebook_app.command("create")
def notebook_create_cmd(
    name: Annotated[str, typer.Argument(help="Notebook name.")],
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    db: DbOption = DEFAULT_DB,
) -> None:
    """Create a notebook and print its id."""
    with open_service(db) as service:
        notebook = service.storage.create_notebook(name, description)
    console.print(f"[green]✓[/] Created notebook [bold]{notebook.name}[/]")
    console.print(notebook.id, highlight=False)


@notebook_app.command("list")
def notebook_list_cmd(db: DbOption = DEFAULT_DB) -> None:
    """List notebooks."""
    with open_service(db) as service:
        notebooks = service.storage.list_notebooks()

    if not notebooks:
        console.print("[yellow]No notebooks yet.[/]  Run:  quire notebook create <name>")
        return

    table = Table(title="Notebooks", show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Created")
    for nb in notebooks:
        table.add_row(nb.id, nb.name, nb.created_at or "")
    console.print(table)


@source_app.command("add")
def source_add_cmd(
    notebook: Annotated[str, typer.Option("--notebook", "-n", help="Notebook id.")],
    name: Annotated[str, typer.Option("--name", help="Source name shown in citations.")],
    file: Annotated[
        Path | None, typer.Option("--file", "-f", help="Read content from a text file.")
    ] = None,
    text: Annotated[str | None, typer.Option("--text", "-t", help="Inline content.")] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Add a text source to a notebook."""
    if (file is None) == (text is None):
        console.print(err_source_input())
        raise typer.Exit(1)

    if file is not None:
        try:
            content = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            console.print(err_file_unreadable(str(file), str(exc)))
            raise typer.Exit(1)
    else:
        content = text or ""

    with open_service(db) as service:
        source = service.add_source(notebook, name, content)

    console.print(f"[green]✓[/] Added source [bold]{source.name}[/] ({source.byte_size:,} bytes)")
    console.print(source.id, highlight=False)


@source_app.command("list")
def source_list_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """List the sources of a notebook."""
    with open_service(db) as service:
        service.storage.get_notebook(notebook_id)
        sources = service.storage.list_sources(notebook_id)

    table = Table(title="Sources", show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Bytes", justify="right")
    table.add_column("Chunks", justify="right")
    for src in sources:
        table.add_row(src.id, src.name, src.type, f"{src.byte_size:,}", str(src.chunk_count))
    console.print(table)


@source_app.command("remove")
def source_remove_cmd(
    source_id: Annotated[str, typer.Argument(help="Source id.")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Remove a source and its indexed chunks."""
    with open_service(db) as service:
        removed = service.remove_source(source_id)
    console.print(f"[green]✓[/] Removed source {source_id} ({removed} chunks deleted)")
