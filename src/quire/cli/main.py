"""Quire CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from quire.cli.init import init_cmd
from quire.cli.notebook import notebook_app, source_app
from quire.cli.query import chat_cmd, load_cmd, search_cmd
from quire.cli.session import setup_logging
from quire.cli.transform import notes_cmd, transform_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("quire")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quire {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="quire",
    help=(
        "Quire: notebook RAG core.\n\n"
        "  quire load       Index a notebook's sources.\n"
        "  quire chat       Ask grounded questions.\n"
        "  quire transform  Turn sources into summaries, quizzes, slide decks and more."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="DEBUG, INFO, WARNING or ERROR. Overrides logging.level and QUIRE_LOG_LEVEL.",
        ),
    ] = None,
) -> None:
    """Quire: notebook RAG core."""
    if log_level:
        setup_logging(log_level)


app.command("init")(init_cmd)
app.add_typer(notebook_app, name="notebook")
app.add_typer(source_app, name="source")
app.command("load")(load_cmd)
app.command("search")(search_cmd)
app.command("chat")(chat_cmd)
app.command("transform")(transform_cmd)
app.command("notes")(notes_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Quire version."""
    typer.echo(f"quire {_installed_version()}")


if __name__ == "__main__":
    app()
