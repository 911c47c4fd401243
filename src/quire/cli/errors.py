"""Quire rich error messages with actionable feedback.

Every error shown to the user contains what went wrong and the command or
setting that fixes it.

Usage:
    from quire.cli.errors import err_no_db
    console.print(err_no_db(".quire.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from quire.errors import (
    ConflictError,
    GenerationError,
    IngestionError,
    NotFoundError,
    QuireError,
    TransformationCancelled,
    ValidationError,
)

# Exit code for a duplicate-type conflict; every other error exits 1.
EXIT_CONFLICT = 2


def err_no_db(db_path: str = ".quire.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  quire init"
    )


def err_source_input() -> str:
    return (
        "[red]Error:[/] Provide the source content with exactly one of --file or --text.\n"
        "  Example:  quire source add --notebook <id> --name notes.md --file notes.md"
    )


def err_file_unreadable(path: str, reason: str) -> str:
    return f"[red]Error:[/] Cannot read '{path}': {reason}"


def err_quire(exc: QuireError) -> str:
    """Render a core error with the follow-up action that fits its type."""
    if isinstance(exc, ConflictError):
        return (
            f"[red]Conflict:[/] {exc}\n"
            "  Delete the existing note, or set transform.allow_duplicate_types: true in quire.yaml"
        )
    if isinstance(exc, NotFoundError):
        return f"[red]Not found:[/] {exc}\n  Check the id; list notes with:  quire notes <notebook-id>"
    if isinstance(exc, ValidationError):
        return f"[red]Invalid request:[/] {exc}"
    if isinstance(exc, GenerationError):
        return (
            f"[red]Generation failed:[/] {exc}\n"
            "  Check your API key and generation.model, then retry."
        )
    if isinstance(exc, IngestionError):
        return (
            f"[red]Ingestion failed:[/] {exc}\n"
            "  Check your API key and embedding.model, then run:  quire load <notebook-id>"
        )
    if isinstance(exc, TransformationCancelled):
        return f"[yellow]Cancelled:[/] {exc}. Nothing was saved."
    return f"[red]Error:[/] {exc}"


def exit_code_for(exc: QuireError) -> int:
    return EXIT_CONFLICT if isinstance(exc, ConflictError) else 1
