"""Shared CLI plumbing: logging setup and opening a service over a database."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from quire.cli.errors import err_no_db, err_quire, exit_code_for
from quire.config import ConfigError, load_config
from quire.db.connection import Database
from quire.db.repository import Repository
from quire.db.schema import initialize
from quire.errors import QuireError
from quire.service import NotebookService, build_service

console = Console()
err_console = Console(stderr=True)

DEFAULT_DB = Path(".quire.db")


_logging_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Route log records through rich on stderr at *level*."""
    global _logging_configured
    _logging_configured = True
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # Reduce noise from third-party libraries
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def open_db(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


@contextmanager
def open_service(db_path: Path) -> Iterator[NotebookService]:
    """Yield a NotebookService over *db_path*; exit 1 if the database is missing.

    Config is read from ``quire.yaml`` next to the database. Core errors
    raised inside the block are printed and turned into the matching exit code.
    """
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    try:
        cfg = load_config(db_path.resolve().parent)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        raise typer.Exit(1)

    # --log-level wins; otherwise logging.level / QUIRE_LOG_LEVEL from config.
    if not _logging_configured:
        setup_logging(cfg.logging.level)

    conn = open_db(db_path)
    try:
        yield build_service(cfg, Repository(conn))
    except QuireError as exc:
        console.print(err_quire(exc))
        raise typer.Exit(exit_code_for(exc))
    finally:
        conn.close()
