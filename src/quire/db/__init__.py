"""Quire database layer."""

from quire.db.connection import Database
from quire.db.migrations import MIGRATIONS, run_migrations
from quire.db.repository import Repository
from quire.db.schema import initialize
from quire.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
