"""sqlite-vec virtual tables, one per embedding model.

A vec table is partitioned by notebook id, so a KNN query only scans the
querying notebook's vectors, and it ranks by cosine distance. Switching the
embedding model switches the table; vectors of different models never mix.
"""

from __future__ import annotations

import re
import sqlite3

_SLUG_RE = re.compile(r"[a-z0-9_]+")

# Largest k a vec0 KNN query accepts.
MAX_KNN_K = 4096


def model_to_slug(model: str) -> str:
    """``"openai/text-embedding-3-small"`` → ``"openai_text_embedding_3_small"``."""
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    return f"vec_chunks_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Return the vec table for *model_slug*, creating it on first use.

    Args:
        conn: Connection with sqlite-vec loaded.
        model_slug: Output of ``model_to_slug``; interpolated into DDL, so it
            is checked against ``[a-z0-9_]+``.
        dimensions: Vector width of the embedding model.

    Raises:
        ValueError: On a malformed slug or non-positive dimensions.
    """
    if not _SLUG_RE.fullmatch(model_slug):
        raise ValueError(f"Invalid model slug '{model_slug}'; pass it through model_to_slug()")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    exists = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    if not exists:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0("
            "notebook_id text partition key, "
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()
    return table
