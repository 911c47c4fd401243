"""Tests for per-model sqlite-vec virtual tables."""

from __future__ import annotations

import json

import pytest

from quire.db.vectors import ensure_vec_table, model_to_slug, vec_table_name


@pytest.mark.parametrize("model,expected", [
    ("openai/text-embedding-3-small", "openai_text_embedding_3_small"),
    ("cohere/embed-english-v3.0", "cohere_embed_english_v3_0"),
    ("ollama/nomic-embed-text", "ollama_nomic_embed_text"),
])
def test_model_to_slug(model, expected):
    assert model_to_slug(model) == expected


def test_vec_table_name():
    assert vec_table_name("openai_text_embedding_3_small") == "vec_chunks_openai_text_embedding_3_small"


def test_ensure_vec_table_creates_table_once(tmp_db):
    slug = model_to_slug("openai/text-embedding-3-small")
    table1 = ensure_vec_table(tmp_db, slug, dimensions=1536)
    table2 = ensure_vec_table(tmp_db, slug, dimensions=1536)
    assert table1 == table2 == "vec_chunks_openai_text_embedding_3_small"
    row = tmp_db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table1,)
    ).fetchone()
    assert row is not None


def test_knn_is_partitioned_by_notebook(tmp_db):
    table = ensure_vec_table(tmp_db, "test_model", dimensions=4)
    tmp_db.execute(
        f"INSERT INTO {table}(rowid, notebook_id, embedding) VALUES (1, 'nb-a', ?)",
        (json.dumps([1.0, 0.0, 0.0, 0.0]),),
    )
    tmp_db.execute(
        f"INSERT INTO {table}(rowid, notebook_id, embedding) VALUES (2, 'nb-b', ?)",
        (json.dumps([1.0, 0.0, 0.0, 0.0]),),
    )

    rows = tmp_db.execute(
        f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? AND k = 5 AND notebook_id = ?",
        (json.dumps([1.0, 0.0, 0.0, 0.0]), "nb-b"),
    ).fetchall()
    assert [r["rowid"] for r in rows] == [2]
    assert rows[0]["distance"] == pytest.approx(0.0, abs=1e-6)


def test_ensure_vec_table_invalid_slug(tmp_db):
    with pytest.raises(ValueError, match="Invalid model slug"):
        ensure_vec_table(tmp_db, "invalid/slug!", dimensions=128)


def test_ensure_vec_table_invalid_dimensions(tmp_db):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_table(tmp_db, "valid_slug", dimensions=0)
