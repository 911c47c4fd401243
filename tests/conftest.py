"""Shared pytest fixtures."""

from __future__ import annotations

import os
import threading

# litellm fetches its model cost map over the network at import time; use the
# bundled copy so test collection does not hang or deadlock offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest

from quire.db.connection import Database
from quire.db.repository import Repository
from quire.db.schema import initialize

VOCAB = (
    "cats", "purr", "nap", "sun", "rockets", "fuel", "orbit", "sqlite", "vectors",
    "alpha", "beta", "gamma", "delta", "insight", "summary", "python", "notebook",
)
EMBED_DIMS = len(VOCAB) + 1


def keyword_embedding(text: str) -> list[float]:
    """Deterministic bag-of-words vector over a small fixed vocabulary.

    Texts sharing vocabulary words point in similar directions, which makes
    ranking predictable without an embedding API. The last component is a
    small constant so no vector is all zeros.
    """
    vec = [0.0] * EMBED_DIMS
    for word in text.lower().split():
        word = word.strip(".,:;!?()[]\"'")
        if word in VOCAB:
            vec[VOCAB.index(word)] += 1.0
    vec[-1] = 0.01
    return vec


class FakeTextGenerator:
    """Returns canned text (or raises) and records every prompt."""

    def __init__(self, reply: str = "Generated text.", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []
        self.timeouts: list[float | None] = []

    def generate(self, prompt, model=None, timeout=None):
        self.prompts.append(prompt)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeImageGenerator:
    """Returns ``/img/<n>.png`` for call n (1-based); calls in *fail_on* raise."""

    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate_image(self, prompt, model=None, timeout=None):
        with self._lock:
            self.prompts.append(prompt)
            n = len(self.prompts)
        if n in self.fail_on:
            raise RuntimeError(f"image {n} failed")
        return f"/img/{n}.png"


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".quire.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def notebook(repo):
    return repo.create_notebook("Research")


@pytest.fixture
def embed_fn():
    return keyword_embedding


@pytest.fixture
def text_gen():
    return FakeTextGenerator()


@pytest.fixture
def image_gen():
    return FakeImageGenerator()


@pytest.fixture
def make_text_gen():
    return FakeTextGenerator


@pytest.fixture
def make_image_gen():
    return FakeImageGenerator


@pytest.fixture
def embed_dims():
    return EMBED_DIMS
