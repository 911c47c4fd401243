"""CLI fixtures: an initialized project with fake model capabilities."""

from __future__ import annotations

from functools import partial
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from quire.cli.main import app
from quire.db.connection import Database
from quire.db.repository import Repository
from quire.service import build_service


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """Keep every CLI test away from ~/.quire and the caller's environment."""
    monkeypatch.setattr("quire.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    for var in ("QUIRE_GENERATION_MODEL", "QUIRE_EMBEDDING_MODEL", "QUIRE_IMAGE_MODEL", "QUIRE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    with patch("quire.rag.assembler.count_tokens", side_effect=lambda m, t: len(t.split())):
        yield


@pytest.fixture
def fakes(monkeypatch, embed_fn, text_gen, image_gen):
    """Route every service the CLI opens through the fake generators."""
    monkeypatch.setattr(
        "quire.cli.session.build_service",
        partial(build_service, text_generator=text_gen, image_generator=image_gen, embed_fn=embed_fn),
    )
    return text_gen, image_gen


@pytest.fixture
def project(tmp_path, fakes, embed_dims) -> Path:
    """Run ``quire init`` and size the vector table for the test embedding."""
    db = tmp_path / "proj" / ".quire.db"
    result = CliRunner().invoke(app, ["init", "--db", str(db), "--skip-global"])
    assert result.exit_code == 0, result.output

    cfg_path = db.parent / "quire.yaml"
    cfg = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    cfg["embedding"]["dimensions"] = embed_dims
    cfg["chunking"] = {"chunk_size": 200, "overlap": 20}
    cfg_path.write_text(yaml.dump(cfg), encoding="utf-8")
    return db


@pytest.fixture
def set_config():
    """Return a helper that updates one section of the project quire.yaml."""

    def _set(db: Path, section: str, **values) -> None:
        cfg_path = db.parent / "quire.yaml"
        cfg = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
        cfg.setdefault(section, {}).update(values)
        cfg_path.write_text(yaml.dump(cfg), encoding="utf-8")

    return _set


@pytest.fixture
def repo_at():
    """Open Repositories over CLI project databases; closed after the test."""
    conns = []

    def _open(db: Path) -> Repository:
        conn = Database(db).connect()
        conns.append(conn)
        return Repository(conn)

    yield _open
    for conn in conns:
        conn.close()
