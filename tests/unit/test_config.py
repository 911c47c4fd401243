"""Tests for the quire config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from quire.config import (
    MAX_SLIDES,
    ConfigError,
    QuireConfig,
    ensure_global_config,
    load_config,
)

_ENV_VARS = (
    "QUIRE_GENERATION_MODEL",
    "QUIRE_EMBEDDING_MODEL",
    "QUIRE_IMAGE_MODEL",
    "QUIRE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, project: dict | None = None, global_: dict | None = None) -> QuireConfig:
    global_cfg = tmp_path / "global" / "config.yaml"
    if global_ is not None:
        global_cfg.parent.mkdir(parents=True, exist_ok=True)
        _write_yaml(global_cfg, global_)
    if project is not None:
        _write_yaml(tmp_path / "quire.yaml", project)
    return load_config(project_dir=tmp_path, global_config_path=global_cfg)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)

    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.dimensions == 1536
    assert cfg.generation.model == "openai/gpt-4o"
    assert cfg.generation.timeout == 300.0
    assert cfg.image.model == "openai/dall-e-3"
    assert cfg.image.timeout == 3_600.0
    assert cfg.image.url_prefix == "/api/files/"
    assert cfg.chunking.chunk_size == 1000
    assert cfg.chunking.overlap == 200
    assert cfg.retrieval.max_top_k == 5
    assert cfg.index.backend == "sqlite"
    assert cfg.index.mark_loaded_on_failure is True
    assert cfg.transform.allow_duplicate_types is True
    assert cfg.transform.max_slides == MAX_SLIDES == 10
    assert cfg.transform.slide_concurrency == 1
    assert cfg.logging.level == "INFO"


def test_load_config_global_null_yaml(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("~\n", encoding="utf-8")

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.model == "openai/gpt-4o"


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    cfg = _load(tmp_path, global_={"generation": {"model": "anthropic/claude-3-5-sonnet-20241022"}})
    assert cfg.generation.model == "anthropic/claude-3-5-sonnet-20241022"
    assert cfg.embedding.model == "openai/text-embedding-3-small"


def test_load_config_project_overrides_global(tmp_path: Path) -> None:
    cfg = _load(
        tmp_path,
        global_={"generation": {"model": "openai/gpt-4o-mini", "timeout": 60}},
        project={"generation": {"model": "ollama/llama3"}},
    )
    assert cfg.generation.model == "ollama/llama3"
    # Deep merge keeps the global timeout.
    assert cfg.generation.timeout == 60.0


def test_load_config_project_sections(tmp_path: Path) -> None:
    cfg = _load(
        tmp_path,
        project={
            "chunking": {"chunk_size": 500, "overlap": 50},
            "retrieval": {"max_top_k": 3},
            "index": {"backend": "memory", "mark_loaded_on_failure": "false"},
            "transform": {"allow_duplicate_types": False, "slide_concurrency": 4},
            "logging": {"level": "debug"},
        },
    )
    assert cfg.chunking.chunk_size == 500
    assert cfg.chunking.overlap == 50
    assert cfg.retrieval.max_top_k == 3
    assert cfg.index.backend == "memory"
    assert cfg.index.mark_loaded_on_failure is False
    assert cfg.transform.allow_duplicate_types is False
    assert cfg.transform.slide_concurrency == 4
    assert cfg.logging.level == "DEBUG"


# ---------------------------------------------------------------------------
# Env var overrides
# ---------------------------------------------------------------------------


def test_env_var_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUIRE_GENERATION_MODEL", "anthropic/claude-3-5-sonnet-20241022")
    monkeypatch.setenv("QUIRE_EMBEDDING_MODEL", "openai/text-embedding-3-large")
    monkeypatch.setenv("QUIRE_IMAGE_MODEL", "openai/gpt-image-1")
    monkeypatch.setenv("QUIRE_LOG_LEVEL", "warning")

    cfg = _load(tmp_path, project={"generation": {"model": "openai/gpt-4o-mini"}})
    assert cfg.generation.model == "anthropic/claude-3-5-sonnet-20241022"
    assert cfg.embedding.model == "openai/text-embedding-3-large"
    assert cfg.image.model == "openai/gpt-image-1"
    assert cfg.logging.level == "WARNING"


def test_env_var_absent_does_not_override(tmp_path: Path) -> None:
    cfg = _load(tmp_path, project={"generation": {"model": "openai/gpt-4o-mini"}})
    assert cfg.generation.model == "openai/gpt-4o-mini"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("overlap", [1000, 1200, -1])
def test_overlap_out_of_range_raises(tmp_path: Path, overlap: int) -> None:
    with pytest.raises(ConfigError, match="chunking.overlap"):
        _load(tmp_path, project={"chunking": {"chunk_size": 1000, "overlap": overlap}})


def test_unknown_backend_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="index.backend"):
        _load(tmp_path, project={"index": {"backend": "pinecone"}})


def test_max_top_k_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="max_top_k"):
        _load(tmp_path, project={"retrieval": {"max_top_k": 0}})


def test_slide_concurrency_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="slide_concurrency"):
        _load(tmp_path, project={"transform": {"slide_concurrency": 0}})


def test_max_slides_is_fixed(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="fixed"):
        _load(tmp_path, project={"transform": {"max_slides": 20}})


@pytest.mark.parametrize(
    "bad_key",
    ["api_key", "apikey", "OPENAI_API_KEY", "secret", "password", "token", "api-key"],
)
def test_global_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text(f"{bad_key}: sk-abc123\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_global_config_rejects_nested_api_key(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_={"generation": {"api_key": "sk-secret"}})


def test_token_budget_is_not_mistaken_for_a_key(tmp_path: Path) -> None:
    cfg = _load(tmp_path, global_={"retrieval": {"token_budget": 2000}})
    assert cfg.retrieval.token_budget == 2000


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "quire.yaml", {"unknown_section": {"x": 1}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "missing.yaml")

    assert any("unknown_section" in str(w.message) for w in caught)


def test_config_does_not_execute_yaml_load(tmp_path: Path) -> None:
    """Python object tags are rejected by safe_load, never executed."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("!!python/object/apply:os.system ['echo pwned']\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".quire" / "config.yaml"
    result = ensure_global_config(global_config_path=target)

    assert result == target
    parsed = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert parsed["generation"]["model"] == "openai/gpt-4o"
    assert "image" in parsed


def test_ensure_global_config_file_mode(tmp_path: Path) -> None:
    target = tmp_path / ".quire" / "config.yaml"
    ensure_global_config(global_config_path=target)

    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_ensure_global_config_idempotent(tmp_path: Path) -> None:
    target = tmp_path / ".quire" / "config.yaml"
    ensure_global_config(global_config_path=target)
    target.write_text("# custom\ngeneration:\n  model: openai/gpt-4o-mini\n", encoding="utf-8")

    ensure_global_config(global_config_path=target)
    assert "gpt-4o-mini" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = tmp_path / ".quire" / "config.yaml"
    ensure_global_config(global_config_path=target)

    cfg = load_config(project_dir=tmp_path, global_config_path=target)
    assert cfg.image.model == "openai/dall-e-3"
