"""Layered Quire configuration.

Highest priority first:
  1. CLI flags           (applied by the CLI, e.g. --log-level)
  2. Environment variables  (QUIRE_GENERATION_MODEL, QUIRE_EMBEDDING_MODEL,
                             QUIRE_IMAGE_MODEL, QUIRE_LOG_LEVEL)
  3. Per-project quire.yaml  (next to .quire.db)
  4. Global ~/.quire/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

The global layer is rejected if it holds anything credential-like, and every
layer is parsed with yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".quire"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "quire.yaml"

# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
# Does NOT match legitimate config keys like token_budget or max_top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "embedding",
        "generation",
        "image",
        "chunking",
        "retrieval",
        "index",
        "transform",
        "logging",
    ]
)

_INDEX_BACKENDS: frozenset[str] = frozenset(["sqlite", "memory"])

# Hard cap on parsed slides before image generation is skipped.
MAX_SLIDES: int = 10


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (quire.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class GenerationCfg:
    """Text generation configuration (quire.yaml: generation:)."""

    model: str = "openai/gpt-4o"
    timeout: float = 300.0


@dataclass
class ImageCfg:
    """Image generation configuration (quire.yaml: image:).

    Attributes:
        model: LiteLLM image model string.
        timeout: Upper bound for a single image call, in seconds.
        output_dir: Directory where returned image bytes are written.
        url_prefix: Prefix joined with the file name to form the stored location.
    """

    model: str = "openai/dall-e-3"
    timeout: float = 3_600.0
    output_dir: str = "data/uploads"
    url_prefix: str = "/api/files/"


@dataclass
class ChunkingCfg:
    """Character-window chunking (quire.yaml: chunking:)."""

    chunk_size: int = 1_000
    overlap: int = 200


@dataclass
class RetrievalCfg:
    """Retrieval configuration (quire.yaml: retrieval:)."""

    max_top_k: int = 5
    token_budget: int = 4_000


@dataclass
class IndexCfg:
    """Index lifecycle configuration (quire.yaml: index:).

    Attributes:
        backend: 'sqlite' (sqlite-vec, persisted) or 'memory' (process-local).
        mark_loaded_on_failure: Mark a notebook loaded even when some of its
            sources failed to ingest. The failures are still reported.
    """

    backend: str = "sqlite"
    mark_loaded_on_failure: bool = True


@dataclass
class TransformCfg:
    """Transformation orchestration (quire.yaml: transform:)."""

    allow_duplicate_types: bool = True
    max_slides: int = MAX_SLIDES
    slide_concurrency: int = 1
    max_source_chars: int = 20_000


@dataclass
class LoggingCfg:
    level: str = "INFO"


@dataclass
class QuireConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    image: ImageCfg = field(default_factory=ImageCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    transform: TransformCfg = field(default_factory=TransformCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _iter_keys(obj: Any, prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(key, dotted.path)`` for every mapping key in *obj*, depth-first."""
    if not isinstance(obj, dict):
        return
    for key, value in obj.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        yield str(key), dotted
        yield from _iter_keys(value, dotted)


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError on the first key in *data* that looks like a credential."""
    for key, dotted in _iter_keys(data):
        if _API_KEY_RE.search(key):
            env_name = key.upper().replace("-", "_")
            raise ConfigError(
                f"Global config '{source}' contains a forbidden key '{dotted}'.\n"
                "  Credentials belong in the environment, never in config files.\n"
                f"  Delete '{dotted}' from {source.name} and run:\n"
                f"    export {env_name}=<value>"
            )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    for key in sorted(set(data) - _KNOWN_SECTIONS):
        warnings.warn(f"Ignoring unknown config section '{key}' in '{source}'", UserWarning, stacklevel=4)


def _validate(cfg: QuireConfig) -> None:
    if cfg.chunking.chunk_size < 1:
        raise ConfigError(f"chunking.chunk_size must be >= 1, got {cfg.chunking.chunk_size}")
    if not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {cfg.chunking.overlap} "
            f"with chunk_size {cfg.chunking.chunk_size}"
        )
    if cfg.retrieval.max_top_k < 1:
        raise ConfigError(f"retrieval.max_top_k must be >= 1, got {cfg.retrieval.max_top_k}")
    if cfg.index.backend not in _INDEX_BACKENDS:
        raise ConfigError(
            f"index.backend must be one of {sorted(_INDEX_BACKENDS)}, got '{cfg.index.backend}'"
        )
    if cfg.transform.slide_concurrency < 1:
        raise ConfigError(
            f"transform.slide_concurrency must be >= 1, got {cfg.transform.slide_concurrency}"
        )
    if cfg.transform.max_slides != MAX_SLIDES:
        raise ConfigError(f"transform.max_slides is fixed at {MAX_SLIDES}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = (
            _deep_merge(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _cfg_from_dict(data: dict[str, Any]) -> QuireConfig:
    """Build a *QuireConfig* from a merged raw YAML dict."""
    cfg = QuireConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            timeout=float(g.get("timeout", cfg.generation.timeout)),
        )

    if "image" in data:
        i = data["image"] or {}
        cfg.image = ImageCfg(
            model=str(i.get("model", cfg.image.model)),
            timeout=float(i.get("timeout", cfg.image.timeout)),
            output_dir=str(i.get("output_dir", cfg.image.output_dir)),
            url_prefix=str(i.get("url_prefix", cfg.image.url_prefix)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunking.overlap)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            max_top_k=int(r.get("max_top_k", cfg.retrieval.max_top_k)),
            token_budget=int(r.get("token_budget", cfg.retrieval.token_budget)),
        )

    if "index" in data:
        ix = data["index"] or {}
        cfg.index = IndexCfg(
            backend=str(ix.get("backend", cfg.index.backend)),
            mark_loaded_on_failure=_as_bool(
                ix.get("mark_loaded_on_failure", cfg.index.mark_loaded_on_failure)
            ),
        )

    if "transform" in data:
        t = data["transform"] or {}
        cfg.transform = TransformCfg(
            allow_duplicate_types=_as_bool(
                t.get("allow_duplicate_types", cfg.transform.allow_duplicate_types)
            ),
            max_slides=int(t.get("max_slides", cfg.transform.max_slides)),
            slide_concurrency=int(t.get("slide_concurrency", cfg.transform.slide_concurrency)),
            max_source_chars=int(t.get("max_source_chars", cfg.transform.max_source_chars)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)).upper())

    return cfg


def _apply_env_overrides(cfg: QuireConfig) -> QuireConfig:
    """Apply QUIRE_* environment variable overrides."""
    if model := os.environ.get("QUIRE_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("QUIRE_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("QUIRE_IMAGE_MODEL"):
        cfg.image.model = model
    if level := os.environ.get("QUIRE_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


_GLOBAL_YAML = """\
# Quire global configuration: model defaults shared by every project.
# Credentials go in environment variables, for example:
#   export OPENAI_API_KEY=sk-...

embedding:
  model: openai/text-embedding-3-small

generation:
  model: openai/gpt-4o

image:
  model: openai/dall-e-3
"""


def _read_layer(path: Path, *, global_layer: bool) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if global_layer:
        _check_no_api_keys(data, path)
    _warn_unknown_keys(data, path)
    return data


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> QuireConfig:
    """Merge global config, ``quire.yaml`` and ``QUIRE_*`` env vars into a QuireConfig.

    Args:
        project_dir: Directory holding ``quire.yaml``; the CWD when None.
        global_config_path: Replaces ``~/.quire/config.yaml`` (tests).

    Raises:
        ConfigError: A credential-like key in the global layer, or a value out
            of range such as ``overlap >= chunk_size``.
        yaml.YAMLError: A layer is not valid YAML.
    """
    global_path = global_config_path or _GLOBAL_CONFIG_PATH
    project_path = (project_dir or Path.cwd()) / _PROJECT_CONFIG_NAME

    merged = _deep_merge(
        _read_layer(global_path, global_layer=True),
        _read_layer(project_path, global_layer=False),
    )
    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Write the default global config unless one exists; return its path.

    The directory is created 0o700 and the file 0o600.
    """
    target = global_config_path or _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if not target.exists():
        target.write_text(_GLOBAL_YAML, encoding="utf-8")
        target.chmod(0o600)
    return target
