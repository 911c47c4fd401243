"""quire init: create the database and config scaffold.

Creates:
  .quire.db                 empty database with schema
  quire.yaml                per-project config with the defaults spelled out
  ~/.quire/config.yaml      global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from quire.cli.session import DEFAULT_DB, console, open_db
from quire.config import ensure_global_config, load_config
from quire.rag.llm_client import validate_api_key

_PROJECT_YAML = """\
# Quire project configuration. API keys belong in environment variables.

embedding:
  model: openai/text-embedding-3-small
  dimensions: 1536

generation:
  model: openai/gpt-4o
  timeout: 300

image:
  model: openai/dall-e-3
  output_dir: data/uploads
  url_prefix: /api/files/

chunking:
  chunk_size: 1000
  overlap: 200

retrieval:
  max_top_k: 5
  token_budget: 4000

index:
  backend: sqlite
  mark_loaded_on_failure: true

transform:
  allow_duplicate_types: true
  slide_concurrency: 1
"""


def init_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the database file to create."),
    ] = DEFAULT_DB,
    skip_global: Annotated[
        bool,
        typer.Option("--skip-global", hidden=True, help="Do not create ~/.quire/config.yaml."),
    ] = False,
) -> None:
    """Initialize a Quire database and project config."""
    project_dir = db.resolve().parent
    project_dir.mkdir(parents=True, exist_ok=True)

    if db.exists():
        console.print(f"[yellow]⚠[/]  {db} already exists; schema is brought up to date.")
    conn = open_db(db)
    conn.close()
    console.print(f"  [green]✓[/] {db}")

    project_yaml = project_dir / "quire.yaml"
    if not project_yaml.exists():
        project_yaml.write_text(_PROJECT_YAML, encoding="utf-8")
        console.print(f"  [green]✓[/] {project_yaml}")

    if not skip_global:
        cfg_path = ensure_global_config()
        console.print(f"  [green]✓[/] {cfg_path} (global config)")

    cfg = load_config(project_dir)
    for model in (cfg.embedding.model, cfg.generation.model, cfg.image.model):
        try:
            validate_api_key(model)
        except EnvironmentError as exc:
            console.print(f"  [yellow]Warning:[/] {exc}")

    console.print("\nNext steps:")
    console.print("  1. quire notebook create <name>")
    console.print("  2. quire source add --notebook <id> --name <name> --file <path>")
    console.print("  3. quire chat <id> \"<question>\"  or  quire transform <id> summary")
