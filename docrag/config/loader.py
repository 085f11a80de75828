"""YAML configuration loader with environment overrides.

Layers, later wins:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local overrides, not committed
  3. Environment variables  -- set at deploy time

Layers 2 and 3 arrive through :class:`Settings` and are deep-merged on top
of the YAML document::

    base      = {"api": {"title": "docrag"}}
    overrides = {"api": {"cors_origins": ["*"]}}
    result    = {"api": {"title": "docrag", "cors_origins": ["*"]}}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from docrag.config.settings import Settings
from docrag.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load the YAML config and merge environment-derived values over it.

    A missing file is not an error; the result then holds only the
    environment-derived sections.

    Raises:
        ConfigurationError: If the file exists but is not valid YAML or its
            top level is not a mapping.
    """
    config_path = Path(path)
    yaml_config: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        yaml_config = loaded

    settings = settings or Settings()
    env_overrides: dict[str, Any] = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "provider": {
            "text_model": settings.openai_text_model,
            "embedding_model": settings.openai_embedding_model,
            "configured": bool(settings.openai_api_key),
        },
        "vector_store": {
            "backend": settings.vector_store_backend,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge *overrides* into *base*, mutating *base* in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
