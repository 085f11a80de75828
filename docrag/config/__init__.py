"""Configuration module: Settings, load_config, and a module-level singleton."""

from docrag.config.loader import load_config
from docrag.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
