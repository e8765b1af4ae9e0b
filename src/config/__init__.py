"""
Settings for ingest runs.
"""

from .settings import DEFAULT_CONFIG_PATH, ENV_CONFIG_PATH, AppConfig, ensure_directories

__all__ = ["AppConfig", "DEFAULT_CONFIG_PATH", "ENV_CONFIG_PATH", "ensure_directories"]
