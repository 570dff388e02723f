"""
Centralized configuration management.

Supported sources, later ones override earlier ones:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.info("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def __getitem__(self, key):
        """
        Get configuration value by key.

        Raises:
            KeyError: If key not found
        """
        if key not in self._config:
            raise KeyError(f"Configuration key '{key}' not found")

        return self._config[key]

    def get(self, key, default=None):
        """Get configuration value by key with optional default."""
        value = self._config.get(key)
        return default if value is None else value

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.get(key)
        if raw is None or not str(raw).strip():
            return default
        return str(raw).strip().lower() in {"true", "1", "yes", "on"}

    def get_int(self, key: str, default: int) -> int:
        raw = (self.get(key) or "").strip()
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid integer for {}: '{}', defaulting to {}", key, raw, default)
            return default

    def get_float(self, key: str, default: float) -> float:
        raw = (self.get(key) or "").strip()
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning("Invalid number for {}: '{}', defaulting to {}", key, raw, default)
            return default

    def get_redis_url(self, label: str = "default") -> str:
        """
        Get Redis connection URL for a specific label.

        `REDIS_URL_<LABEL>` wins; the default label also accepts `REDIS_URL`.
        """
        url = self.get(f"REDIS_URL_{label.upper()}")
        if url:
            return url
        if label == "default":
            return self.get("REDIS_URL") or "redis://localhost:6379"
        return ""

    def reload(self):
        """Reload configuration from files and environment."""
        self._config.clear()
        self._load_config()
        logger.info("Configuration reloaded")

    def __contains__(self, key):
        return key in self._config

    def __iter__(self):
        return iter(self._config)

    def keys(self):
        return self._config.keys()

    def items(self):
        return self._config.items()


config = EnvironConfig()
