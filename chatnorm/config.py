"""Configuration loading for the normalization service."""

import json
import logging
import os
from typing import Any, Dict, Optional

from .models import NormalizerConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Load and expose normalizer configuration."""

    def __init__(self, config_path: Optional[str] = None, settings: Optional[NormalizerConfig] = None):
        self.config_path = self._resolve_config_path(config_path)
        self._config: Dict[str, Any] = {}
        self._settings: NormalizerConfig = NormalizerConfig()
        if settings is not None:
            # In-memory settings take precedence over the file.
            self._config = settings.model_dump()
            self._settings = settings
        else:
            self._load_config()

    @staticmethod
    def _resolve_config_path(config_path: Optional[str]) -> str:
        if config_path:
            return config_path

        candidate = os.getenv("CONFIG_PATH", "/app/config/normalizer.json")
        if os.path.exists(candidate):
            return candidate

        local_candidate = os.path.join("config", "normalizer.json")
        if os.path.exists(local_candidate):
            return local_candidate

        return candidate

    def _load_config(self):
        """Load normalizer configuration from JSON file."""
        if not os.path.exists(self.config_path):
            logger.warning("Config file %s not found, using defaults", self.config_path)
            self._config = {}
            self._settings = NormalizerConfig()
            return

        try:
            with open(self.config_path, "r", encoding="utf-8-sig") as f:
                config_data = json.load(f)

            if not isinstance(config_data, dict):
                raise ValueError("Configuration root must be a JSON object")

            unknown = sorted(k for k in config_data if k not in NormalizerConfig.model_fields)
            for key in unknown:
                logger.warning("Ignoring unknown config key '%s'", key)

            self._config = config_data
            self._settings = NormalizerConfig(**{k: v for k, v in config_data.items() if k not in unknown})
            logger.info(
                "Loaded configuration from %s (%s model aliases, context system prompt %s)",
                self.config_path,
                len(self._settings.model_aliases),
                "on" if self._settings.use_context_system_prompt else "off",
            )

        except Exception as exc:
            logger.error("Failed to load config: %s", exc)
            raise

    def reload(self):
        """Reload configuration from file."""
        self._load_config()
        logger.info("Configuration reloaded")

    @property
    def settings(self) -> NormalizerConfig:
        return self._settings
