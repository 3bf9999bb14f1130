"""
Configuration Manager - Handle API key and settings persistence
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "PLUGIN_STUDIO_CONFIG_DIR"

DEFAULT_FALLBACK_MODELS = [
    "gpt-5-mini",
    "gpt-5-chat-latest",
    "gpt-4o",
    "gpt-4o-mini",
]


def resolve_config_dir(config_dir: str | os.PathLike | None = None) -> Path:
    """Pick the first writable of: argument, env var, ~/.plugin_studio, temp dir"""
    candidates = [config_dir, os.environ.get(CONFIG_DIR_ENV), os.path.expanduser("~/.plugin_studio")]
    for candidate in candidates:
        if not candidate:
            continue
        path = Path(candidate)
        try:
            path.mkdir(parents=True, exist_ok=True)
            return path
        except OSError as e:
            logger.warning("Cannot write to %s: %s", path, e)

    tmp_dir = Path(tempfile.gettempdir()) / "plugin_studio"
    tmp_dir.mkdir(parents=True, exist_ok=True)
    logger.warning("Using temporary config path: %s", tmp_dir)
    return tmp_dir


class ConfigManager:
    """Manage configuration persistence"""

    def __init__(self, config_dir: str | os.PathLike | None = None):
        self.config_dir = resolve_config_dir(config_dir)
        self._config_file = self.config_dir / "config.json"
        self._config = self._load_config()

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, filling in missing defaults"""
        config = self._default_config()
        if not self._config_file.exists():
            return config

        try:
            with open(self._config_file) as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading config: %s", e)
            return config

        for key, value in stored.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key].update(value)
            else:
                config[key] = value
        return config

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "openai": {
                "apiKey": "",
                "baseUrl": "https://api.openai.com/v1",
                "fallbackModels": list(DEFAULT_FALLBACK_MODELS),
                "timeoutSeconds": 60,
            },
            "settings": {
                "model": "auto",
                "framework": "oxide",
                "onlyUncertain": False,
                "categoryOnly": False,
                "safetyMode": True,
                "touchedThreshold": 20,
                "deletedThreshold": 10,
            },
        }

    def get_config(self) -> dict[str, Any]:
        """Get current configuration"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        return copy.deepcopy(self._config)

    def save_config(self, config: dict[str, Any]):
        """Merge sections into the configuration and write it to file"""
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(self._config.get(key), dict):
                self._config[key].update(value)
            else:
                self._config[key] = value

        self._config_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        """Get specific config value"""
        return copy.deepcopy(self._config.get(key, default))

    def set(self, key: str, value: Any):
        """Set specific config value"""
        self._config[key] = value
        self.save_config({})

    # ========== Credential ==========

    def get_api_key(self) -> str:
        return self.get_config()["openai"].get("apiKey") or ""

    def set_api_key(self, api_key: str | None):
        self.save_config({"openai": {"apiKey": api_key or ""}})

    def clear_api_key(self):
        self.set_api_key("")

    # ========== Settings ==========

    def get_settings(self) -> dict[str, Any]:
        return self.get_config()["settings"]

    def update_settings(self, settings: dict[str, Any]):
        self.save_config({"settings": settings})
