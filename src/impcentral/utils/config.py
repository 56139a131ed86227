"""
Configuration management for the impCentral client.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


def default_config_dir() -> Path:
    """Platform-appropriate configuration directory."""
    if os.name == "nt":  # Windows
        return Path(os.environ.get("APPDATA", "~")).expanduser() / "impcentral"
    return Path.home() / ".config" / "impcentral"


class Config:
    """Library configuration, a YAML file merged over defaults."""

    DEFAULT_CONFIG = {
        "api": {
            "endpoint": "https://api.electricimp.com/v5",
            "timeout": 30,
            "debug": False
        },
        "logstreams": {
            "default_format": "text",  # text, json
            "open_timeout": None,      # seconds, None waits indefinitely
            "reconnect_delay": 1.0,
            "max_reconnect_delay": 30.0
        }
    }

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: YAML file path. Defaults to config.yaml in the user's
                config dir. A missing file just means defaults.
        """
        if config_file:
            self.config_file = Path(config_file).expanduser()
        else:
            self.config_file = default_config_dir() / "config.yaml"

        self._config = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file, or the defaults."""
        if not self.config_file.exists():
            return copy.deepcopy(self.DEFAULT_CONFIG)

        try:
            with open(self.config_file, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config {self.config_file}: {e}")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        if not isinstance(config, dict):
            logger.error(f"Ignoring config {self.config_file}: mapping expected")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        # Merge with defaults for any missing keys
        return self._merge_config(self.DEFAULT_CONFIG, config)

    def _merge_config(self, default: dict, loaded: dict) -> dict:
        """Merge loaded config with defaults, keeping loaded values."""
        result = copy.deepcopy(default)

        for key, value in loaded.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def save(self):
        """Write the configuration to the config file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            yaml.safe_dump(self._config, f, default_flow_style=False)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-notation key (e.g., "logstreams.open_timeout")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set a configuration value. Call save() to persist it.

        Args:
            key: Dot-notation key (e.g., "api.endpoint")
            value: Value to set
        """
        keys = key.split(".")
        config = self._config

        # Navigate to parent
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    @property
    def api_endpoint(self) -> str:
        return self.get("api.endpoint")

    @property
    def default_format(self) -> str:
        return self.get("logstreams.default_format", "text")
