"""
Configuration Manager

Handles loading and managing configuration from YAML files.
Defaults ship with the package and are overridden by an optional
user file.
"""

import copy
import os
import yaml
from typing import Any, Dict, Optional
from pathlib import Path

from ..errors import ConfigLoadError


class ConfigManager:
    """Manages configuration loading and access."""

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default_config.yaml"

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to custom config file. If None, uses default.
        """
        self.config: Dict[str, Any] = {}
        self._load_config(config_path)

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigLoadError(f"Failed to read config {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Config {path} must be a mapping, got {type(data).__name__}")
        return data

    def _load_config(self, config_path: Optional[str] = None) -> None:
        """Load configuration from YAML file."""
        # Load default config first
        if self.DEFAULT_CONFIG_PATH.exists():
            self.config = self._read_yaml(self.DEFAULT_CONFIG_PATH)

        # Override with custom config if provided
        if config_path:
            if not os.path.exists(config_path):
                raise ConfigLoadError(f"Config file not found: {config_path}")
            self._merge_config(self._read_yaml(Path(config_path)))

    def _merge_config(self, custom_config: Dict[str, Any]) -> None:
        """Recursively merge custom config into default config."""
        def merge(base: dict, override: dict) -> dict:
            for key, value in override.items():
                if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                    merge(base[key], value)
                else:
                    base[key] = value
            return base

        merge(self.config, custom_config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'occupancy.inference_interval_ms')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'detection.model_path')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self.config)

    def save(self, path: str) -> None:
        """Save current configuration to file."""
        with open(path, 'w') as f:
            yaml.dump(self.config, f, default_flow_style=False)
