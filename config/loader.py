"""
Configuration loading and management.

Reads ``config.json`` from the storage directory, applies environment
variable overrides and validates the result into a ``StoreConfig``.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

from pydantic import ValidationError

from core.models.config import StoreConfig, GlobalSettings
from .defaults import CONFIG_FILE_NAME, ENV_VAR_MAPPING, STRING_SETTINGS, get_default_config

logger = logging.getLogger(__name__)


class ConfigurationLoader:
    """Load and save the store configuration"""

    def __init__(self, storage_dir: Optional[Union[str, Path]] = None):
        self.global_settings = GlobalSettings()
        self.storage_dir = Path(storage_dir or self.global_settings.storage_dir).expanduser()
        self._explicit_storage_dir = storage_dir is not None
        self._cached: Optional[StoreConfig] = None

    @property
    def config_file(self) -> Path:
        return self.storage_dir / CONFIG_FILE_NAME

    def load_config(self, use_cache: bool = True) -> StoreConfig:
        """Load configuration, falling back to defaults on a missing or corrupt file"""
        if use_cache and self._cached is not None:
            return self._cached

        data = get_default_config()
        data['storage_dir'] = str(self.storage_dir)

        if self.config_file.exists():
            data = self._merge(data, self._read_config_file())

        data = self._apply_env_overrides(data)
        if self._explicit_storage_dir:
            data['storage_dir'] = str(self.storage_dir)
        if self.global_settings.api_base_url:
            data['content_api']['base_url'] = self.global_settings.api_base_url

        try:
            config = StoreConfig(**data)
        except ValidationError as e:
            logger.error(f"Invalid configuration, using defaults: {e}")
            defaults = get_default_config()
            defaults['storage_dir'] = str(self.storage_dir)
            config = StoreConfig(**defaults)

        self._cached = config
        return config

    def _read_config_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load config from {self.config_file}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Ignoring config file {self.config_file}: expected an object")
            return {}
        return data

    def _merge(self, base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge ``overrides`` into ``base``"""
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = self._merge(base[key], value)
            else:
                base[key] = value
        return base

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        final_key = keys[-1]
        current[final_key] = value if path in STRING_SETTINGS else self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        # Boolean conversion
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        # Numeric conversion
        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        # Return as string
        return value

    def save_config(self, config: StoreConfig) -> bool:
        """Save configuration to disk"""
        try:
            config_file = config.get_config_file()
            config_file.parent.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)

            logger.info(f"Saved configuration to {config_file}")
            self._cached = config
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save config to {config.storage_dir}: {e}")
            return False

    def clear_cache(self) -> None:
        """Clear configuration cache"""
        self._cached = None
        logger.info("Configuration cache cleared")
