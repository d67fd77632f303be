"""
Unit tests for configuration loader functionality.

Tests defaults, config file merging, environment overrides, validation
fallback and saving.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

from config.defaults import DEFAULT_SETTINGS, ENV_VAR_MAPPING
from config.loader import ConfigurationLoader
from core.models.config import GlobalSettings, StoreConfig


def _clean_env():
    return {k: v for k, v in os.environ.items() if not k.startswith('VERSE_COLLECTIONS_')}


class TestConfigurationLoader:
    """Test ConfigurationLoader functionality"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)

    def teardown_method(self):
        """Cleanup test environment"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, data):
        (self.temp_path / "config.json").write_text(json.dumps(data), encoding='utf-8')

    def test_loader_initialization(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            loader = ConfigurationLoader(self.temp_path)

        assert isinstance(loader.global_settings, GlobalSettings)
        assert loader.config_file == self.temp_path / "config.json"

    def test_defaults_without_config_file(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert isinstance(config, StoreConfig)
        assert config.storage_dir == self.temp_path
        assert config.debounce_ms == DEFAULT_SETTINGS["debounce_ms"]
        assert config.content_api.base_url == DEFAULT_SETTINGS["content_api"]["base_url"]
        assert config.reconcile_metadata is True
        assert config.offline is False

    def test_config_file_is_merged(self):
        self._write_config({"debounce_ms": 50, "content_api": {"timeout": 3}})

        with patch.dict(os.environ, _clean_env(), clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert config.debounce_ms == 50
        assert config.content_api.timeout == 3.0
        assert config.content_api.word_lang == "en"

    def test_corrupt_config_file_uses_defaults(self):
        (self.temp_path / "config.json").write_text("{not json", encoding='utf-8')

        with patch.dict(os.environ, _clean_env(), clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert config.debounce_ms == DEFAULT_SETTINGS["debounce_ms"]

    def test_environment_overrides(self):
        env = _clean_env()
        env.update({
            'VERSE_COLLECTIONS_DEBOUNCE_MS': '25',
            'VERSE_COLLECTIONS_OFFLINE': 'yes',
            'VERSE_COLLECTIONS_API_TIMEOUT': '2.5',
            'VERSE_COLLECTIONS_WORD_LANG': 'ur',
            'VERSE_COLLECTIONS_LOG_LEVEL': 'debug',
        })
        self._write_config({"debounce_ms": 50})

        with patch.dict(os.environ, env, clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert config.debounce_ms == 25
        assert config.offline is True
        assert config.content_api.timeout == 2.5
        assert config.content_api.word_lang == "ur"
        assert config.log_level == "DEBUG"

    def test_explicit_storage_dir_beats_environment(self):
        env = _clean_env()
        env['VERSE_COLLECTIONS_STORAGE_DIR'] = str(self.temp_path / "from-env")

        with patch.dict(os.environ, env, clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert config.storage_dir == self.temp_path

    def test_invalid_values_fall_back_to_defaults(self):
        self._write_config({"debounce_ms": -5, "content_api": {"base_url": "ftp://nope"}})

        with patch.dict(os.environ, _clean_env(), clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert config.debounce_ms == DEFAULT_SETTINGS["debounce_ms"]
        assert config.content_api.base_url.startswith("https://")
        assert config.storage_dir == self.temp_path

    def test_invalid_environment_values_fall_back_to_defaults(self):
        env = _clean_env()
        env.update({
            'VERSE_COLLECTIONS_LOG_LEVEL': 'verbose',
            'VERSE_COLLECTIONS_OFFLINE': 'maybe',
        })

        with patch.dict(os.environ, env, clear=True):
            config = ConfigurationLoader(self.temp_path).load_config()

        assert config.log_level == DEFAULT_SETTINGS["log_level"]
        assert config.offline is False
        assert config.storage_dir == self.temp_path

    def test_save_and_reload(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            loader = ConfigurationLoader(self.temp_path)
            config = loader.load_config().model_copy(update={'debounce_ms': 75})

            assert loader.save_config(config)
            loader.clear_cache()
            reloaded = loader.load_config()

        assert reloaded.debounce_ms == 75

    def test_cache(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            loader = ConfigurationLoader(self.temp_path)
            first = loader.load_config()

            self._write_config({"debounce_ms": 10})

            assert loader.load_config() is first
            assert loader.load_config(use_cache=False).debounce_ms == 10

    def test_env_value_conversion(self):
        loader = ConfigurationLoader(self.temp_path)

        assert loader._convert_env_value("true") is True
        assert loader._convert_env_value("OFF") is False
        assert loader._convert_env_value("42") == 42
        assert loader._convert_env_value("0.5") == 0.5
        assert loader._convert_env_value("hello") == "hello"

    def test_env_mapping_uses_prefix(self):
        assert all(name.startswith('VERSE_COLLECTIONS_') for name in ENV_VAR_MAPPING)
