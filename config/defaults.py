"""
Default configuration values for verse-collections.

Centralized defaults that can be overridden by environment variables or config files.
"""

from pathlib import Path
from typing import Any, Dict
import copy

# Global default settings
DEFAULT_SETTINGS = {
    # Local storage
    "storage_dir": str(Path.home() / ".verse-collections"),
    "debounce_ms": 300,

    # Metadata reconciliation
    "reconcile_metadata": True,
    "offline": False,

    # Remote content API
    "content_api": {
        "base_url": "https://api.quran.com/api/v4",
        "timeout": 10.0,
        "default_translation_id": 20,
        "word_lang": "en"
    },

    # Logging
    "log_level": "INFO"
}

# Name of the configuration file inside the storage directory
CONFIG_FILE_NAME = "config.json"

# Environment variable mappings
ENV_VAR_MAPPING = {
    'VERSE_COLLECTIONS_STORAGE_DIR': 'storage_dir',
    'VERSE_COLLECTIONS_DEBOUNCE_MS': 'debounce_ms',
    'VERSE_COLLECTIONS_RECONCILE_METADATA': 'reconcile_metadata',
    'VERSE_COLLECTIONS_OFFLINE': 'offline',
    'VERSE_COLLECTIONS_API_BASE_URL': 'content_api.base_url',
    'VERSE_COLLECTIONS_API_TIMEOUT': 'content_api.timeout',
    'VERSE_COLLECTIONS_TRANSLATION_ID': 'content_api.default_translation_id',
    'VERSE_COLLECTIONS_WORD_LANG': 'content_api.word_lang',
    'VERSE_COLLECTIONS_LOG_LEVEL': 'log_level'
}

# Values that must stay strings even when they look numeric or boolean
STRING_SETTINGS = {'storage_dir', 'content_api.base_url', 'content_api.word_lang', 'log_level'}


def get_default_config() -> Dict[str, Any]:
    """Get a mutable copy of the default configuration"""
    return copy.deepcopy(DEFAULT_SETTINGS)
