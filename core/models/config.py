"""
Configuration models for verse-collections.

Handles storage location, persistence timing and content API settings.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .settings import DEFAULT_TRANSLATION_ID


def _default_storage_dir() -> Path:
    return Path.home() / ".verse-collections"


class ContentApiConfig(BaseModel):
    """Remote content API configuration"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    base_url: str = "https://api.quran.com/api/v4"
    timeout: float = Field(default=10.0, gt=0.0, le=120.0)
    default_translation_id: int = Field(default=DEFAULT_TRANSLATION_ID, ge=1)
    word_lang: str = "en"

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate API URL format"""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('API URL must start with http:// or https://')
        return v.rstrip('/')


class StoreConfig(BaseModel):
    """Collection store configuration"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Where JsonFileStorage keeps one file per key-space
    storage_dir: Path = Field(default_factory=_default_storage_dir)

    # Coalescing window for persistence writes
    debounce_ms: int = Field(default=300, ge=0, le=10000)

    # Reconciliation of bare verse ids
    reconcile_metadata: bool = True

    # Skip the content API entirely
    offline: bool = False

    content_api: ContentApiConfig = Field(default_factory=ContentApiConfig)

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def get_config_file(self) -> Path:
        """Path of the on-disk configuration file"""
        return self.storage_dir / "config.json"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return self.model_dump(mode='json')


class GlobalSettings(BaseSettings):
    """Process-wide settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="VERSE_COLLECTIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra='ignore'
    )

    storage_dir: Path = Field(default_factory=_default_storage_dir)
    api_base_url: Optional[str] = None
