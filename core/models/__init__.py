"""
Core data models for verse-collections

All Pydantic models for collections, content, settings and configuration.
"""

from .collections import (
    Bookmark, BookmarkMetadata, PinnedEntry, Folder, LastReadEntry,
    MemorizationPlan, CollectionsSnapshot, now_ms
)
from .content import Chapter, Translation, Verse
from .settings import ReaderSettings, DEFAULT_TRANSLATION_ID
from .config import StoreConfig, ContentApiConfig, GlobalSettings

__all__ = [
    # Collections
    "Bookmark",
    "BookmarkMetadata",
    "PinnedEntry",
    "Folder",
    "LastReadEntry",
    "MemorizationPlan",
    "CollectionsSnapshot",
    "now_ms",

    # Content
    "Chapter",
    "Translation",
    "Verse",

    # Settings
    "ReaderSettings",
    "DEFAULT_TRANSLATION_ID",

    # Configuration
    "StoreConfig",
    "ContentApiConfig",
    "GlobalSettings"
]
