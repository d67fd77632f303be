"""
Stateful stores for verse-collections.
"""

from .collection_store import CollectionStore, PINNED_FOLDER_ID, DEFAULT_MEMORIZATION_TARGET
from .settings_store import SettingsStore, SettingsChange, SelectionError, ORIGIN_LOCAL, ORIGIN_EXTERNAL

__all__ = [
    "CollectionStore",
    "PINNED_FOLDER_ID",
    "DEFAULT_MEMORIZATION_TARGET",
    "SettingsStore",
    "SettingsChange",
    "SelectionError",
    "ORIGIN_LOCAL",
    "ORIGIN_EXTERNAL"
]
