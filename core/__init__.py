"""
verse-collections core package

Bookmark folders, pinned verses, last-read positions and memorization
plans with versioned local persistence and background metadata sync.
"""

__version__ = "1.0.0"

from .models import Bookmark, Folder, MemorizationPlan, CollectionsSnapshot, StoreConfig
from .ids import generate_id

__all__ = [
    "Bookmark",
    "Folder",
    "MemorizationPlan",
    "CollectionsSnapshot",
    "StoreConfig",
    "generate_id"
]
