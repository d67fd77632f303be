"""
Background synchronization for verse-collections.

Key Components:
- MetadataReconciler: Resolves bare verse ids into verse text, translation
  and chapter name, and merges the result back into the collection store
- SelectionSync: Keeps a picker selection and the settings store in step
  without echoing its own writes
"""

from .reconciler import MetadataReconciler, infer_verse_key, is_verse_key
from .selection import SelectionSync

__all__ = [
    "MetadataReconciler",
    "infer_verse_key",
    "is_verse_key",
    "SelectionSync",
]
