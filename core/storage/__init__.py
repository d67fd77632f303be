"""
Storage package for verse-collections.

Provides key/value storage adapters, versioned schema migrations and
debounced persistence for the collection and settings key-spaces.
"""

from .adapters import StorageAdapter, MemoryStorage, JsonFileStorage, StorageError, CorruptRecordError
from .migrations import SchemaMigrator, MigrationStep, MigrationError, COLLECTIONS_SCHEMA_VERSION
from .persistence import VersionedStore, SnapshotImportError
from .keyspaces import CollectionPersistence, settings_slot

__all__ = [
    "StorageAdapter",
    "MemoryStorage",
    "JsonFileStorage",
    "StorageError",
    "CorruptRecordError",
    "SchemaMigrator",
    "MigrationStep",
    "MigrationError",
    "COLLECTIONS_SCHEMA_VERSION",
    "VersionedStore",
    "SnapshotImportError",
    "CollectionPersistence",
    "settings_slot"
]
