"""
Storage key-spaces for collections and settings.

Binds each collection root to its storage key, migration chain and pydantic
codec, and handles the one-off migration of the pre-folder bookmark list.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import TypeAdapter

from ..bookmarks.operations import dedupe_folders
from ..ids import generate_id
from ..models.collections import (
    CollectionsSnapshot,
    FolderList,
    LastReadMap,
    Memorization,
    PinnedList,
)
from ..models.settings import ReaderSettings
from .adapters import StorageAdapter, StorageError
from .migrations import (
    FOLDERS_MIGRATOR,
    LAST_READ_MIGRATOR,
    MEMORIZATION_MIGRATOR,
    PINNED_MIGRATOR,
    SETTINGS_MIGRATOR,
    MigrationError,
    migrate_legacy_bookmark_list,
)
from .persistence import DEFAULT_DEBOUNCE_MS, SnapshotImportError, VersionedStore

logger = logging.getLogger(__name__)

# Storage keys
FOLDERS_KEY = "quran-app-bookmark-folders"
PINNED_KEY = "quran-app-pinned-verses"
LAST_READ_KEY = "quran-app-last-read"
MEMORIZATION_KEY = "quran-app-memorization"
LEGACY_BOOKMARKS_KEY = "quran-app-bookmarks"
SETTINGS_KEY = "quran-app-settings"

_FOLDERS = TypeAdapter(FolderList)
_PINNED = TypeAdapter(PinnedList)
_LAST_READ = TypeAdapter(LastReadMap)
_MEMORIZATION = TypeAdapter(Memorization)


def _codec(adapter: TypeAdapter):
    def decode(data: Any):
        return adapter.validate_python(data)

    def encode(value: Any):
        return adapter.dump_python(value, mode='json', by_alias=True)

    return decode, encode


def _decode_folders(data: Any) -> FolderList:
    """Folder lists from storage or an import keep each verse in one folder"""
    return dedupe_folders(_FOLDERS.validate_python(data))


def _slot(storage, key, migrator, adapter, default_factory, debounce_ms, decode=None) -> VersionedStore:
    default_decode, encode = _codec(adapter)
    decode = decode or default_decode
    return VersionedStore(
        storage=storage,
        key=key,
        migrator=migrator,
        decode=decode,
        encode=encode,
        default_factory=default_factory,
        debounce_ms=debounce_ms,
    )


def settings_slot(storage: StorageAdapter, debounce_ms: int = DEFAULT_DEBOUNCE_MS) -> VersionedStore:
    """Persistence slot for ``ReaderSettings``"""
    return VersionedStore(
        storage=storage,
        key=SETTINGS_KEY,
        migrator=SETTINGS_MIGRATOR,
        decode=ReaderSettings.model_validate,
        encode=lambda settings: settings.model_dump(mode='json', by_alias=True),
        default_factory=ReaderSettings,
        debounce_ms=debounce_ms,
    )


class CollectionPersistence:
    """
    The four collection key-spaces persisted side by side.

    Each root (folders, pinned, last-read, memorization) has its own
    versioned record so a write to one never rewrites the others.
    """

    def __init__(self, storage: StorageAdapter, debounce_ms: int = DEFAULT_DEBOUNCE_MS):
        self.storage = storage
        self.debounce_ms = debounce_ms

        self.folders: VersionedStore[FolderList] = _slot(
            storage, FOLDERS_KEY, FOLDERS_MIGRATOR, _FOLDERS, tuple, debounce_ms,
            decode=_decode_folders,
        )
        self.pinned: VersionedStore[PinnedList] = _slot(
            storage, PINNED_KEY, PINNED_MIGRATOR, _PINNED, tuple, debounce_ms
        )
        self.last_read: VersionedStore[LastReadMap] = _slot(
            storage, LAST_READ_KEY, LAST_READ_MIGRATOR, _LAST_READ, dict, debounce_ms
        )
        self.memorization: VersionedStore[Memorization] = _slot(
            storage, MEMORIZATION_KEY, MEMORIZATION_MIGRATOR, _MEMORIZATION, dict, debounce_ms
        )

    @property
    def slots(self) -> Tuple[VersionedStore, ...]:
        return (self.folders, self.pinned, self.last_read, self.memorization)

    @property
    def has_pending_writes(self) -> bool:
        return any(slot.has_pending_write for slot in self.slots)

    async def load_all(self) -> CollectionsSnapshot:
        """Load every key-space; never raises"""
        folders = await self._load_folders()
        snapshot = CollectionsSnapshot(
            folders=folders,
            pinned=await self.pinned.load(),
            last_read=await self.last_read.load(),
            memorization=await self.memorization.load(),
        )
        logger.info(
            f"Loaded collections: {len(snapshot.folders)} folders, "
            f"{snapshot.bookmark_count} bookmarks, {len(snapshot.pinned)} pinned"
        )
        return snapshot

    async def _load_folders(self) -> FolderList:
        try:
            has_folders = await self.storage.read_raw(FOLDERS_KEY) is not None
        except StorageError:
            has_folders = True  # let the slot report the failure

        if not has_folders:
            migrated = await self._migrate_legacy_bookmarks()
            if migrated is not None:
                return migrated

        return await self.folders.load()

    async def _migrate_legacy_bookmarks(self) -> Optional[FolderList]:
        """Convert the pre-folder bookmark list, if one is stored"""
        try:
            raw = await self.storage.read_raw(LEGACY_BOOKMARKS_KEY)
        except StorageError as e:
            logger.warning(f"Could not read legacy bookmarks: {e}")
            return None
        if raw is None:
            return None

        try:
            data = migrate_legacy_bookmark_list(json.loads(raw), generate_id())
            folders = _decode_folders(data)
        except (ValueError, MigrationError) as e:
            logger.warning(f"Ignoring unreadable legacy bookmarks: {e}")
            return None

        self.folders.save(folders)
        try:
            await self.storage.remove_raw(LEGACY_BOOKMARKS_KEY)
        except StorageError as e:
            logger.warning(f"Could not remove legacy bookmarks key: {e}")

        logger.info(f"Migrated {len(folders[0].bookmarks)} legacy bookmarks into Uncategorized")
        return folders

    async def flush_all(self) -> None:
        for slot in self.slots:
            await slot.flush()

    async def reset_all(self) -> CollectionsSnapshot:
        """Drop every record, cancelling pending writes first"""
        for slot in self.slots:
            await slot.reset()
        return CollectionsSnapshot()

    def export_snapshot(self, snapshot: CollectionsSnapshot) -> Dict[str, Any]:
        """Envelope per key-space, bundled under one export"""
        return {
            'folders': self.folders.export_snapshot(snapshot.folders),
            'pinned': self.pinned.export_snapshot(snapshot.pinned),
            'lastRead': self.last_read.export_snapshot(snapshot.last_read),
            'memorization': self.memorization.export_snapshot(snapshot.memorization),
        }

    async def import_snapshot(self, bundle: Any) -> CollectionsSnapshot:
        """
        Validate and save an export bundle.

        Every section is validated before anything is saved, so a bad
        section leaves storage untouched. Missing sections import as
        empty collections.

        Raises:
            SnapshotImportError: bundle or one of its envelopes is invalid
        """
        if isinstance(bundle, (str, bytes)):
            try:
                bundle = json.loads(bundle)
            except ValueError as e:
                raise SnapshotImportError(f"Import is not valid JSON: {e}") from e
        if not isinstance(bundle, dict):
            raise SnapshotImportError("Invalid import format: expected an object")

        sections = (
            ('folders', 'folders', self.folders),
            ('pinned', 'pinned', self.pinned),
            ('lastRead', 'last_read', self.last_read),
            ('memorization', 'memorization', self.memorization),
        )
        if not any(name in bundle for name, _, _ in sections):
            raise SnapshotImportError("Invalid import format: no collection sections")

        values: Dict[str, Any] = {}
        for name, field, slot in sections:
            if name in bundle:
                values[field] = slot.decode_envelope(bundle[name])

        snapshot = CollectionsSnapshot(**values)
        for _, field, slot in sections:
            slot.save(getattr(snapshot, field))
        logger.info(f"Imported collections with {snapshot.bookmark_count} bookmarks")
        return snapshot
