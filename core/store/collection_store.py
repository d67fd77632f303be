"""
Collection store: the stateful orchestrator for saved verses.

Holds the four collection roots, applies pure operations to them,
schedules debounced persistence and starts background reconciliation for
newly added verses. Consumers receive the store as an explicit handle and
observe it through ``on_change``.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..bookmarks import operations as ops
from ..content.client import ContentFetchError
from ..models.collections import (
    BookmarkMetadata,
    CollectionsSnapshot,
    Folder,
    FolderList,
    LastReadMap,
    Memorization,
    MemorizationPlan,
    PinnedList,
)
from ..models.content import Chapter
from ..storage.keyspaces import CollectionPersistence
from ..sync.reconciler import MetadataReconciler
from .settings_store import SettingsChange, SettingsStore

logger = logging.getLogger(__name__)

# Pseudo folder id addressing the pinned list in add/remove
PINNED_FOLDER_ID = "pinned"

DEFAULT_MEMORIZATION_TARGET = 10

VerseId = Union[str, int]
ChangeListener = Callable[[CollectionsSnapshot], None]
ChaptersProvider = Callable[[], Awaitable[List[Chapter]]]
MetadataPatch = Union[BookmarkMetadata, Dict[str, Any]]


class CollectionStore:
    """
    Stateful container for folders, pinned verses, last-read positions and
    memorization plans.

    Every operation computes the new root through a pure operation, replaces
    the held snapshot, schedules a debounced save of the changed key-space
    and notifies listeners once. Operations that change nothing do none of
    that.
    """

    def __init__(
        self,
        persistence: CollectionPersistence,
        reconciler: Optional[MetadataReconciler] = None,
        chapters_provider: Optional[ChaptersProvider] = None
    ):
        self.persistence = persistence
        self.reconciler = reconciler
        if chapters_provider is None and reconciler is not None:
            chapters_provider = reconciler.client.fetch_chapter_index
        self.chapters_provider = chapters_provider

        self._snapshot = CollectionsSnapshot()
        self._chapters: List[Chapter] = []
        self._listeners: List[ChangeListener] = []
        self._settings_unsubscribe: Optional[Callable[[], None]] = None
        self._initialized = False

        if reconciler is not None:
            reconciler.bind(self.update_bookmark)

    # Lifecycle

    async def initialize(self, reconcile_unresolved: bool = False) -> CollectionsSnapshot:
        """Load every key-space and the chapter index"""
        if self._initialized:
            return self._snapshot

        self._snapshot = await self.persistence.load_all()
        self._chapters = await self._load_chapters()
        self._initialized = True
        logger.info(f"Collection store ready ({len(self._chapters)} chapters indexed)")

        if reconcile_unresolved:
            self.reconcile_unresolved()
        self._notify()
        return self._snapshot

    async def close(self) -> None:
        """Stop applying reconciliation results and flush pending writes"""
        if self.reconciler is not None:
            self.reconciler.deactivate()
        if self._settings_unsubscribe is not None:
            self._settings_unsubscribe()
            self._settings_unsubscribe = None
        await self.persistence.flush_all()
        logger.info("Collection store closed")

    async def __aenter__(self) -> 'CollectionStore':
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _load_chapters(self) -> List[Chapter]:
        if self.chapters_provider is None:
            return []
        try:
            chapters = await self.chapters_provider()
        except ContentFetchError as e:
            logger.warning(f"Chapter index unavailable, verse ids will not be inferred: {e}")
            return []
        return sorted(chapters, key=lambda chapter: chapter.id)

    def follow_settings(self, settings_store: SettingsStore) -> None:
        """Fetch reconciliation content in the translations selected in settings"""
        if self.reconciler is None:
            return

        def apply(settings) -> None:
            self.reconciler.translation_ids = list(settings.translation_ids)
            self.reconciler.word_lang = settings.word_lang

        apply(settings_store.settings)

        def on_settings(change: SettingsChange) -> None:
            apply(change.settings)

        if self._settings_unsubscribe is not None:
            self._settings_unsubscribe()
        self._settings_unsubscribe = settings_store.on_change(on_settings)

    # Observation

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to snapshot changes; returns an unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self._snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Collection listener failed: {e}")

    def _commit(
        self,
        folders: Optional[FolderList] = None,
        pinned: Optional[PinnedList] = None,
        last_read: Optional[LastReadMap] = None,
        memorization: Optional[Memorization] = None
    ) -> bool:
        """Replace changed roots, schedule their saves and notify once"""
        current = self._snapshot
        slots = {
            'folders': (folders, current.folders, self.persistence.folders),
            'pinned': (pinned, current.pinned, self.persistence.pinned),
            'last_read': (last_read, current.last_read, self.persistence.last_read),
            'memorization': (memorization, current.memorization, self.persistence.memorization),
        }

        updates = {}
        for field, (new, old, slot) in slots.items():
            if new is not None and new is not old:
                updates[field] = new
                slot.save(new)

        if not updates:
            return False

        self._snapshot = current.model_copy(update=updates)
        self._notify()
        return True

    # Read accessors

    @property
    def snapshot(self) -> CollectionsSnapshot:
        return self._snapshot

    @property
    def folders(self) -> FolderList:
        return self._snapshot.folders

    @property
    def pinned_verses(self) -> PinnedList:
        return self._snapshot.pinned

    @property
    def last_read(self) -> LastReadMap:
        return self._snapshot.last_read

    @property
    def memorization(self) -> Memorization:
        return self._snapshot.memorization

    @property
    def bookmarked_verses(self) -> List[str]:
        return ops.all_bookmarked_verses(self._snapshot.folders)

    @property
    def chapters(self) -> List[Chapter]:
        return list(self._chapters)

    def is_bookmarked(self, verse_id: VerseId) -> bool:
        return ops.is_bookmarked(self._snapshot.folders, verse_id)

    def is_pinned(self, verse_id: VerseId) -> bool:
        return ops.is_pinned(self._snapshot.pinned, verse_id)

    def find_bookmark(self, verse_id: VerseId) -> Optional[ops.BookmarkLocation]:
        return ops.find_bookmark(self._snapshot.folders, verse_id)

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        return ops.get_folder(self._snapshot.folders, folder_id)

    # Folders

    def create_folder(self, name: str, color: Optional[str] = None, icon: Optional[str] = None) -> Folder:
        folder = ops.create_folder(name, color, icon)
        self._commit(folders=self._snapshot.folders + (folder,))
        logger.debug(f"Created folder {folder.id} ({folder.name})")
        return folder

    def delete_folder(self, folder_id: str) -> bool:
        return self._commit(folders=ops.delete_folder(self._snapshot.folders, folder_id))

    def rename_folder(
        self,
        folder_id: str,
        name: str,
        color: Optional[str] = None,
        icon: Optional[str] = None
    ) -> bool:
        return self._commit(folders=ops.rename_folder(self._snapshot.folders, folder_id, name, color, icon))

    # Bookmarks

    def add_bookmark(
        self,
        verse_id: VerseId,
        folder_id: Optional[str] = None,
        metadata: Optional[MetadataPatch] = None
    ) -> bool:
        """
        Bookmark a verse; ``folder_id == "pinned"`` pins it instead.

        Returns False when the verse is already bookmarked (or pinned) or the
        folder does not exist.
        """
        if folder_id == PINNED_FOLDER_ID:
            return self.add_pinned(verse_id, metadata)

        changed = self._commit(folders=ops.add_bookmark(self._snapshot.folders, verse_id, folder_id, metadata))
        if changed:
            self._schedule_reconciliation(verse_id)
        return changed

    def remove_bookmark(self, verse_id: VerseId, folder_id: str) -> bool:
        """Remove a verse from ``folder_id``; ``"pinned"`` unpins it"""
        if folder_id == PINNED_FOLDER_ID:
            return self.remove_pinned(verse_id)
        return self._commit(folders=ops.remove_bookmark(self._snapshot.folders, verse_id, folder_id))

    def toggle_bookmark(self, verse_id: VerseId, folder_id: Optional[str] = None) -> bool:
        """
        Flip the bookmark state of a verse.

        An existing bookmark is removed from the folder that actually holds
        it. When ``folder_id`` names a different existing folder the bookmark
        moves there instead, so a verse never ends up in two folders.

        Returns whether the verse is bookmarked afterwards.
        """
        location = self.find_bookmark(verse_id)
        if location is None:
            self.add_bookmark(verse_id, folder_id)
            return self.is_bookmarked(verse_id)

        if folder_id is not None and folder_id != location.folder.id and self.get_folder(folder_id) is not None:
            self._commit(folders=ops.move_bookmark(self._snapshot.folders, verse_id, folder_id))
            logger.debug(f"Moved {location.bookmark.verse_id} from {location.folder.id} to {folder_id}")
            return True

        self.remove_bookmark(verse_id, location.folder.id)
        return False

    def update_bookmark(self, verse_id: VerseId, patch: MetadataPatch) -> bool:
        """Merge metadata into the verse wherever it is bookmarked or pinned"""
        return self._commit(
            folders=ops.update_bookmark(self._snapshot.folders, verse_id, patch),
            pinned=ops.update_pinned(self._snapshot.pinned, verse_id, patch),
        )

    # Pinned verses

    def add_pinned(self, verse_id: VerseId, metadata: Optional[MetadataPatch] = None) -> bool:
        changed = self._commit(pinned=ops.add_pinned(self._snapshot.pinned, verse_id, metadata))
        if changed:
            self._schedule_reconciliation(verse_id)
        return changed

    def remove_pinned(self, verse_id: VerseId) -> bool:
        return self._commit(pinned=ops.remove_pinned(self._snapshot.pinned, verse_id))

    def toggle_pinned(self, verse_id: VerseId) -> bool:
        """Pin or unpin a verse; returns whether it is pinned afterwards"""
        if self.is_pinned(verse_id):
            self.remove_pinned(verse_id)
            return False
        self.add_pinned(verse_id)
        return True

    # Last read

    def set_last_read(
        self,
        chapter_id: VerseId,
        verse_number: int,
        verse_key: Optional[str] = None,
        verse_id: Optional[int] = None
    ) -> None:
        self._commit(last_read=ops.set_last_read(
            self._snapshot.last_read, chapter_id, verse_number, verse_key, verse_id
        ))

    # Memorization

    def add_to_memorization(self, surah_id: int, target_verses: Optional[int] = None) -> bool:
        """Start a plan for a surah unless one already exists"""
        if str(surah_id) in self._snapshot.memorization:
            return False
        plan = ops.create_memorization_plan(surah_id, target_verses or DEFAULT_MEMORIZATION_TARGET)
        return self._commit(memorization=ops.add_memorization_plan(self._snapshot.memorization, plan))

    def create_memorization_plan(
        self,
        surah_id: int,
        target_verses: int,
        name: Optional[str] = None
    ) -> MemorizationPlan:
        """Create a plan, replacing any existing plan for the surah"""
        plan = ops.create_memorization_plan(surah_id, target_verses, name)
        self._commit(memorization=ops.add_memorization_plan(self._snapshot.memorization, plan))
        return plan

    def update_memorization_progress(self, surah_id: int, completed_verses: int) -> bool:
        return self._commit(memorization=ops.update_memorization_progress(
            self._snapshot.memorization, surah_id, completed_verses
        ))

    def remove_from_memorization(self, surah_id: int) -> bool:
        return self._commit(memorization=ops.remove_memorization_plan(self._snapshot.memorization, surah_id))

    # Reconciliation

    def _schedule_reconciliation(self, verse_id: VerseId) -> None:
        if self.reconciler is not None:
            self.reconciler.schedule(ops.normalize_verse_id(verse_id), self._chapters)

    def reconcile_unresolved(self) -> int:
        """Schedule reconciliation for every bookmark or pin without verse text"""
        if self.reconciler is None:
            return 0

        unresolved: Dict[str, None] = {}
        for folder in self._snapshot.folders:
            for bookmark in folder.bookmarks:
                if not bookmark.is_resolved:
                    unresolved.setdefault(bookmark.verse_id, None)
        for entry in self._snapshot.pinned:
            if not entry.is_resolved:
                unresolved.setdefault(entry.verse_id, None)

        for verse_id in unresolved:
            self._schedule_reconciliation(verse_id)
        if unresolved:
            logger.info(f"Scheduled reconciliation for {len(unresolved)} unresolved verses")
        return len(unresolved)

    # Whole-store operations

    def export_snapshot(self) -> Dict[str, Any]:
        return self.persistence.export_snapshot(self._snapshot)

    async def import_snapshot(self, bundle: Any) -> CollectionsSnapshot:
        """
        Replace all collections with an exported bundle.

        Raises:
            SnapshotImportError: the bundle is malformed or cannot be migrated
        """
        self._snapshot = await self.persistence.import_snapshot(bundle)
        self._notify()
        return self._snapshot

    async def reset(self) -> CollectionsSnapshot:
        """Clear every collection from memory and storage"""
        self._snapshot = await self.persistence.reset_all()
        self._notify()
        return self._snapshot

    def get_stats(self) -> Dict[str, Any]:
        stats = {
            'folders': len(self._snapshot.folders),
            'bookmarks': self._snapshot.bookmark_count,
            'pinned': len(self._snapshot.pinned),
            'last_read': len(self._snapshot.last_read),
            'memorization_plans': len(self._snapshot.memorization),
            'chapters': len(self._chapters),
            'pending_writes': self.persistence.has_pending_writes,
        }
        if self.reconciler is not None:
            stats['reconciliation'] = {
                'pending': self.reconciler.pending_count,
                'resolved': self.reconciler.resolved_count,
                'failed': self.reconciler.failed_count,
            }
        return stats
