"""
Pure transformations over collection snapshots.

Every function takes an immutable snapshot plus arguments and returns a new
snapshot. Nothing here mutates its input or performs I/O. "Not found"
conditions return the input unchanged; only contract violations raise.

A verse id lives in at most one folder. ``add_bookmark`` is the guard for
that rule: adding a verse that is already bookmarked anywhere is a no-op.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Union

from ..ids import generate_id
from ..models.collections import (
    Bookmark,
    BookmarkMetadata,
    Folder,
    FolderList,
    LastReadEntry,
    LastReadMap,
    Memorization,
    MemorizationPlan,
    PinnedList,
    now_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_FOLDER_NAME = "Uncategorized"

VerseId = Union[str, int]
MetadataPatch = Union[BookmarkMetadata, Dict[str, Any]]


class BookmarkLocation(NamedTuple):
    """A bookmark together with the folder that owns it"""
    folder: Folder
    bookmark: Bookmark


def normalize_verse_id(verse_id: VerseId) -> str:
    """Coerce a verse id to its canonical string form"""
    return str(verse_id).strip()


# Folders

def create_folder(name: str, color: Optional[str] = None, icon: Optional[str] = None) -> Folder:
    """Create an empty folder with a fresh identifier"""
    return Folder(id=generate_id(), name=name, color=color, icon=icon, created_at=now_ms())


def delete_folder(folders: FolderList, folder_id: str) -> FolderList:
    """Drop a folder together with its bookmarks"""
    remaining = tuple(folder for folder in folders if folder.id != folder_id)
    return folders if len(remaining) == len(folders) else remaining


def rename_folder(
    folders: FolderList,
    folder_id: str,
    name: str,
    color: Optional[str] = None,
    icon: Optional[str] = None
) -> FolderList:
    """Rename a folder; color and icon change only when given"""
    updates: Dict[str, Any] = {'name': name}
    if color is not None:
        updates['color'] = color
    if icon is not None:
        updates['icon'] = icon

    changed = False
    result = []
    for folder in folders:
        if folder.id == folder_id:
            # model_copy skips validation, so validate the new name explicitly
            result.append(Folder.model_validate({**folder.model_dump(), **updates}))
            changed = True
        else:
            result.append(folder)
    return tuple(result) if changed else folders


def get_folder(folders: FolderList, folder_id: str) -> Optional[Folder]:
    for folder in folders:
        if folder.id == folder_id:
            return folder
    return None


# Bookmarks

def find_bookmark(folders: FolderList, verse_id: VerseId) -> Optional[BookmarkLocation]:
    """Locate a verse across all folders; the first match wins"""
    key = normalize_verse_id(verse_id)
    for folder in folders:
        bookmark = folder.find(key)
        if bookmark is not None:
            return BookmarkLocation(folder, bookmark)
    return None


def is_bookmarked(folders: FolderList, verse_id: VerseId) -> bool:
    return find_bookmark(folders, verse_id) is not None


def all_bookmarked_verses(folders: FolderList) -> List[str]:
    """Flattened, de-duplicated verse ids in first-seen order"""
    seen: Dict[str, None] = {}
    for folder in folders:
        for bookmark in folder.bookmarks:
            seen.setdefault(bookmark.verse_id, None)
    return list(seen)


def dedupe_folders(folders: FolderList) -> FolderList:
    """
    Keep only the first occurrence of each verse across all folders.

    Stored and imported records are not guarded by ``add_bookmark``, so they
    can carry the same verse twice. Returns ``folders`` unchanged when every
    verse already lives in one place.
    """
    seen = set()
    changed = False
    result = []
    for folder in folders:
        kept = []
        for bookmark in folder.bookmarks:
            if bookmark.verse_id in seen:
                logger.warning(f"Dropping duplicate bookmark {bookmark.verse_id} from folder {folder.id}")
                continue
            seen.add(bookmark.verse_id)
            kept.append(bookmark)
        if len(kept) != len(folder.bookmarks):
            folder = folder.model_copy(update={'bookmarks': tuple(kept)})
            changed = True
        result.append(folder)
    return tuple(result) if changed else folders


def add_bookmark(
    folders: FolderList,
    verse_id: VerseId,
    folder_id: Optional[str] = None,
    metadata: Optional[MetadataPatch] = None
) -> FolderList:
    """
    Add a verse to a folder.

    Returns ``folders`` unchanged if the verse is already bookmarked in any
    folder. Without ``folder_id`` the bookmark goes to the folder named
    "Uncategorized", which is created and prepended when missing. An
    explicit ``folder_id`` that matches no folder is also a no-op.
    """
    key = normalize_verse_id(verse_id)
    if is_bookmarked(folders, key):
        logger.debug(f"Verse {key} already bookmarked, skipping add")
        return folders

    bookmark = Bookmark(verse_id=key, created_at=now_ms())
    if metadata is not None:
        bookmark = bookmark.with_metadata(metadata)

    if folder_id is None:
        default_folder = next((f for f in folders if f.name == DEFAULT_FOLDER_NAME), None)
        if default_folder is None:
            default_folder = create_folder(DEFAULT_FOLDER_NAME)
            folders = (default_folder,) + tuple(folders)
        folder_id = default_folder.id
    elif get_folder(folders, folder_id) is None:
        logger.debug(f"Folder {folder_id} not found, bookmark for {key} not added")
        return folders

    return tuple(
        folder.model_copy(update={'bookmarks': folder.bookmarks + (bookmark,)})
        if folder.id == folder_id else folder
        for folder in folders
    )


def remove_bookmark(folders: FolderList, verse_id: VerseId, folder_id: str) -> FolderList:
    """Remove a verse from the named folder only"""
    key = normalize_verse_id(verse_id)
    changed = False
    result = []
    for folder in folders:
        if folder.id == folder_id:
            kept = tuple(b for b in folder.bookmarks if not b.matches(key))
            if len(kept) != len(folder.bookmarks):
                folder = folder.model_copy(update={'bookmarks': kept})
                changed = True
        result.append(folder)
    return tuple(result) if changed else folders


def move_bookmark(folders: FolderList, verse_id: VerseId, folder_id: str) -> FolderList:
    """
    Move a bookmark to another folder, keeping its metadata and timestamp.

    No-op when the verse is not bookmarked, already lives in ``folder_id``
    or the target folder does not exist.
    """
    location = find_bookmark(folders, verse_id)
    if location is None or location.folder.id == folder_id or get_folder(folders, folder_id) is None:
        return folders

    source_id = location.folder.id
    result = []
    for folder in folders:
        if folder.id == source_id:
            kept = tuple(b for b in folder.bookmarks if b is not location.bookmark)
            folder = folder.model_copy(update={'bookmarks': kept})
        elif folder.id == folder_id:
            folder = folder.model_copy(update={'bookmarks': folder.bookmarks + (location.bookmark,)})
        result.append(folder)
    return tuple(result)


def update_bookmark(folders: FolderList, verse_id: VerseId, patch: MetadataPatch) -> FolderList:
    """Merge ``patch`` into the bookmark for ``verse_id`` in whichever folder holds it"""
    key = normalize_verse_id(verse_id)
    changed = False
    result = []
    for folder in folders:
        bookmarks = _patch_entries(folder.bookmarks, key, patch)
        if bookmarks is not folder.bookmarks:
            folder = folder.model_copy(update={'bookmarks': bookmarks})
            changed = True
        result.append(folder)
    return tuple(result) if changed else folders


def _patch_entries(entries: PinnedList, key: str, patch: MetadataPatch) -> PinnedList:
    changed = False
    result = []
    for entry in entries:
        if entry.matches(key):
            updated = entry.with_metadata(patch)
            if updated is not entry:
                changed = True
            entry = updated
        result.append(entry)
    return tuple(result) if changed else entries


# Pinned verses

def is_pinned(pinned: PinnedList, verse_id: VerseId) -> bool:
    key = normalize_verse_id(verse_id)
    return any(entry.matches(key) for entry in pinned)


def add_pinned(
    pinned: PinnedList,
    verse_id: VerseId,
    metadata: Optional[MetadataPatch] = None
) -> PinnedList:
    """Append a pinned entry unless the verse is already pinned"""
    key = normalize_verse_id(verse_id)
    if is_pinned(pinned, key):
        return pinned
    entry = Bookmark(verse_id=key, created_at=now_ms())
    if metadata is not None:
        entry = entry.with_metadata(metadata)
    return tuple(pinned) + (entry,)


def remove_pinned(pinned: PinnedList, verse_id: VerseId) -> PinnedList:
    key = normalize_verse_id(verse_id)
    kept = tuple(entry for entry in pinned if not entry.matches(key))
    return pinned if len(kept) == len(pinned) else kept


def update_pinned(pinned: PinnedList, verse_id: VerseId, patch: MetadataPatch) -> PinnedList:
    return _patch_entries(pinned, normalize_verse_id(verse_id), patch)


# Last read

def set_last_read(
    last_read: LastReadMap,
    chapter_id: VerseId,
    verse_number: int,
    verse_key: Optional[str] = None,
    verse_id: Optional[int] = None
) -> LastReadMap:
    """Record the last-read verse of a chapter (last write wins)"""
    entry = LastReadEntry(verse_number=verse_number, verse_key=verse_key, verse_id=verse_id)
    return {**last_read, str(chapter_id).strip(): entry}


# Memorization

def create_memorization_plan(
    surah_id: int,
    target_verses: int,
    name: Optional[str] = None
) -> MemorizationPlan:
    """Create a plan with no progress; target must be positive"""
    if target_verses <= 0:
        raise ValueError(f"target_verses must be positive, got {target_verses}")
    now = now_ms()
    return MemorizationPlan(
        id=generate_id(),
        surah_id=surah_id,
        target_verses=target_verses,
        completed_verses=0,
        created_at=now,
        last_updated=now,
        notes=name or f"Surah {surah_id} Plan",
    )


def add_memorization_plan(plans: Memorization, plan: MemorizationPlan) -> Memorization:
    """Insert or replace the plan for the plan's surah"""
    return {**plans, plan.key: plan}


def update_memorization_progress(
    plans: Memorization,
    surah_id: VerseId,
    completed_verses: int
) -> Memorization:
    """
    Set the completed verse count of a plan.

    Progress may be corrected downward. Missing plans are a no-op.
    """
    if completed_verses < 0:
        raise ValueError(f"completed_verses cannot be negative, got {completed_verses}")
    key = str(surah_id).strip()
    plan = plans.get(key)
    if plan is None:
        return plans
    updated = plan.model_copy(update={
        'completed_verses': completed_verses,
        'last_updated': now_ms()
    })
    return {**plans, key: updated}


def remove_memorization_plan(plans: Memorization, surah_id: VerseId) -> Memorization:
    key = str(surah_id).strip()
    if key not in plans:
        return plans
    return {k: v for k, v in plans.items() if k != key}
