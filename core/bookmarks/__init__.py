"""
Pure collection operations.

Side-effect-free transformations over folders, pinned verses, last-read
positions and memorization plans.
"""

from .operations import (
    DEFAULT_FOLDER_NAME,
    BookmarkLocation,
    normalize_verse_id,
    create_folder,
    delete_folder,
    rename_folder,
    get_folder,
    find_bookmark,
    is_bookmarked,
    all_bookmarked_verses,
    dedupe_folders,
    add_bookmark,
    remove_bookmark,
    move_bookmark,
    update_bookmark,
    is_pinned,
    add_pinned,
    remove_pinned,
    update_pinned,
    set_last_read,
    create_memorization_plan,
    add_memorization_plan,
    update_memorization_progress,
    remove_memorization_plan,
)

__all__ = [
    "DEFAULT_FOLDER_NAME",
    "BookmarkLocation",
    "normalize_verse_id",
    "create_folder",
    "delete_folder",
    "rename_folder",
    "get_folder",
    "find_bookmark",
    "is_bookmarked",
    "all_bookmarked_verses",
    "dedupe_folders",
    "add_bookmark",
    "remove_bookmark",
    "move_bookmark",
    "update_bookmark",
    "is_pinned",
    "add_pinned",
    "remove_pinned",
    "update_pinned",
    "set_last_read",
    "create_memorization_plan",
    "add_memorization_plan",
    "update_memorization_progress",
    "remove_memorization_plan",
]
