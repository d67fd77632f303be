"""
Collection models for saved verses.

Defines bookmarks, folders, pinned entries, last-read positions and
memorization plans. All models are immutable; operations produce new
instances via ``model_copy``.
"""

import time
from typing import Any, Dict, Optional, Tuple, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current time as integer epoch milliseconds"""
    return int(time.time() * 1000)


# Shared config: camelCase on disk, snake_case in Python
_RECORD_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)


class BookmarkMetadata(BaseModel):
    """Optional enrichment resolved from the remote content API"""
    model_config = _RECORD_CONFIG

    verse_key: Optional[str] = None
    verse_text: Optional[str] = None
    translation: Optional[str] = None
    surah_name: Optional[str] = None
    verse_api_id: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        """True when nothing has been resolved yet"""
        return all(value is None for value in self.model_dump().values())

    def merge(self, patch: Union['BookmarkMetadata', Dict[str, Any]]) -> 'BookmarkMetadata':
        """Return a copy with every non-None field of ``patch`` applied"""
        if isinstance(patch, BookmarkMetadata):
            updates = patch.model_dump(exclude_none=True)
        else:
            updates = BookmarkMetadata.model_validate(patch).model_dump(exclude_none=True)
        if not updates:
            return self
        return self.model_copy(update=updates)


class Bookmark(BaseModel):
    """A saved reference to a verse"""
    model_config = _RECORD_CONFIG

    verse_id: str
    created_at: int = Field(default_factory=now_ms)
    metadata: BookmarkMetadata = Field(default_factory=BookmarkMetadata)

    @field_validator('verse_id', mode='before')
    @classmethod
    def normalize_verse_id(cls, v: Any) -> str:
        """Verse ids are compared as strings; 7 and "7" are the same verse"""
        if v is None:
            raise ValueError('verse_id is required')
        value = str(v).strip()
        if not value:
            raise ValueError('verse_id cannot be empty')
        return value

    @property
    def verse_key(self) -> Optional[str]:
        return self.metadata.verse_key

    @property
    def verse_text(self) -> Optional[str]:
        return self.metadata.verse_text

    @property
    def translation(self) -> Optional[str]:
        return self.metadata.translation

    @property
    def surah_name(self) -> Optional[str]:
        return self.metadata.surah_name

    @property
    def verse_api_id(self) -> Optional[int]:
        return self.metadata.verse_api_id

    @property
    def is_resolved(self) -> bool:
        """Whether reconciliation has filled in the verse text"""
        return self.metadata.verse_text is not None

    def matches(self, verse_id: Union[str, int]) -> bool:
        """Compare against a verse id after string normalization"""
        return self.verse_id == str(verse_id).strip()

    def with_metadata(self, patch: Union[BookmarkMetadata, Dict[str, Any]]) -> 'Bookmark':
        """Create updated bookmark with merged metadata"""
        merged = self.metadata.merge(patch)
        if merged is self.metadata:
            return self
        return self.model_copy(update={'metadata': merged})


# Pinned verses share the bookmark shape but live outside any folder
PinnedEntry = Bookmark


class Folder(BaseModel):
    """Named, user-created container of bookmarks"""
    model_config = _RECORD_CONFIG

    id: str
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: int = Field(default_factory=now_ms)
    bookmarks: Tuple[Bookmark, ...] = ()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate folder name is not empty"""
        if not v.strip():
            raise ValueError('Folder name cannot be empty')
        return v.strip()

    def find(self, verse_id: Union[str, int]) -> Optional[Bookmark]:
        """Return the bookmark for ``verse_id`` in this folder, if any"""
        for bookmark in self.bookmarks:
            if bookmark.matches(verse_id):
                return bookmark
        return None

    def __len__(self) -> int:
        return len(self.bookmarks)


class LastReadEntry(BaseModel):
    """Last-read position within one chapter"""
    model_config = _RECORD_CONFIG

    verse_number: int = Field(ge=1)
    verse_key: Optional[str] = None
    verse_id: Optional[int] = None


class MemorizationPlan(BaseModel):
    """Memorization goal for a single surah"""
    model_config = _RECORD_CONFIG

    id: str
    surah_id: int = Field(ge=1)
    target_verses: int = Field(gt=0)
    completed_verses: int = Field(default=0, ge=0)
    created_at: int = Field(default_factory=now_ms)
    last_updated: int = Field(default_factory=now_ms)
    notes: str = ""

    @property
    def key(self) -> str:
        """Mapping key used by the memorization collection"""
        return str(self.surah_id)

    @property
    def progress(self) -> float:
        """Completed fraction, capped at 1.0"""
        return min(self.completed_verses / self.target_verses, 1.0)

    @property
    def is_complete(self) -> bool:
        return self.completed_verses >= self.target_verses


FolderList = Tuple[Folder, ...]
PinnedList = Tuple[Bookmark, ...]
LastReadMap = Dict[str, LastReadEntry]
Memorization = Dict[str, MemorizationPlan]


class CollectionsSnapshot(BaseModel):
    """The four independent collection roots held by the store"""
    model_config = _RECORD_CONFIG

    folders: FolderList = ()
    pinned: PinnedList = ()
    last_read: LastReadMap = Field(default_factory=dict)
    memorization: Memorization = Field(default_factory=dict)

    @property
    def bookmark_count(self) -> int:
        return sum(len(folder.bookmarks) for folder in self.folders)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-ready on-disk shape"""
        return self.model_dump(mode='json', by_alias=True)
