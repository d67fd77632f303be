"""
Metadata reconciliation for bare verse identifiers.

Resolves a verse id into verse key, text, translation and chapter name
through the content API and hands the result back to the store as a
metadata patch. Reconciliation is fire-and-forget: failures leave the
bookmark unresolved and are never surfaced to the caller.
"""

import asyncio
import logging
import re
from typing import Callable, Iterable, Optional, Sequence, Set, Union

from ..content.client import ContentFetchError, ContentSource
from ..models.collections import BookmarkMetadata
from ..models.content import Chapter, Verse
from ..models.settings import DEFAULT_TRANSLATION_ID

logger = logging.getLogger(__name__)

PatchApplier = Callable[[str, BookmarkMetadata], None]

_NUMERIC_ID = re.compile(r'^[0-9]+$')


def is_verse_key(verse_id: str) -> bool:
    """A verse id with a separator or any non-digit is a "chapter:verse" key"""
    return not _NUMERIC_ID.match(verse_id)


def infer_verse_key(verse_number: int, chapters: Iterable[Chapter]) -> Optional[str]:
    """
    Map an absolute sequential verse number to a "chapter:verse" key.

    Chapters are walked in ascending id order, subtracting each verse count
    until the remainder falls inside a chapter. Returns None when the number
    is not positive or lies past the last chapter.
    """
    if verse_number <= 0:
        return None

    remaining = verse_number
    for chapter in sorted(chapters, key=lambda c: c.id):
        if chapter.verses_count <= 0:
            continue
        if remaining <= chapter.verses_count:
            return f"{chapter.id}:{remaining}"
        remaining -= chapter.verses_count
    return None


class MetadataReconciler:
    """
    Resolves verse metadata in the background.

    Scheduled reconciliations are tracked so they can be awaited with
    ``drain()``. After ``deactivate()`` results that arrive late are
    discarded instead of applied.
    """

    def __init__(
        self,
        client: ContentSource,
        apply_patch: Optional[PatchApplier] = None,
        translation_ids: Sequence[int] = (DEFAULT_TRANSLATION_ID,),
        word_lang: str = "en"
    ):
        self.client = client
        self.apply_patch = apply_patch
        self.translation_ids = list(translation_ids)
        self.word_lang = word_lang

        self._active = True
        self._tasks: Set[asyncio.Task] = set()

        # Statistics
        self.resolved_count = 0
        self.failed_count = 0

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def bind(self, apply_patch: PatchApplier) -> None:
        """Set the callback that merges resolved metadata into the store"""
        self.apply_patch = apply_patch

    def schedule(self, verse_id: Union[str, int], chapters: Sequence[Chapter]) -> Optional[asyncio.Task]:
        """
        Start reconciliation without waiting for it.

        Returns the tracking task, or None when there is no running loop or
        the reconciler has been deactivated.
        """
        if not self._active:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop; skipping reconciliation of {verse_id}")
            return None

        task = loop.create_task(self.reconcile(verse_id, list(chapters)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled reconciliation to finish"""
        while self._tasks:
            pending = list(self._tasks)
            await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.difference_update(pending)

    def deactivate(self) -> None:
        """Discard results of in-flight and future reconciliations"""
        self._active = False
        logger.debug(f"Reconciler deactivated with {len(self._tasks)} fetches in flight")

    async def reconcile(self, verse_id: Union[str, int], chapters: Sequence[Chapter]) -> None:
        """Resolve ``verse_id`` and apply the patch; never raises"""
        key = str(verse_id).strip()
        try:
            patch = await self.resolve(key, chapters)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed_count += 1
            logger.warning(f"Reconciliation of {key} failed unexpectedly: {e}")
            return

        if patch is None:
            self.failed_count += 1
            return

        if not self._active:
            logger.debug(f"Discarding late metadata for {key}")
            return
        if self.apply_patch is None:
            logger.debug(f"No patch target bound; dropping metadata for {key}")
            return

        try:
            self.apply_patch(key, patch)
            self.resolved_count += 1
        except Exception as e:
            self.failed_count += 1
            logger.warning(f"Failed to apply metadata for {key}: {e}")

    async def resolve(self, verse_id: str, chapters: Sequence[Chapter]) -> Optional[BookmarkMetadata]:
        """Fetch the verse for ``verse_id`` and build its metadata patch"""
        verse = await self._fetch(verse_id, chapters)
        if verse is None:
            return None
        return self.build_patch(verse, chapters)

    async def _fetch(self, verse_id: str, chapters: Sequence[Chapter]) -> Optional[Verse]:
        if is_verse_key(verse_id):
            try:
                return await self.client.fetch_verse_by_key(verse_id, self.translation_ids, self.word_lang)
            except ContentFetchError as e:
                logger.debug(f"Could not fetch verse {verse_id}: {e}")
                return None

        inferred = infer_verse_key(int(verse_id), chapters)
        if inferred is not None:
            try:
                return await self.client.fetch_verse_by_key(inferred, self.translation_ids, self.word_lang)
            except ContentFetchError as e:
                logger.debug(f"Fetch by inferred key {inferred} failed, trying id {verse_id}: {e}")

        try:
            return await self.client.fetch_verse_by_id(int(verse_id), self.translation_ids, self.word_lang)
        except ContentFetchError as e:
            logger.debug(f"Could not fetch verse id {verse_id}: {e}")
            return None

    @staticmethod
    def build_patch(verse: Verse, chapters: Sequence[Chapter]) -> BookmarkMetadata:
        chapter_id = verse.chapter_id
        chapter = next((c for c in chapters if c.id == chapter_id), None)
        if chapter is not None and chapter.display_name:
            surah_name = chapter.display_name
        else:
            surah_name = f"Surah {chapter_id}" if chapter_id is not None else None

        return BookmarkMetadata(
            verse_key=verse.verse_key,
            verse_text=verse.text_uthmani,
            translation=verse.first_translation,
            surah_name=surah_name,
            verse_api_id=verse.id,
        )
