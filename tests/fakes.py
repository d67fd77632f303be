"""In-memory stand-ins for the content API."""

import asyncio
from typing import List, Optional, Sequence

from core.content.client import ContentFetchError, ContentSource
from core.models.content import Chapter, Translation, Verse


CHAPTERS = [
    Chapter(id=1, verses_count=7, display_name="Al-Fatihah"),
    Chapter(id=2, verses_count=286, display_name="Al-Baqarah"),
    Chapter(id=3, verses_count=200, display_name="Ali 'Imran"),
]


class FakeContentSource(ContentSource):
    """
    In-memory content source.

    Verses are synthesized from their key. Fetches block on ``gate`` until
    it is set, which lets tests interleave store operations with in-flight
    reconciliation.
    """

    def __init__(self, chapters: Optional[List[Chapter]] = None, missing: Sequence[str] = ()):
        self.chapters = list(CHAPTERS if chapters is None else chapters)
        self.missing = set(missing)
        self.gate = asyncio.Event()
        self.gate.set()
        self.fail_chapters = False
        self.key_requests: List[str] = []
        self.id_requests: List[int] = []
        self.translation_requests: List[List[int]] = []

    async def fetch_verse_by_key(self, verse_key, translation_ids=(20,), word_lang="en"):
        self.key_requests.append(verse_key)
        self.translation_requests.append(list(translation_ids))
        await self.gate.wait()
        if verse_key in self.missing:
            raise ContentFetchError(f"Verse {verse_key} not found")
        return self._verse(verse_key)

    async def fetch_verse_by_id(self, verse_id, translation_ids=(20,), word_lang="en"):
        self.id_requests.append(verse_id)
        await self.gate.wait()
        if str(verse_id) in self.missing:
            raise ContentFetchError(f"Verse id {verse_id} not found")
        return self._verse(f"99:{verse_id}", verse_id)

    async def fetch_chapter_index(self):
        if self.fail_chapters:
            raise ContentFetchError("chapters unavailable")
        return list(self.chapters)

    @staticmethod
    def _verse(verse_key: str, verse_id: int = 1) -> Verse:
        return Verse(
            id=verse_id,
            verse_key=verse_key,
            text_uthmani=f"text {verse_key}",
            translations=[Translation(resource_id=20, text=f"translation {verse_key}")],
        )


