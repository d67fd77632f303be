"""
Content models returned by the remote Quran content API.

Only the fields the collection store consumes are modelled; unknown
fields in API payloads are ignored.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, AliasChoices


class Chapter(BaseModel):
    """Chapter index entry"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    id: int = Field(ge=1)
    verses_count: int = Field(ge=0)
    display_name: str = Field(
        default="",
        validation_alias=AliasChoices('display_name', 'name_simple', 'displayName'),
    )


class Translation(BaseModel):
    """Single translation text attached to a verse"""
    model_config = ConfigDict(frozen=True, extra='ignore')

    resource_id: Optional[int] = None
    text: str


class Verse(BaseModel):
    """Verse as delivered by the content API"""
    model_config = ConfigDict(frozen=True, extra='ignore')

    id: int
    verse_key: str
    text_uthmani: Optional[str] = None
    translations: List[Translation] = Field(default_factory=list)

    @property
    def chapter_id(self) -> Optional[int]:
        """Chapter number parsed from the verse key"""
        head = self.verse_key.split(':', 1)[0]
        return int(head) if head.isdigit() else None

    @property
    def first_translation(self) -> Optional[str]:
        return self.translations[0].text if self.translations else None
