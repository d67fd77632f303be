"""
Reader settings persisted alongside the collections.

Only the selections that the collection store and its sync partners
read are modelled here.
"""

from typing import List
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


DEFAULT_TRANSLATION_ID = 20  # Saheeh International


class ReaderSettings(BaseModel):
    """User-selectable reading preferences"""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore'
    )

    translation_ids: List[int] = Field(default_factory=lambda: [DEFAULT_TRANSLATION_ID])
    tafsir_ids: List[int] = Field(default_factory=list)
    word_lang: str = "en"
    show_by_words: bool = False
    tajweed: bool = False

    @field_validator('translation_ids')
    @classmethod
    def validate_translation_ids(cls, v: List[int]) -> List[int]:
        """At least one translation must remain selected; duplicates dropped"""
        if not v:
            raise ValueError('At least one translation must be selected')
        seen = []
        for translation_id in v:
            if translation_id not in seen:
                seen.append(translation_id)
        return seen

    @field_validator('word_lang')
    @classmethod
    def validate_word_lang(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('word_lang cannot be empty')
        return v.strip().lower()

    @property
    def primary_translation_id(self) -> int:
        return self.translation_ids[0]
