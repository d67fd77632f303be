"""
Settings store for reader preferences.

Holds ``ReaderSettings`` behind the same versioned, debounced persistence
used by the collection store. Every change is tagged with its origin so a
sync partner can tell its own writes apart from everybody else's.
"""

import logging
from typing import Any, Callable, Dict, Hashable, List, NamedTuple, Optional, Sequence

from pydantic import ValidationError

from ..models.settings import ReaderSettings
from ..storage.adapters import StorageAdapter
from ..storage.keyspaces import settings_slot
from ..storage.persistence import DEFAULT_DEBOUNCE_MS, VersionedStore

logger = logging.getLogger(__name__)

ORIGIN_LOCAL = "local"
ORIGIN_EXTERNAL = "external"


class SelectionError(ValueError):
    """Raised when a settings change would leave an invalid selection"""
    pass


class SettingsChange(NamedTuple):
    """A completed settings update"""
    settings: ReaderSettings
    origin: str
    token: Optional[Hashable] = None


SettingsListener = Callable[[SettingsChange], None]


class SettingsStore:
    """Reader settings with change notification"""

    def __init__(
        self,
        storage: StorageAdapter,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        slot: Optional[VersionedStore[ReaderSettings]] = None
    ):
        self.slot = slot or settings_slot(storage, debounce_ms)
        self._settings = ReaderSettings()
        self._listeners: List[SettingsListener] = []

    @property
    def settings(self) -> ReaderSettings:
        return self._settings

    async def initialize(self) -> ReaderSettings:
        self._settings = await self.slot.load()
        logger.info(f"Loaded settings with translations {self._settings.translation_ids}")
        return self._settings

    async def close(self) -> None:
        await self.slot.flush()

    def on_change(self, listener: SettingsListener) -> Callable[[], None]:
        """Subscribe to settings changes; returns an unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, patch: Dict[str, Any]) -> ReaderSettings:
        """Apply a local edit"""
        return self._update(patch, ORIGIN_LOCAL, None)

    def apply_external(self, patch: Dict[str, Any], token: Optional[Hashable] = None) -> ReaderSettings:
        """
        Apply a write coming from a sync partner.

        ``token`` is passed through to listeners unchanged so the writer can
        recognise and ignore the echo of its own update.
        """
        return self._update(patch, ORIGIN_EXTERNAL, token)

    def set_translation_ids(self, translation_ids: Sequence[int]) -> ReaderSettings:
        if not translation_ids:
            raise SelectionError("At least one translation must stay selected")
        return self.apply({'translation_ids': list(translation_ids)})

    def set_tafsir_ids(self, tafsir_ids: Sequence[int]) -> ReaderSettings:
        return self.apply({'tafsir_ids': list(tafsir_ids)})

    def set_word_lang(self, word_lang: str) -> ReaderSettings:
        return self.apply({'word_lang': word_lang})

    async def reset(self) -> ReaderSettings:
        self._settings = await self.slot.reset()
        self._notify(SettingsChange(self._settings, ORIGIN_LOCAL))
        return self._settings

    def _update(self, patch: Dict[str, Any], origin: str, token: Optional[Hashable]) -> ReaderSettings:
        unknown = set(patch) - set(ReaderSettings.model_fields)
        if unknown:
            raise SelectionError(f"Unknown settings: {', '.join(sorted(unknown))}")

        try:
            updated = ReaderSettings.model_validate({**self._settings.model_dump(), **patch})
        except ValidationError as e:
            raise SelectionError(f"Invalid settings update: {e}") from e

        if updated == self._settings:
            return self._settings

        self._settings = updated
        self.slot.save(updated)
        logger.debug(f"Settings updated ({origin}): {sorted(patch)}")
        self._notify(SettingsChange(updated, origin, token))
        return updated

    def _notify(self, change: SettingsChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Settings listener failed: {e}")
