"""
Two-way sync between a selection list and the settings store.

A picker (translations, tafsirs) keeps its own list of selected ids and the
settings store keeps the persisted one. Each side reacts to the other's
changes, so without a guard a write would bounce back forever. Writes made
here carry a generation token; observed changes that carry one of our own
tokens are echoes and are ignored.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from ..store.settings_store import SelectionError, SettingsChange, SettingsStore

logger = logging.getLogger(__name__)

SelectionListener = Callable[[List[int]], None]


class SelectionSync:
    """Keeps one ``ReaderSettings`` list field and a picker selection in step"""

    def __init__(
        self,
        store: SettingsStore,
        field: str = 'translation_ids',
        on_selection: Optional[SelectionListener] = None
    ):
        self.store = store
        self.field = field
        self.on_selection = on_selection

        self._source = object()
        self._generation = 0
        self._selection: List[int] = list(getattr(store.settings, field))
        self._unsubscribe = store.on_change(self._handle_settings_change)

        # Statistics
        self.echoes_ignored = 0
        self.updates_received = 0

    @property
    def selection(self) -> List[int]:
        return list(self._selection)

    @property
    def generation(self) -> int:
        return self._generation

    def select(self, ids: Sequence[int]) -> List[int]:
        """
        Push a picker change into the settings store.

        Raises:
            SelectionError: ``ids`` is empty for a field that needs at
                least one entry
        """
        ids = list(ids)
        if not ids and self.field == 'translation_ids':
            raise SelectionError("At least one translation must stay selected")
        if ids == self._selection:
            return self.selection

        self._generation += 1
        updated = self.store.apply_external({self.field: ids}, token=self._token())
        self._selection = list(getattr(updated, self.field))
        return self.selection

    def close(self) -> None:
        self._unsubscribe()

    def _token(self) -> Tuple[object, int]:
        return (self._source, self._generation)

    def _is_own(self, change: SettingsChange) -> bool:
        return isinstance(change.token, tuple) and len(change.token) == 2 and change.token[0] is self._source

    def _handle_settings_change(self, change: SettingsChange) -> None:
        if self._is_own(change):
            self.echoes_ignored += 1
            return

        values = list(getattr(change.settings, self.field))
        if values == self._selection:
            return

        self.updates_received += 1
        self._selection = values
        logger.debug(f"Selection {self.field} updated from {change.origin} change: {values}")
        if self.on_selection is not None:
            self.on_selection(self.selection)
