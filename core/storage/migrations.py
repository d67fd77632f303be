"""
Versioned schema migrations for persisted records.

Each key-space declares its current schema version and an ordered chain of
steps. Records written before versioning existed carry no version tag and
are treated as the oldest known version.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.collections import now_ms

logger = logging.getLogger(__name__)

COLLECTIONS_SCHEMA_VERSION = "2.0"
SETTINGS_SCHEMA_VERSION = "1.0"
LEGACY_VERSION = "1.0"

# Fields that version 1.0 stored directly on the bookmark record
ENRICHMENT_FIELDS = ('verseKey', 'verseText', 'translation', 'surahName', 'verseApiId')


class MigrationError(Exception):
    """Raised when a record cannot be brought to the current schema"""
    pass


@dataclass(frozen=True)
class MigrationStep:
    """Transforms record data from one schema version to the next"""
    from_version: str
    to_version: str
    apply: Callable[[Any], Any]


class SchemaMigrator:
    """Runs the migration chain for one key-space"""

    def __init__(
        self,
        current_version: str,
        steps: Sequence[MigrationStep] = (),
        legacy_version: str = LEGACY_VERSION
    ):
        self.current_version = current_version
        self.legacy_version = legacy_version
        self._steps: Dict[str, MigrationStep] = {step.from_version: step for step in steps}

    @property
    def known_versions(self) -> List[str]:
        return sorted(set(self._steps) | {self.current_version})

    def needs_migration(self, version: Optional[str]) -> bool:
        return (version or self.legacy_version) != self.current_version

    def migrate(self, data: Any, version: Optional[str]) -> Any:
        """
        Bring ``data`` tagged with ``version`` to the current schema.

        Raises:
            MigrationError: unknown version, a cycle in the chain, or a
                failing step
        """
        version = version or self.legacy_version
        visited = set()

        while version != self.current_version:
            if version in visited:
                raise MigrationError(f"Migration cycle detected at version {version}")
            visited.add(version)

            step = self._steps.get(version)
            if step is None:
                raise MigrationError(
                    f"No migration from version {version!r} to {self.current_version!r}"
                )

            try:
                data = step.apply(data)
            except MigrationError:
                raise
            except Exception as e:
                raise MigrationError(
                    f"Migration {step.from_version} -> {step.to_version} failed: {e}"
                ) from e

            logger.info(f"Migrated record from {step.from_version} to {step.to_version}")
            version = step.to_version

        return data


# Collections 1.0 -> 2.0

def _lift_bookmark(raw: Any) -> Optional[Dict[str, Any]]:
    """Move flat enrichment fields into the nested metadata struct"""
    if isinstance(raw, str):
        return {'verseId': raw, 'metadata': {}}
    if not isinstance(raw, dict):
        return None
    if raw.get('verseId') in (None, ''):
        logger.warning(f"Dropping bookmark record without verseId: {raw}")
        return None

    record = {key: value for key, value in raw.items() if key not in ENRICHMENT_FIELDS}
    metadata = dict(record.get('metadata') or {})
    for field in ENRICHMENT_FIELDS:
        if raw.get(field) is not None:
            metadata.setdefault(field, raw[field])
    record['metadata'] = metadata
    return record


def _lift_bookmarks(raw_list: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw_list, list):
        raise MigrationError(f"Expected a list of bookmarks, got {type(raw_list).__name__}")
    lifted = (_lift_bookmark(item) for item in raw_list)
    return [item for item in lifted if item is not None]


def migrate_folders_v1(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, list):
        raise MigrationError(f"Expected a list of folders, got {type(data).__name__}")
    folders = []
    for raw in data:
        if not isinstance(raw, dict):
            logger.warning(f"Dropping malformed folder record: {raw!r}")
            continue
        folder = dict(raw)
        folder['bookmarks'] = _lift_bookmarks(raw.get('bookmarks') or [])
        folders.append(folder)
    return folders


def migrate_pinned_v1(data: Any) -> List[Dict[str, Any]]:
    return _lift_bookmarks(data)


def migrate_last_read_v1(data: Any) -> Dict[str, Dict[str, Any]]:
    """Bare verse numbers become LastReadEntry records"""
    if not isinstance(data, dict):
        raise MigrationError(f"Expected a chapter mapping, got {type(data).__name__}")
    entries = {}
    for chapter_id, value in data.items():
        if isinstance(value, dict):
            entries[str(chapter_id)] = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 1:
            entries[str(chapter_id)] = {'verseNumber': int(value)}
        else:
            logger.warning(f"Dropping last-read entry for chapter {chapter_id}: {value!r}")
    return entries


def migrate_memorization_v1(data: Any) -> Dict[str, Dict[str, Any]]:
    """Older plans carried ``planName`` instead of ``notes``"""
    if not isinstance(data, dict):
        raise MigrationError(f"Expected a plan mapping, got {type(data).__name__}")
    plans = {}
    for key, raw in data.items():
        if not isinstance(raw, dict):
            continue
        plan = {k: v for k, v in raw.items() if k != 'planName'}
        if not plan.get('notes') and raw.get('planName'):
            plan['notes'] = raw['planName']
        plans[str(key)] = plan
    return plans


def migrate_legacy_bookmark_list(
    verse_ids: Any,
    folder_id: str,
    name: str = "Uncategorized"
) -> List[Dict[str, Any]]:
    """
    Convert the pre-folder bookmark list (plain verse id strings) into a
    single folder record in the current schema.
    """
    if not isinstance(verse_ids, list) or not all(isinstance(v, str) for v in verse_ids):
        raise MigrationError("Legacy bookmarks must be a list of verse id strings")
    created_at = now_ms()
    return [{
        'id': folder_id,
        'name': name,
        'createdAt': created_at,
        'bookmarks': [
            {'verseId': verse_id, 'createdAt': created_at, 'metadata': {}}
            for verse_id in verse_ids
        ],
    }]


def _step(apply: Callable[[Any], Any]) -> List[MigrationStep]:
    return [MigrationStep(LEGACY_VERSION, COLLECTIONS_SCHEMA_VERSION, apply)]


FOLDERS_MIGRATOR = SchemaMigrator(COLLECTIONS_SCHEMA_VERSION, _step(migrate_folders_v1))
PINNED_MIGRATOR = SchemaMigrator(COLLECTIONS_SCHEMA_VERSION, _step(migrate_pinned_v1))
LAST_READ_MIGRATOR = SchemaMigrator(COLLECTIONS_SCHEMA_VERSION, _step(migrate_last_read_v1))
MEMORIZATION_MIGRATOR = SchemaMigrator(COLLECTIONS_SCHEMA_VERSION, _step(migrate_memorization_v1))
SETTINGS_MIGRATOR = SchemaMigrator(SETTINGS_SCHEMA_VERSION)
