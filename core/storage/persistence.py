"""
Versioned, debounced persistence for collection key-spaces.

Each logical store (folders, pinned verses, last-read, memorization,
settings) is a ``VersionedStore`` bound to one storage key. Records are
written as ``{"version": ..., "data": ...}``; loading migrates older
versions and never raises. Saves are debounced so a burst of edits costs a
single physical write of the latest value.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

from .adapters import CorruptRecordError, StorageAdapter, StorageError
from .migrations import MigrationError, SchemaMigrator

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_DEBOUNCE_MS = 300


class SnapshotImportError(ValueError):
    """Raised when an imported envelope is malformed or cannot be migrated"""
    pass


class VersionedStore(Generic[T]):
    """
    Persistence slot for a single key-space.

    Features:
    - Versioned records with migration on load and on import
    - Corrupt or unmigratable records are discarded in favour of defaults
    - Debounced saves that always write the most recent value
    - Storage failures are logged and the session continues in memory
    """

    def __init__(
        self,
        storage: StorageAdapter,
        key: str,
        migrator: SchemaMigrator,
        decode: Callable[[Any], T],
        encode: Callable[[T], Any],
        default_factory: Callable[[], T],
        debounce_ms: int = DEFAULT_DEBOUNCE_MS
    ):
        """
        Initialize the persistence slot.

        Args:
            storage: Key/value substrate
            key: Storage key for this key-space
            migrator: Migration chain for the record's schema
            decode: Converts migrated JSON data to the in-memory value
            encode: Converts the in-memory value to JSON-ready data
            default_factory: Produces the value used when nothing valid is stored
            debounce_ms: Delay before a save reaches storage
        """
        self.storage = storage
        self.key = key
        self.migrator = migrator
        self.decode = decode
        self.encode = encode
        self.default_factory = default_factory
        self.debounce_ms = debounce_ms

        # Debounce state
        self._pending: Optional[T] = None
        self._has_pending = False
        self._timer: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

        # Metrics
        self.writes = 0
        self.failed_writes = 0

    @property
    def version(self) -> str:
        return self.migrator.current_version

    @property
    def has_pending_write(self) -> bool:
        return self._has_pending

    async def load(self) -> T:
        """
        Read, migrate and decode the stored record.

        Returns defaults when the record is absent, unreadable, corrupt or
        tagged with a version that cannot be migrated. Bad records are
        removed so the next start does not trip over them again.
        """
        try:
            raw = await self.storage.read_raw(self.key)
        except CorruptRecordError as e:
            logger.warning(f"Discarding undecodable record {self.key}: {e}")
            await self._discard_record()
            return self.default_factory()
        except StorageError as e:
            logger.warning(f"Storage unavailable for {self.key}, using defaults: {e}")
            return self.default_factory()

        if raw is None:
            return self.default_factory()

        try:
            data, version = self._unwrap(json.loads(raw))
            migrated = self.migrator.migrate(data, version)
            value = self.decode(migrated)
        except (ValueError, TypeError, MigrationError) as e:
            logger.warning(f"Discarding unreadable record {self.key}: {e}")
            await self._discard_record()
            return self.default_factory()

        if self.migrator.needs_migration(version):
            # Persist the migrated form so the migration runs once
            self.save(value)

        logger.debug(f"Loaded {self.key} (version {version or 'unversioned'})")
        return value

    def save(self, value: T) -> None:
        """
        Schedule a debounced write of ``value``.

        Each call replaces the pending value and restarts the delay. Without
        a running event loop the value stays pending until ``flush()``.
        """
        self._pending = value
        self._has_pending = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop; write of {self.key} deferred until flush")
            return

        self._cancel_timer()
        self._timer = loop.create_task(self._write_after_delay(self.debounce_ms / 1000.0))

    async def flush(self) -> None:
        """Write the pending value immediately, if there is one"""
        self._cancel_timer()
        await self._write_pending()

    async def reset(self) -> T:
        """
        Drop the stored record and return defaults.

        A pending write is cancelled first so it cannot resurrect the data.
        """
        self._cancel_timer()
        self._pending = None
        self._has_pending = False
        async with self._write_lock:
            await self._discard_record()
        logger.info(f"Reset {self.key} to defaults")
        return self.default_factory()

    def export_snapshot(self, value: T) -> Dict[str, Any]:
        """Wrap ``value`` in a portable, versioned envelope"""
        return {
            'data': self.encode(value),
            'exportedAt': datetime.now(timezone.utc).isoformat(),
            'version': self.version,
        }

    async def import_snapshot(self, envelope: Any) -> T:
        """
        Validate and migrate an exported envelope, then save it.

        Raises:
            SnapshotImportError: envelope is malformed, its version cannot be
                migrated, or its data does not validate
        """
        value = self.decode_envelope(envelope)
        self.save(value)
        return value

    def decode_envelope(self, envelope: Any) -> T:
        """Validate and migrate an envelope without saving it"""
        if isinstance(envelope, (str, bytes)):
            try:
                envelope = json.loads(envelope)
            except ValueError as e:
                raise SnapshotImportError(f"Import is not valid JSON: {e}") from e

        if not isinstance(envelope, dict) or 'data' not in envelope:
            raise SnapshotImportError("Invalid import format: missing data")

        version = envelope.get('version')
        if version is not None and not isinstance(version, str):
            raise SnapshotImportError(f"Invalid import version: {version!r}")

        try:
            migrated = self.migrator.migrate(envelope['data'], version)
            return self.decode(migrated)
        except MigrationError as e:
            raise SnapshotImportError(f"Cannot migrate import for {self.key}: {e}") from e
        except (ValueError, TypeError) as e:
            raise SnapshotImportError(f"Invalid data for {self.key}: {e}") from e

    def _unwrap(self, record: Any) -> Tuple[Any, Optional[str]]:
        """Split a stored record into data and version; bare JSON is unversioned"""
        if isinstance(record, dict) and 'data' in record and 'version' in record:
            version = record['version']
            if not isinstance(version, str):
                raise MigrationError(f"Invalid version tag: {version!r}")
            return record['data'], version
        return record, None

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _write_after_delay(self, delay_seconds: float) -> None:
        try:
            await asyncio.sleep(delay_seconds)
        except asyncio.CancelledError:
            return
        self._timer = None
        await self._write_pending()

    async def _write_pending(self) -> None:
        if not self._has_pending:
            return

        value = self._pending
        self._pending = None
        self._has_pending = False

        async with self._write_lock:
            try:
                record = {"version": self.version, "data": self.encode(value)}
                await self.storage.write_raw(self.key, json.dumps(record, ensure_ascii=False))
                self.writes += 1
                logger.debug(f"Persisted {self.key}")
            except (StorageError, TypeError, ValueError) as e:
                self.failed_writes += 1
                logger.error(f"Failed to persist {self.key}, keeping changes in memory only: {e}")

    async def _discard_record(self) -> None:
        try:
            await self.storage.remove_raw(self.key)
        except StorageError as e:
            logger.warning(f"Failed to clear record {self.key}: {e}")
