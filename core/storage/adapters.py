"""
Durable key/value storage adapters.

A flat string key/value substrate. ``JsonFileStorage`` keeps one file per
key inside a directory and writes atomically; ``MemoryStorage`` keeps
everything in a dict and is used for tests and offline sessions.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage substrate cannot serve a request"""
    pass


class CorruptRecordError(StorageError):
    """Raised when a stored record exists but cannot be decoded as text"""
    pass


class StorageAdapter(ABC):
    """Contract for a persistent string key/value substrate"""

    @abstractmethod
    async def read_raw(self, key: str) -> Optional[str]:
        """Return the stored string for ``key`` or None when absent"""

    @abstractmethod
    async def write_raw(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value"""

    @abstractmethod
    async def remove_raw(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error"""


class MemoryStorage(StorageAdapter):
    """In-memory adapter; contents are lost when the process exits"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.write_count = 0

    async def read_raw(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def write_raw(self, key: str, value: str) -> None:
        self._data[key] = value
        self.write_count += 1

    async def remove_raw(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStorage(StorageAdapter):
    """
    File-backed adapter storing each key as ``<storage_dir>/<key>.json``.

    Writes go to a temporary file first and are renamed into place, so a
    crash mid-write never leaves a truncated record behind.
    """

    _UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')

    def __init__(self, storage_dir: Path):
        self.storage_dir = Path(storage_dir)
        self._lock = asyncio.Lock()
        logger.info(f"Initialized JsonFileStorage at {self.storage_dir}")

    def path_for(self, key: str) -> Path:
        """Map a storage key to its file path"""
        safe_key = self._UNSAFE_CHARS.sub('_', key)
        if not safe_key.strip('._'):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.storage_dir / f"{safe_key}.json"

    async def read_raw(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                return await f.read()
        except UnicodeDecodeError as e:
            raise CorruptRecordError(f"Record {path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    async def write_raw(self, key: str, value: str) -> None:
        path = self.path_for(key)
        temp_path = path.with_suffix('.tmp')
        async with self._lock:
            try:
                self.storage_dir.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(temp_path, 'w', encoding='utf-8') as f:
                    await f.write(value)
                temp_path.replace(path)
            except OSError as e:
                raise StorageError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Wrote {len(value)} bytes to {path}")

    async def remove_raw(self, key: str) -> None:
        path = self.path_for(key)
        async with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to remove {path}: {e}") from e
