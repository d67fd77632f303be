"""
Tests for key/value storage adapters.

Validates the in-memory adapter and the atomic file-backed adapter.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from core.storage.adapters import CorruptRecordError, JsonFileStorage, MemoryStorage, StorageError


class TestMemoryStorage:
    """Test MemoryStorage"""

    @pytest.mark.asyncio
    async def test_read_write_remove(self):
        storage = MemoryStorage()

        assert await storage.read_raw("k") is None

        await storage.write_raw("k", "value")
        assert await storage.read_raw("k") == "value"
        assert "k" in storage
        assert storage.write_count == 1

        await storage.remove_raw("k")
        await storage.remove_raw("k")
        assert await storage.read_raw("k") is None

    @pytest.mark.asyncio
    async def test_initial_contents(self):
        storage = MemoryStorage({"a": "1"})

        assert await storage.read_raw("a") == "1"
        assert storage.keys() == ["a"]


class TestJsonFileStorage:
    """Test JsonFileStorage"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @pytest.mark.asyncio
    async def test_write_then_read(self):
        storage = JsonFileStorage(self.temp_path / "nested" / "store")

        await storage.write_raw("quran-app-last-read", '{"version": "2.0", "data": {}}')

        path = storage.path_for("quran-app-last-read")
        assert path.exists()
        assert path.name == "quran-app-last-read.json"
        assert await storage.read_raw("quran-app-last-read") == '{"version": "2.0", "data": {}}'
        assert not list(path.parent.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_overwrite_replaces_content(self):
        storage = JsonFileStorage(self.temp_path)

        await storage.write_raw("k", "first")
        await storage.write_raw("k", "second")

        assert await storage.read_raw("k") == "second"

    @pytest.mark.asyncio
    async def test_missing_key_reads_none(self):
        storage = JsonFileStorage(self.temp_path)

        assert await storage.read_raw("absent") is None

    @pytest.mark.asyncio
    async def test_remove_missing_key_is_not_an_error(self):
        storage = JsonFileStorage(self.temp_path)

        await storage.remove_raw("absent")

        await storage.write_raw("k", "v")
        await storage.remove_raw("k")
        assert not storage.path_for("k").exists()

    def test_unsafe_key_characters_are_replaced(self):
        storage = JsonFileStorage(self.temp_path)

        assert storage.path_for("a/b c").name == "a_b_c.json"

    def test_empty_key_rejected(self):
        storage = JsonFileStorage(self.temp_path)

        with pytest.raises(StorageError):
            storage.path_for("..")

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises_corrupt_record_error(self):
        storage = JsonFileStorage(self.temp_path)
        storage.path_for("k").write_bytes(b'\xff\xfe\xfa not utf8')

        with pytest.raises(CorruptRecordError):
            await storage.read_raw("k")

    @pytest.mark.asyncio
    async def test_truncated_record_reads_as_text(self):
        storage = JsonFileStorage(self.temp_path)
        storage.path_for("k").write_text('{"version": "2.0", "da', encoding='utf-8')

        assert await storage.read_raw("k") == '{"version": "2.0", "da'

    @pytest.mark.asyncio
    async def test_write_failure_raises_storage_error(self):
        blocker = self.temp_path / "not-a-directory"
        blocker.write_text("x")
        storage = JsonFileStorage(blocker)

        with pytest.raises(StorageError):
            await storage.write_raw("k", "v")
