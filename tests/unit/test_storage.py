"""Tests for the filesystem storage adapter."""

import pytest

from companion.core.constants import MANIFEST_FILE
from companion.memory.storage import FileSystemStorage
from companion.utils.exceptions import CorruptRecordError, StorageError


class TestFileSystemStorage:
    """Test FileSystemStorage primitives."""

    def test_write_creates_parents(self, temp_dir):
        storage = FileSystemStorage(temp_dir)
        storage.write("a/b/c.txt", "héllo")

        assert storage.read("a/b/c.txt") == "héllo"
        assert storage.list("a/b") == ["c.txt"]

    def test_read_missing_raises_with_path(self, temp_dir):
        storage = FileSystemStorage(temp_dir)
        with pytest.raises(StorageError) as exc_info:
            storage.read("missing.json")
        assert exc_info.value.path.endswith("missing.json")

    def test_delete(self, temp_dir):
        storage = FileSystemStorage(temp_dir)
        storage.write("x.txt", "x")
        storage.delete("x.txt")

        assert not storage.exists("x.txt")
        with pytest.raises(StorageError):
            storage.delete("x.txt")


class TestManifest:
    """Test manifest creation and upkeep."""

    def test_initialize_structure_is_idempotent(self, storage):
        created = storage.read_manifest().created_at
        storage.initialize_structure()
        assert storage.read_manifest().created_at == created

    def test_update_manifest(self, storage):
        manifest = storage.update_manifest(total_conversations=3, total_memories=12)

        assert manifest.total_conversations == 3
        reread = storage.read_manifest()
        assert reread.total_memories == 12
        assert reread.last_updated >= reread.created_at

    def test_corrupt_manifest(self, storage):
        storage.write(MANIFEST_FILE, "nope")
        with pytest.raises(CorruptRecordError):
            storage.read_manifest()

        manifest = storage.update_manifest(total_conversations=1, total_memories=0)
        assert manifest.total_conversations == 1
        assert storage.read_manifest().version == "1.0.0"

    @pytest.mark.parametrize(
        "content",
        [
            '["1.0.0"]',
            '{"version": "1.0.0", "createdAt": 0, "lastUpdated": 0}',
        ],
    )
    def test_wrongly_shaped_manifest_is_recreated(self, storage, content):
        storage.write(MANIFEST_FILE, content)
        with pytest.raises(CorruptRecordError):
            storage.read_manifest()

        manifest = storage.update_manifest(total_conversations=2, total_memories=5)
        assert manifest.total_memories == 5
        assert storage.read_manifest().total_conversations == 2
