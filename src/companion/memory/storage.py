"""Filesystem storage adapter for the memory store.

All paths handed to the adapter are relative to the store root. Writes
replace the whole file in place; a crash mid-write can leave a truncated
file behind.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Union

from loguru import logger

from companion.core.constants import MANIFEST_FILE, MANIFEST_VERSION, STORE_DIRECTORIES
from companion.core.models import MemoryManifest
from companion.utils.exceptions import CorruptRecordError, StorageError


class FileSystemStorage:
    """Local-disk persistence rooted at a single directory."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path).resolve()

    def full_path(self, relative_path: str) -> Path:
        return self.base_path / relative_path

    def read(self, relative_path: str) -> str:
        path = self.full_path(relative_path)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError("Failed to read file", str(path)) from e

    def write(self, relative_path: str, content: str) -> None:
        path = self.full_path(relative_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError("Failed to write file", str(path)) from e

    def exists(self, relative_path: str) -> bool:
        return self.full_path(relative_path).exists()

    def mkdir(self, relative_path: str) -> None:
        path = self.full_path(relative_path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("Failed to create directory", str(path)) from e

    def delete(self, relative_path: str) -> None:
        path = self.full_path(relative_path)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError("Failed to delete file", str(path)) from e

    def list(self, relative_path: str) -> List[str]:
        """List entry names (files and directories) in a directory."""
        path = self.full_path(relative_path)
        try:
            return [entry.name for entry in path.iterdir()]
        except OSError as e:
            raise StorageError("Failed to list directory", str(path)) from e

    def initialize_structure(self) -> None:
        """Create the standard sub-directories and the manifest if absent."""
        for directory in STORE_DIRECTORIES:
            self.mkdir(directory)

        if not self.exists(MANIFEST_FILE):
            self.write_manifest(MemoryManifest(version=MANIFEST_VERSION))
            logger.info(f"Created memory store at {self.base_path}")

    def read_manifest(self) -> MemoryManifest:
        try:
            return MemoryManifest.from_dict(json.loads(self.read(MANIFEST_FILE)))
        except (ValueError, KeyError, TypeError) as e:
            raise CorruptRecordError("Unreadable manifest", str(self.full_path(MANIFEST_FILE))) from e

    def write_manifest(self, manifest: MemoryManifest) -> None:
        self.write(MANIFEST_FILE, json.dumps(manifest.to_dict(), indent=2))

    def update_manifest(self, total_conversations: int, total_memories: int) -> MemoryManifest:
        """Refresh the manifest counters, recreating it if it was damaged."""
        try:
            manifest = self.read_manifest()
        except StorageError as e:
            logger.warning(f"Recreating manifest: {e}")
            manifest = MemoryManifest(version=MANIFEST_VERSION)

        manifest.total_conversations = total_conversations
        manifest.total_memories = total_memories
        manifest.last_updated = datetime.now()
        self.write_manifest(manifest)
        return manifest
