"""Pytest configuration and fixtures for Companion tests."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from companion.config.settings import LoggingSettings, MemorySettings, Settings
from companion.memory.coordinator import MemoryCoordinator
from companion.memory.storage import FileSystemStorage


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store_dir(temp_dir: Path) -> Path:
    """Root of a fresh memory store."""
    return temp_dir / "memory"


@pytest.fixture
def test_settings(store_dir: Path) -> Settings:
    """Create test settings pointing at a temporary store."""
    return Settings(
        memory=MemorySettings(storage_path=str(store_dir)),
        logging=LoggingSettings(level="DEBUG"),
    )


@pytest.fixture
def storage(store_dir: Path) -> FileSystemStorage:
    """Filesystem storage with the standard layout created."""
    storage = FileSystemStorage(store_dir)
    storage.initialize_structure()
    return storage


@pytest.fixture
def coordinator(test_settings: Settings) -> MemoryCoordinator:
    """Ready memory coordinator over a temporary store."""
    return MemoryCoordinator.initialize(test_settings, user_id="alice", project="core")
