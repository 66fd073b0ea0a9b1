"""
Pytest configuration file for fileoverlay tests.
"""
import sys
import pytest
from pathlib import Path

# Add the parent directory to sys.path to allow importing from fileoverlay
sys.path.insert(0, str(Path(__file__).parent.parent))

from fileoverlay.io.storage_backend import DiskStorageBackend, MemoryStorageBackend
from fileoverlay.io.overlay_provider import OverlayNamespace

# Define common fixtures that can be used across all tests

@pytest.fixture
def memory_source() -> MemoryStorageBackend:
    """Provides a clean in-memory source namespace for each test."""
    return MemoryStorageBackend()

@pytest.fixture
def source_dir(tmp_path) -> Path:
    """Directory backing a disk source namespace."""
    directory = tmp_path / "wwwroot"
    directory.mkdir()
    return directory

@pytest.fixture
def disk_source(source_dir):
    """Provides a DiskStorageBackend over source_dir; stops its observer afterwards."""
    backend = DiskStorageBackend(source_dir)
    yield backend
    backend.close()

@pytest.fixture
def staging_dir(tmp_path) -> Path:
    """Caller-owned staging directory, kept apart from the source directory."""
    return tmp_path / "staging"

@pytest.fixture
def memory_overlay(memory_source):
    """OverlayNamespace over memory_source with a namespace-owned staging directory."""
    overlay = OverlayNamespace(memory_source)
    yield overlay
    overlay.teardown()
