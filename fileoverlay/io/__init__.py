# fileoverlay/io/__init__.py
"""
I/O module for fileoverlay.

Provides the namespace interface, its disk and in-memory implementations,
change subscriptions, and the overlay namespace that serves staged,
transformed copies of selected files.
"""

# Direct imports - ImportError will propagate if components are missing
from .types import Transform, ChangeCallback
from .constants import DEFAULT_ENCODING, DEFAULT_STAGING_PREFIX
from .file_info import (
    FileInfo,
    NotFoundFileInfo,
    PhysicalFileInfo,
    MemoryFileInfo,
    DirectoryContents
)
from .change_token import ChangeSubscription, ChangeSubscriptionRegistry
from .storage_backend import (
    FileNamespace,
    DiskStorageBackend,
    MemoryStorageBackend
)
from .storage_config import OverlayConfig
from .overlay import (
    OverlayFile,
    OverlayError,
    SourceFileNotFoundError,
    DuplicateOverlayError,
    OverlayClosedError
)
from .overlay_provider import OverlayNamespace

__all__ = [
    # Types
    'Transform',
    'ChangeCallback',
    # Constants
    'DEFAULT_ENCODING',
    'DEFAULT_STAGING_PREFIX',
    # File handles
    'FileInfo',
    'NotFoundFileInfo',
    'PhysicalFileInfo',
    'MemoryFileInfo',
    'DirectoryContents',
    # Change notification
    'ChangeSubscription',
    'ChangeSubscriptionRegistry',
    # Interfaces
    'FileNamespace',
    # Implementations
    'DiskStorageBackend',
    'MemoryStorageBackend',
    # Configuration
    'OverlayConfig',
    # Overlay
    'OverlayFile',
    'OverlayNamespace',
    # Errors
    'OverlayError',
    'SourceFileNotFoundError',
    'DuplicateOverlayError',
    'OverlayClosedError',
]
