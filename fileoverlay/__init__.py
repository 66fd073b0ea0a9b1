"""fileoverlay: serve transformed copies of selected files while keeping their caching metadata."""

__version__ = "1.0.0"

from fileoverlay.io import (
    DiskStorageBackend,
    MemoryStorageBackend,
    OverlayConfig,
    OverlayFile,
    OverlayNamespace,
)
from fileoverlay.transforms import with_base_href_rewrite

__all__ = [
    'DiskStorageBackend',
    'MemoryStorageBackend',
    'OverlayConfig',
    'OverlayFile',
    'OverlayNamespace',
    'with_base_href_rewrite',
]
