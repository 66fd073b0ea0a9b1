# fileoverlay/io/storage_backend.py
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Set, Tuple, Union

import logging
import threading

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .change_token import ChangeSubscription, ChangeSubscriptionRegistry
from .constants import CONTENT_EVENT_TYPES
from .file_info import (
    DirectoryContents,
    FileInfo,
    MemoryDirectoryInfo,
    MemoryFileInfo,
    NotFoundFileInfo,
    PhysicalFileInfo,
    utc_now,
)
from .path_utils import normalize_path, resolve_under


logger = logging.getLogger(__name__)


class FileNamespace(ABC):
    """
    Abstract base class for read-only, path-keyed file namespaces.

    Defines the lookup contract shared by source namespaces and the overlay
    built on top of them: look up one file, list one directory, and watch a
    path pattern for changes. Paths are relative to the namespace root and use
    '/' as separator; leading separators are ignored.
    """

    @abstractmethod
    def lookup(self, path: Union[str, Path]) -> FileInfo:
        """
        Look up a file.

        Never raises for missing files; the returned handle reports
        ``exists == False`` instead.
        """
        pass

    @abstractmethod
    def list_directory(self, path: Union[str, Path]) -> DirectoryContents:
        """List the entries of a directory."""
        pass

    @abstractmethod
    def watch(self, pattern: str) -> ChangeSubscription:
        """Subscribe to changes of paths matching a glob pattern."""
        pass

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if a file (not a directory) exists."""
        info = self.lookup(path)
        return info.exists and not info.is_directory

    def read_all(self, path: Union[str, Path]) -> Tuple[bytes, datetime]:
        """
        Read the full content of a file.

        Returns:
            Tuple of (content bytes, last modified time)

        Raises:
            FileNotFoundError: If the file does not exist
        """
        info = self.lookup(path)
        if not info.exists or info.is_directory:
            raise FileNotFoundError(f"File not found: {path}")
        with info.open_read() as stream:
            data = stream.read()
        return data, info.last_modified

    def open_read(self, path: Union[str, Path]) -> BinaryIO:
        """
        Open a file for binary reading.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        info = self.lookup(path)
        if not info.exists or info.is_directory:
            raise FileNotFoundError(f"File not found: {path}")
        return info.open_read()


class _SubscriptionEventHandler(FileSystemEventHandler):
    """Forwards watchdog events for files under a root to a subscription registry."""

    def __init__(self, root: Path, registry: ChangeSubscriptionRegistry):
        super().__init__()
        self.root = root
        self.registry = registry

    def _relative_path(self, raw_path) -> Optional[str]:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode(errors="surrogateescape")
        try:
            return Path(raw_path).relative_to(self.root).as_posix()
        except ValueError:
            return None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CONTENT_EVENT_TYPES:
            return

        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            paths.append(dest_path)

        for raw_path in paths:
            relative = self._relative_path(raw_path)
            if relative is None:
                continue
            logger.debug(f"Filesystem event '{event.event_type}' for {relative}")
            self.registry.notify(relative)


class DiskStorageBackend(FileNamespace):
    """
    Namespace backed by a directory on the local disk.

    Change notifications come from a watchdog observer scheduled recursively on
    the root. The observer is started with the first subscription and stopped
    when the last one is cancelled, or when the backend is closed.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Namespace root is not a directory: {self.root}")
        self._registry = ChangeSubscriptionRegistry(on_empty=self._stop_observer)
        self._observer: Optional[Observer] = None
        self._observer_lock = threading.Lock()
        logger.debug(f"Initialized DiskStorageBackend at {self.root}")

    def _physical_path(self, path: Union[str, Path]) -> Optional[Path]:
        try:
            return resolve_under(self.root, path)
        except ValueError:
            logger.debug(f"Path escapes namespace root {self.root}: {path}")
            return None

    def lookup(self, path: Union[str, Path]) -> FileInfo:
        physical = self._physical_path(path)
        if physical is None:
            return NotFoundFileInfo(str(path))
        info = PhysicalFileInfo(physical)
        if not info.exists:
            return NotFoundFileInfo(physical.name)
        return info

    def list_directory(self, path: Union[str, Path]) -> DirectoryContents:
        physical = self._physical_path(path)
        if physical is None or not physical.is_dir():
            return DirectoryContents.not_found()
        try:
            children = sorted(physical.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.error(f"Error listing directory {physical}: {e}")
            return DirectoryContents.not_found()
        return DirectoryContents(PhysicalFileInfo(child) for child in children)

    def watch(self, pattern: str) -> ChangeSubscription:
        subscription = self._registry.subscribe(pattern)
        self._ensure_observer()
        return subscription

    def _ensure_observer(self) -> None:
        with self._observer_lock:
            if self._observer is not None:
                return
            observer = Observer()
            observer.daemon = True
            observer.schedule(_SubscriptionEventHandler(self.root, self._registry), str(self.root), recursive=True)
            observer.start()
            self._observer = observer
            logger.debug(f"Started filesystem observer for {self.root}")

    def _stop_observer(self) -> None:
        with self._observer_lock:
            observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        # Cancelling from a change callback runs on the observer thread itself
        if threading.current_thread() is not observer:
            observer.join()
        logger.debug(f"Stopped filesystem observer for {self.root}")

    def close(self) -> None:
        """Cancel all subscriptions and stop the observer."""
        self._registry.cancel_all()
        self._stop_observer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class MemoryStorageBackend(FileNamespace):
    """
    In-memory namespace.

    Holds file content as bytes keyed by normalized path; directories are
    implied by the stored paths. Every mutation notifies matching subscriptions
    synchronously, on the thread that made the change.
    """

    def __init__(self):
        self._files: Dict[str, Tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()
        self._registry = ChangeSubscriptionRegistry()
        logger.debug("Initialized MemoryStorageBackend")

    def _directories(self) -> Set[str]:
        directories = {""}
        for key in self._files:
            parts = key.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                directories.add("/".join(parts[:i]))
        return directories

    def save(self, path: Union[str, Path], data: Union[bytes, str], last_modified: Optional[datetime] = None) -> None:
        """
        Store a file, replacing any previous content.

        Args:
            path: Namespace path of the file
            data: Content; text is encoded as UTF-8
            last_modified: Modification time to record (defaults to now)
        """
        key = normalize_path(path)
        if not key:
            raise ValueError("Cannot save a file at the namespace root")
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            self._files[key] = (bytes(data), last_modified or utc_now())
        logger.debug(f"MemoryStorageBackend: Saved {len(data)} bytes to {key}")
        self._registry.notify(key)

    def set_last_modified(self, path: Union[str, Path], last_modified: datetime) -> None:
        """Change the recorded modification time of an existing file."""
        key = normalize_path(path)
        with self._lock:
            if key not in self._files:
                raise FileNotFoundError(f"File not found: {path}")
            self._files[key] = (self._files[key][0], last_modified)
        self._registry.notify(key)

    def delete_file(self, path: Union[str, Path]) -> bool:
        """Delete a file; returns False if it did not exist."""
        key = normalize_path(path)
        with self._lock:
            removed = self._files.pop(key, None)
        if removed is None:
            logger.warning(f"MemoryStorageBackend: File not found for deletion: {key}")
            return False
        logger.debug(f"MemoryStorageBackend: Deleted {key}")
        self._registry.notify(key)
        return True

    def lookup(self, path: Union[str, Path]) -> FileInfo:
        try:
            key = normalize_path(path)
        except ValueError:
            return NotFoundFileInfo(str(path))
        name = key.rsplit("/", 1)[-1]
        with self._lock:
            entry = self._files.get(key)
            is_directory = entry is None and key in self._directories()
        if entry is not None:
            return MemoryFileInfo(name, entry[0], entry[1])
        if is_directory:
            return MemoryDirectoryInfo(name)
        return NotFoundFileInfo(name)

    def list_directory(self, path: Union[str, Path]) -> DirectoryContents:
        try:
            key = normalize_path(path)
        except ValueError:
            return DirectoryContents.not_found()
        prefix = f"{key}/" if key else ""
        with self._lock:
            if key not in self._directories():
                return DirectoryContents.not_found()
            files = {k[len(prefix):]: v for k, v in self._files.items() if k.startswith(prefix)}

        entries: Dict[str, FileInfo] = {}
        for remainder, (data, last_modified) in files.items():
            head, sep, _ = remainder.partition("/")
            if sep:
                entries.setdefault(head, MemoryDirectoryInfo(head))
            else:
                entries[head] = MemoryFileInfo(head, data, last_modified)
        return DirectoryContents(entries[name] for name in sorted(entries))

    def watch(self, pattern: str) -> ChangeSubscription:
        return self._registry.subscribe(pattern)
