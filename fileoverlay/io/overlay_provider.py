"""
Overlay namespace for fileoverlay.

OverlayNamespace wraps a source FileNamespace and serves selected files from
privately staged, transformable copies. Staged copies are real files, so their
size and modification time describe exactly the bytes that will be served,
which is what HTTP caching layers built on top of the namespace rely on.
Everything that is not overlaid resolves straight through to the source.
"""

import glob
import logging
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Set, Union

from .change_token import ChangeSubscription
from .file_info import DirectoryContents, FileInfo, NotFoundFileInfo, PhysicalFileInfo, datetime_to_ns
from .overlay import (
    DuplicateOverlayError,
    OverlayClosedError,
    OverlayFile,
    SourceFileNotFoundError,
    replace_file,
)
from .path_utils import normalize_path, overlay_key, resolve_under
from .storage_backend import FileNamespace
from .storage_config import OverlayConfig

logger = logging.getLogger(__name__)


class OverlayNamespace(FileNamespace):
    """
    A namespace that overlays staged, transformed copies on top of a source namespace.

    Lookups for materialized paths return the staged copy; all other lookups,
    directory listings and watches are delegated to the source unchanged.

    Args:
        source: The namespace to wrap
        staging_root: Directory to stage copies in. A caller-supplied directory
            is never deleted by the namespace. When omitted (and not set in the
            config) a temporary directory is created and removed at teardown.
        config: Overlay configuration; defaults to OverlayConfig()

    Example:
        >>> overlay = OverlayNamespace(DiskStorageBackend("wwwroot"))
        >>> overlay.materialize("index.html", auto_refresh=True).transform_content(
        ...     lambda html: html.replace("{{TITLE}}", "My App"))
        >>> overlay.lookup("index.html").length
    """

    def __init__(
        self,
        source: FileNamespace,
        staging_root: Optional[Union[str, Path]] = None,
        config: Optional[OverlayConfig] = None,
    ):
        self._source = source
        self.config = config or OverlayConfig()

        root = staging_root if staging_root is not None else self.config.staging_root
        if root is None:
            self._staging_root = Path(tempfile.mkdtemp(prefix=self.config.staging_prefix))
            self._owns_staging_root = True
            logger.info(f"Created staging directory {self._staging_root}")
        else:
            self._staging_root = Path(root)
            self._staging_root.mkdir(parents=True, exist_ok=True)
            self._owns_staging_root = False
            logger.info(f"Using caller-owned staging directory {self._staging_root}")

        self._entries: Dict[str, OverlayFile] = {}
        self._subscriptions: Dict[str, ChangeSubscription] = {}
        self._pending: Set[str] = set()
        self._lock = threading.RLock()
        self._torn_down = False

    @property
    def source(self) -> FileNamespace:
        return self._source

    @property
    def staging_root(self) -> Path:
        return self._staging_root

    @property
    def owns_staging_root(self) -> bool:
        """Whether the staging directory is deleted at teardown."""
        return self._owns_staging_root

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    @property
    def overlays(self) -> Dict[str, OverlayFile]:
        """Snapshot of the materialized files, keyed by case-folded normalized path."""
        with self._lock:
            return dict(self._entries)

    def get_overlay(self, path: Union[str, Path]) -> Optional[OverlayFile]:
        """Return the OverlayFile materialized for path, if any."""
        try:
            key = overlay_key(path)
        except ValueError:
            return None
        with self._lock:
            return self._entries.get(key)

    def is_overlayed(self, path: Union[str, Path]) -> bool:
        return self.get_overlay(path) is not None

    def materialize(
        self,
        path: Union[str, Path],
        auto_refresh: Optional[bool] = None,
        preserve_timestamp: Optional[bool] = None,
    ) -> OverlayFile:
        """
        Create a physical copy of a source file in the staging directory.

        Once materialized, lookups of path resolve to the staged copy.

        Args:
            path: Path of the file to overlay, relative to the namespace root
            auto_refresh: Re-copy the source and replay all transforms whenever
                the source changes. Defaults to config.auto_refresh.
            preserve_timestamp: Give the staged copy the source's modification
                time. Defaults to config.preserve_timestamp.

        Returns:
            The OverlayFile, to attach transforms to

        Raises:
            SourceFileNotFoundError: If the source file does not exist
            DuplicateOverlayError: If path has already been materialized
            OverlayClosedError: If the namespace has been torn down
            ValueError: If path is empty or escapes the namespace root
        """
        if auto_refresh is None:
            auto_refresh = self.config.auto_refresh
        if preserve_timestamp is None:
            preserve_timestamp = self.config.preserve_timestamp

        relative = normalize_path(path)
        if not relative:
            raise ValueError("Cannot materialize the namespace root")
        key = relative.casefold()

        with self._lock:
            if self._torn_down:
                raise OverlayClosedError("OverlayNamespace has been torn down")
            if key in self._entries or key in self._pending:
                raise DuplicateOverlayError(f"Path is already materialized: {relative}")
            source_info = self._source.lookup(relative)
            if not source_info.exists or source_info.is_directory:
                raise SourceFileNotFoundError(f"Source file not found: {path}")
            self._pending.add(key)

        entry = OverlayFile(
            relative,
            resolve_under(self._staging_root, relative),
            auto_refresh=auto_refresh,
            preserve_last_modified_time=preserve_timestamp,
            default_encoding=self.config.default_encoding,
        )
        subscription = None
        try:
            # Hold the entry lock so a change delivered during the copy refreshes after it
            with entry.lock:
                if auto_refresh:
                    subscription = self._source.watch(glob.escape(relative))
                    subscription.register_callback(lambda: self._on_source_changed(entry))
                self._copy_from_source(entry, source_info)

            with self._lock:
                if self._torn_down:
                    raise OverlayClosedError("OverlayNamespace was torn down during materialize")
                self._entries[key] = entry
                if subscription is not None:
                    self._subscriptions[key] = subscription
        except BaseException:
            if subscription is not None:
                subscription.cancel()
            raise
        finally:
            with self._lock:
                self._pending.discard(key)

        logger.debug(f"Materialized {relative} -> {entry.overlay_file_path} (auto_refresh={auto_refresh})")
        return entry

    def _copy_from_source(self, entry: OverlayFile, source_info: FileInfo) -> None:
        destination = entry.overlay_file_path
        destination.parent.mkdir(parents=True, exist_ok=True)
        with source_info.open_read() as stream:
            data = stream.read()

        mtime_ns = None
        if entry.preserve_last_modified_time and source_info.last_modified is not None:
            mtime_ns = datetime_to_ns(source_info.last_modified)
        replace_file(destination, data, mtime_ns)

    def _on_source_changed(self, entry: OverlayFile) -> None:
        if self._torn_down:
            return
        entry._refresh(self._source, self._commit_window)

    @contextmanager
    def _commit_window(self) -> Iterator[bool]:
        """Hold the namespace lock and report whether staged files may still be replaced."""
        with self._lock:
            yield not self._torn_down

    def lookup(self, path: Union[str, Path]) -> FileInfo:
        """
        Look up a file, preferring its staged copy.

        Never raises: a staged copy that cannot be read reports that it does
        not exist.
        """
        entry = self.get_overlay(path)
        if entry is None:
            return self._source.lookup(path)
        info = PhysicalFileInfo(entry.overlay_file_path)
        if not info.exists:
            return NotFoundFileInfo(info.name)
        return info

    def list_directory(self, path: Union[str, Path]) -> DirectoryContents:
        return self._source.list_directory(path)

    def watch(self, pattern: str) -> ChangeSubscription:
        return self._source.watch(pattern)

    def teardown(self) -> None:
        """
        Cancel all change subscriptions and remove staged state.

        The staging directory is deleted only if this namespace created it.
        Deletion is best-effort: files that cannot be removed are left behind
        and logged. Calling teardown more than once is a no-op.

        Refreshes already running on other threads are waited for before the
        staging directory is removed, so their scratch files do not outlive it.
        """
        with self._lock:
            if self._torn_down:
                return
            self._torn_down = True
            entries = list(self._entries.values())
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
            self._entries.clear()

        for subscription in subscriptions:
            subscription.cancel()

        # Entry locks are taken without the namespace lock held
        for entry in entries:
            with entry.lock:
                pass

        if self._owns_staging_root:
            shutil.rmtree(self._staging_root, ignore_errors=True)
            if self._staging_root.exists():
                # A materialize still finishing its copy can repopulate the directory
                shutil.rmtree(self._staging_root, ignore_errors=True)
            if self._staging_root.exists():
                logger.warning(f"Could not fully remove staging directory {self._staging_root}")
        logger.info(f"Tore down overlay namespace ({len(subscriptions)} subscriptions cancelled)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()
