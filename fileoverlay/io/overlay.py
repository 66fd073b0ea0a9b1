"""
Overlay files for fileoverlay.

An OverlayFile is a physical, privately staged copy of one source file. Its
content can be rewritten by an ordered pipeline of transforms. The pipeline is
kept for the lifetime of the file so it can be replayed from fresh source
content whenever the source changes.

All rewrites of the staged file go through a scratch file in the same
directory that is renamed over the target, so a reader opening the staged file
sees either the old or the new content, never a partial write.
"""

import logging
import os
import tempfile
import threading
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING, Callable, ContextManager, List, Optional, Tuple

from .constants import DEFAULT_ENCODING, TEMP_FILE_SUFFIX
from .encoding import decode_text
from .file_info import datetime_to_ns
from .types import Transform

if TYPE_CHECKING:
    from .storage_backend import FileNamespace

logger = logging.getLogger(__name__)

# Provided by the owning namespace: holds its lock and yields whether it is still alive
CommitWindow = Callable[[], ContextManager[bool]]


class OverlayError(Exception):
    """Base class for overlay errors."""
    pass


class SourceFileNotFoundError(OverlayError, FileNotFoundError):
    """Raised when materializing a path that does not exist in the source namespace."""
    pass


class DuplicateOverlayError(OverlayError, ValueError):
    """Raised when a path is materialized twice in the same namespace."""
    pass


class OverlayClosedError(OverlayError, RuntimeError):
    """Raised when an overlay namespace is used after teardown."""
    pass


def replace_file(
    target: Path,
    data: bytes,
    mtime_ns: Optional[int] = None,
    commit_window: Optional[CommitWindow] = None,
) -> bool:
    """
    Atomically replace target with data.

    The data is written to a scratch file next to target, the modification
    time applied to it, and the scratch file renamed over target.

    Args:
        target: File to replace
        data: New content
        mtime_ns: Modification time to give the new file, or None to keep "now"
        commit_window: Optional guard; when it yields False the rename is skipped

    Returns:
        True if target was replaced, False if the commit window refused it

    Raises:
        OSError: If writing or renaming fails; the scratch file is removed
    """
    fd, scratch = tempfile.mkstemp(prefix=f".{target.name}.", suffix=TEMP_FILE_SUFFIX, dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        if mtime_ns is not None:
            os.utime(scratch, ns=(mtime_ns, mtime_ns))

        if commit_window is None:
            os.replace(scratch, target)
            return True
        with commit_window() as alive:
            if not alive:
                os.unlink(scratch)
                return False
            os.replace(scratch, target)
            return True
    except BaseException:
        with suppress(OSError):
            os.unlink(scratch)
        raise


class OverlayFile:
    """
    Represents a source file copied into a staging directory so it can be transformed.

    Instances are created by OverlayNamespace.materialize(); the staged file at
    ``overlay_file_path`` belongs to this object and must not be modified from
    outside.

    Transforms may be added from any thread, but the pipeline of one file is
    expected to have a single writer. Mutations of one file (transforms and
    refreshes) are serialized by a per-file lock.
    """

    def __init__(
        self,
        relative_file_path: str,
        overlay_file_path: Path,
        auto_refresh: bool = False,
        preserve_last_modified_time: bool = True,
        default_encoding: str = DEFAULT_ENCODING,
    ):
        self._relative_file_path = relative_file_path
        self._overlay_file_path = Path(overlay_file_path)
        self._auto_refresh = auto_refresh
        self._preserve_last_modified_time = preserve_last_modified_time
        self._default_encoding = default_encoding
        self._transforms: List[Transform] = []
        self._lock = threading.RLock()

    @property
    def relative_file_path(self) -> str:
        """Path of the file relative to the namespace root."""
        return self._relative_file_path

    @property
    def overlay_file_path(self) -> Path:
        """Absolute path of the staged copy."""
        return self._overlay_file_path

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def preserve_last_modified_time(self) -> bool:
        return self._preserve_last_modified_time

    @property
    def lock(self) -> threading.RLock:
        """
        Reentrant lock serializing writes to the staged copy.

        Held for the whole of every transform and refresh. Holding it keeps
        the staged file stable; a refresh triggered meanwhile waits for it.
        """
        return self._lock

    @property
    def transforms(self) -> Tuple[Transform, ...]:
        """The transform pipeline, in the order it is applied."""
        with self._lock:
            return tuple(self._transforms)

    def transform_content(self, transform: Transform) -> 'OverlayFile':
        """
        Transform the staged content and record the transform for replay.

        The transform receives the current staged content, so successive
        transforms compose on each other's output. The result is written back
        with the encoding the content was read with. When timestamps are
        preserved, the staged file keeps its modification time.

        Args:
            transform: Function mapping the file's text content to new content

        Returns:
            This OverlayFile, so calls can be chained

        Raises:
            TypeError: If transform is not callable
        """
        if not callable(transform):
            raise TypeError(f"transform must be callable, got {type(transform).__name__}")

        with self._lock:
            self._transforms.append(transform)
            try:
                mtime_ns = self._overlay_file_path.stat().st_mtime_ns
                decoded = decode_text(self._overlay_file_path.read_bytes(), self._default_encoding)
                data = decoded.encode(transform(decoded.text))
                replace_file(
                    self._overlay_file_path,
                    data,
                    mtime_ns if self._preserve_last_modified_time else None,
                )
            except BaseException:
                self._transforms.pop()
                raise
        logger.debug(f"Applied transform to {self._relative_file_path} ({len(data)} bytes)")
        return self

    def _render(self, data: bytes) -> bytes:
        """Replay the whole pipeline, in order, over raw source content."""
        decoded = decode_text(data, self._default_encoding)
        text = decoded.text
        for transform in self.transforms:
            text = transform(text)
        return decoded.encode(text)

    def _refresh(self, source: 'FileNamespace', commit_window: CommitWindow) -> bool:
        """
        Re-derive the staged file from the current source content.

        Called from the owning namespace's change subscription. Failures are
        logged and swallowed; the staged file then keeps its previous content.

        Returns:
            True if new content was committed
        """
        with self._lock:
            try:
                with commit_window() as alive:
                    if not alive:
                        logger.debug(f"Skipped refresh of {self._relative_file_path}: namespace torn down")
                        return False
                if not source.exists(self._relative_file_path):
                    logger.debug(f"Source of {self._relative_file_path} no longer exists; keeping staged copy")
                    return False
                data, last_modified = source.read_all(self._relative_file_path)
                mtime_ns = None
                if self._preserve_last_modified_time and last_modified is not None:
                    mtime_ns = datetime_to_ns(last_modified)
                committed = replace_file(self._overlay_file_path, self._render(data), mtime_ns, commit_window)
            except Exception as e:
                logger.warning(f"Refresh of {self._relative_file_path} failed, keeping previous content: {e}")
                return False

        if committed:
            logger.debug(f"Refreshed {self._relative_file_path} from source")
        else:
            logger.debug(f"Skipped refresh of {self._relative_file_path}: namespace torn down")
        return committed

    def __repr__(self):
        return (f"OverlayFile(path={self._relative_file_path!r}, staged={str(self._overlay_file_path)!r}, "
                f"auto_refresh={self._auto_refresh}, transforms={len(self.transforms)})")
