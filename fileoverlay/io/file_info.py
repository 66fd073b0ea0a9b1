"""
File handles returned by namespace lookups.

A FileInfo is a snapshot of one path's metadata (existence, length, last
modified time) plus a way to open its content. Lookups never raise for missing
files; they return a handle whose ``exists`` is False instead.
"""

import io
import logging
import os
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def ns_to_datetime(mtime_ns: int) -> datetime:
    """Convert a nanosecond timestamp to an aware UTC datetime (microsecond precision)."""
    return EPOCH + timedelta(microseconds=mtime_ns // 1000)


def datetime_to_ns(value: datetime) -> int:
    """Convert a datetime to a nanosecond timestamp; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return ((value - EPOCH) // _MICROSECOND) * 1000


def utc_now() -> datetime:
    """Current time truncated to the precision timestamps are stored with."""
    return ns_to_datetime(datetime_to_ns(datetime.now(timezone.utc)))


class FileInfo:
    """Base class for file handles; describes a path that does not exist."""

    def __init__(self, name: str):
        self.name = name

    @property
    def exists(self) -> bool:
        return False

    @property
    def is_directory(self) -> bool:
        return False

    @property
    def length(self) -> int:
        return -1

    @property
    def last_modified(self) -> Optional[datetime]:
        return None

    @property
    def physical_path(self) -> Optional[Path]:
        """Location on disk, or None for handles not backed by a physical file."""
        return None

    def open_read(self) -> BinaryIO:
        raise FileNotFoundError(f"File does not exist: {self.name}")

    def __repr__(self):
        return (f"{type(self).__name__}(name={self.name!r}, exists={self.exists}, "
                f"length={self.length}, last_modified={self.last_modified})")


class NotFoundFileInfo(FileInfo):
    """Handle for a path that has no file behind it."""


class PhysicalFileInfo(FileInfo):
    """
    Handle for a file or directory on the local disk.

    Metadata is captured once, when the handle is created. If the file cannot
    be stat'ed (vanished, permission denied) the handle reports that it does
    not exist.
    """

    def __init__(self, path: Path, name: Optional[str] = None):
        super().__init__(name or path.name)
        self._path = path
        try:
            self._stat: Optional[os.stat_result] = path.stat()
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
            self._stat = None

    @property
    def exists(self) -> bool:
        return self._stat is not None

    @property
    def is_directory(self) -> bool:
        return self._stat is not None and stat.S_ISDIR(self._stat.st_mode)

    @property
    def length(self) -> int:
        if self._stat is None or self.is_directory:
            return -1
        return self._stat.st_size

    @property
    def last_modified(self) -> Optional[datetime]:
        if self._stat is None:
            return None
        return ns_to_datetime(self._stat.st_mtime_ns)

    @property
    def physical_path(self) -> Optional[Path]:
        return self._path if self._stat is not None else None

    def open_read(self) -> BinaryIO:
        if not self.exists or self.is_directory:
            raise FileNotFoundError(f"File does not exist: {self._path}")
        return open(self._path, "rb")


class MemoryFileInfo(FileInfo):
    """Handle for content held in memory; the bytes are shared, never copied."""

    def __init__(self, name: str, data: bytes, last_modified: datetime):
        super().__init__(name)
        self._data = data
        self._last_modified = last_modified

    @property
    def exists(self) -> bool:
        return True

    @property
    def length(self) -> int:
        return len(self._data)

    @property
    def last_modified(self) -> Optional[datetime]:
        return self._last_modified

    def open_read(self) -> BinaryIO:
        return io.BytesIO(self._data)


class MemoryDirectoryInfo(FileInfo):
    """Handle for a directory implied by the paths stored in a memory namespace."""

    @property
    def exists(self) -> bool:
        return True

    @property
    def is_directory(self) -> bool:
        return True

    def open_read(self) -> BinaryIO:
        raise IsADirectoryError(f"Cannot read a directory: {self.name}")


class DirectoryContents:
    """The entries of one directory in a namespace."""

    def __init__(self, entries: Optional[Iterable[FileInfo]] = None, exists: bool = True):
        self._entries: List[FileInfo] = list(entries or [])
        self.exists = exists

    @classmethod
    def not_found(cls) -> 'DirectoryContents':
        return cls(exists=False)

    def __iter__(self) -> Iterator[FileInfo]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> List[str]:
        return [entry.name for entry in self._entries]
