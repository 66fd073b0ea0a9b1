# fileoverlay/io/constants.py
from typing import FrozenSet

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
)

# Encoding used to decode staged content when it carries no byte order mark
DEFAULT_ENCODING: str = "utf-8"

# Prefix of the temporary staging directory created by an OverlayNamespace
DEFAULT_STAGING_PREFIX: str = "fileoverlay-"

# Suffix of the scratch file written next to a staged file before it is renamed over it
TEMP_FILE_SUFFIX: str = ".tmp"

# Watchdog events that can change file content; opened/closed_no_write are excluded
CONTENT_EVENT_TYPES: FrozenSet[str] = frozenset({
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    EVENT_TYPE_CLOSED,
})
