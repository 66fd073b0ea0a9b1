"""
Utilities for working with namespace paths in fileoverlay.

Namespace paths are relative, '/'-separated identifiers. Callers may spell the
same file as "index.html", "/index.html" or "\\index.html"; these helpers fold
such spellings onto one canonical form so lookups resolve consistently.
"""

from pathlib import Path, PurePosixPath
from typing import Union


def normalize_path(path: Union[str, Path]) -> str:
    """
    Normalize a namespace path.

    Backslashes become forward slashes, leading separators are stripped, and
    empty or '.' segments are dropped. Parent references are resolved when they
    stay inside the namespace root.

    Args:
        path: The path to normalize

    Returns:
        The normalized path ('' for the namespace root)

    Raises:
        ValueError: If the path escapes the namespace root
    """
    if isinstance(path, Path):
        path = path.as_posix()

    parts = []
    for segment in str(path).replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise ValueError(f"Path escapes the namespace root: {path}")
            parts.pop()
            continue
        parts.append(segment)
    return "/".join(parts)


def overlay_key(path: Union[str, Path]) -> str:
    """
    Build the case-insensitive lookup key for a namespace path.

    Args:
        path: The path to convert

    Returns:
        The normalized, case-folded key
    """
    return normalize_path(path).casefold()


def resolve_under(root: Path, path: Union[str, Path]) -> Path:
    """
    Map a namespace path onto a physical location below root.

    Args:
        root: Physical directory backing the namespace
        path: Namespace path

    Returns:
        Absolute physical path

    Raises:
        ValueError: If the path escapes the namespace root
    """
    relative = normalize_path(path)
    if not relative:
        return root
    return root.joinpath(*PurePosixPath(relative).parts)
