"""
Rewriting of the HTML <base href> attribute.

Single-page applications hosted below a path base (e.g. "/myapp") need the
<base href> of their HTML entry points to match the deployment path. These
helpers build an OverlayNamespace that serves rewritten copies of such files.
"""

import functools
import logging
import re
from pathlib import Path
from typing import Optional, Union

from fileoverlay.io.overlay_provider import OverlayNamespace
from fileoverlay.io.storage_backend import FileNamespace
from fileoverlay.io.storage_config import OverlayConfig
from fileoverlay.io.types import Transform

logger = logging.getLogger(__name__)

# Matches <base href="/"> and <base href="/" />, any case, any spacing around '='
BASE_HREF_PATTERN = re.compile(r'<base\s+href\s*=\s*"([^"]*)"\s*/?>', re.IGNORECASE)


def rewrite_base_href(content: str, path_base: Optional[str]) -> str:
    """
    Replace the href of every <base> tag with path_base.

    Args:
        content: HTML text
        path_base: New base path; a trailing '/' is added when missing. If
            empty or None, content is returned unchanged.

    Returns:
        The rewritten HTML
    """
    if not path_base:
        return content

    if not path_base.endswith("/"):
        path_base += "/"

    replacement = f'<base href="{path_base}" />'
    return BASE_HREF_PATTERN.sub(lambda match: replacement, content)


def base_href_transform(path_base: Optional[str]) -> Transform:
    """Build a transform that rewrites <base href> to path_base."""
    return functools.partial(rewrite_base_href, path_base=path_base)


def with_base_href_rewrite(
    source: FileNamespace,
    path_base: Optional[str],
    *file_paths: Union[str, Path],
    auto_refresh: bool = False,
    staging_root: Optional[Union[str, Path]] = None,
    config: Optional[OverlayConfig] = None,
) -> OverlayNamespace:
    """
    Create an overlay namespace that rewrites <base href> in the given HTML files.

    Args:
        source: The namespace to wrap
        path_base: Path base for the base href; if empty or None, the files
            are copied but not modified
        *file_paths: Paths of the HTML files to rewrite, relative to the source root
        auto_refresh: Re-copy and re-transform the files when the source changes,
            useful during development with hot reload
        staging_root: Optional caller-owned staging directory
        config: Optional overlay configuration

    Returns:
        OverlayNamespace with the files materialized and transformed

    Example:
        >>> overlay = with_base_href_rewrite(DiskStorageBackend("wwwroot"), "/myapp", "index.html",
        ...                                  auto_refresh=True)
    """
    overlay = OverlayNamespace(source, staging_root=staging_root, config=config)
    transform = base_href_transform(path_base)

    try:
        for file_path in file_paths:
            overlay.materialize(file_path, auto_refresh=auto_refresh).transform_content(transform)
    except BaseException:
        overlay.teardown()
        raise

    logger.debug(f"Rewrote base href to {path_base!r} in {len(file_paths)} file(s)")
    return overlay
