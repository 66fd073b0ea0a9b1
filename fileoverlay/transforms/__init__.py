"""Ready-made content transforms for overlay files."""

from .base_href import base_href_transform, rewrite_base_href, with_base_href_rewrite

__all__ = [
    'base_href_transform',
    'rewrite_base_href',
    'with_base_href_rewrite',
]
