# flatconf/utils.py
"""
flatconf.utils
--------------

Shared helpers for path handling and flat key manipulation.
Used internally by flatconf and available for downstream consumers.
"""

import os
from pathlib import Path
from typing import Optional

KEY_SEPARATOR = "."


def expand_path(path: Optional[str]) -> Optional[str]:
    """Expand ~ and environment variables in a path string.

    Args:
        path: Path string to expand, or None.

    Returns:
        Expanded path string, or None if input was None.

    Examples:
        >>> expand_path("~/configs/app.yaml")
        '/home/user/configs/app.yaml'
        >>> expand_path("$HOME/.config/app.yaml")
        '/home/user/.config/app.yaml'
    """
    if path is None:
        return None
    return os.path.expandvars(os.path.expanduser(os.fspath(path)))


def resolve_path(path: Optional[str]) -> Optional[Path]:
    """Expand and resolve a path to an absolute Path object.

    Used for labelling where a layer came from, so that provenance entries
    are unambiguous regardless of the working directory.
    """
    expanded = expand_path(path)
    if expanded is None:
        return None
    return Path(expanded).resolve()


def canonical_key(key: str) -> str:
    """Return the canonical (lowercased) form of a flat key."""
    return key.lower()


def join_key(prefix: str, segment) -> str:
    """Append a segment to a flat key path; the root path is the empty string.

    Examples:
        >>> join_key("", "db")
        'db'
        >>> join_key("servers", 0)
        'servers.0'
    """
    segment = str(segment)
    return f"{prefix}{KEY_SEPARATOR}{segment}" if prefix else segment


def is_index(segment: str) -> bool:
    """True if a key segment addresses a list position."""
    return segment.isdigit() and segment.isascii()
