"""Filesystem and URL helpers for the media area.

Source images and generated cache files both live under a single media
root. This module turns media-relative references into absolute paths,
creates cache directories, and builds the public URLs handed back to
callers. URLs always use forward slashes, whatever the host separator.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional, Union

from .errors import CacheDirectoryError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

# Suffixes of temp files written next to a cache file before it is renamed into place.
PARTIAL_SUFFIXES = (".tmp", ".part")


def resolve_source(media_dir: PathLike, relative_path: str) -> Optional[Path]:
    """Resolve a media-relative image reference to an absolute path.

    Args:
        media_dir: The media root directory.
        relative_path: Path relative to the media root, optionally with a
            leading separator.

    Returns:
        The absolute path, or None if the reference points outside the
        media root.
    """
    root = Path(os.path.abspath(media_dir))
    candidate = Path(os.path.normpath(root / relative_path.lstrip("/\\")))
    if candidate != root and root not in candidate.parents:
        logger.warning("Rejected image path outside media root: %s", relative_path)
        return None
    return candidate


def image_basename(path: PathLike) -> str:
    return os.path.basename(os.fspath(path))


def ensure_dir(path: PathLike) -> None:
    """Create ``path`` and any missing parents.

    A directory that already exists, including one created concurrently by
    another request, counts as success.

    Raises:
        CacheDirectoryError: If the directory could not be created.
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        raise CacheDirectoryError(
            exc.errno, f"Could not create cache directory {path}: {exc.strerror or exc}"
        ) from exc


def filter_url(url: str, sep: str = os.sep) -> str:
    """Rewrite backslashes to slashes when the host separator is a backslash."""
    if sep == "\\":
        url = url.replace("\\", "/")
    return url


def build_url(media_url: str, intermediate_dir: str, filename: str, sep: str = os.sep) -> str:
    """Compose the public URL of a cached file.

    Args:
        media_url: Base URL the media root is served under.
        intermediate_dir: Cache directory relative to the media root.
        filename: Name of the cached file.
        sep: Host path separator used to build ``intermediate_dir``.

    Returns:
        A URL with forward slashes only.
    """
    return filter_url(f"{media_url}{intermediate_dir}/{filename}", sep=sep)


def is_partial_file(path: Path) -> bool:
    """True for temp files left by an interrupted save."""
    return path.name.startswith(".") and path.suffix in PARTIAL_SUFFIXES


def remove_partial_files(root: PathLike, max_age: float = 3600.0, now: Optional[float] = None) -> int:
    """Delete interrupted-save temp files under ``root`` older than ``max_age`` seconds.

    Finished cache files are never touched. Files younger than ``max_age``
    may still be in flight and are left alone.

    Returns:
        The number of files removed.
    """
    root = Path(root)
    if not root.is_dir():
        return 0
    cutoff = (time.time() if now is None else now) - max_age
    removed = 0
    for path in root.rglob(".*"):
        if not is_partial_file(path) or not path.is_file():
            continue
        try:
            if path.stat().st_mtime > cutoff:
                continue
            path.unlink()
        except FileNotFoundError:
            continue
        removed += 1
    if removed:
        logger.info("Removed %s partial cache file(s) under %s", removed, root)
    return removed
