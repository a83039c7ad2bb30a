"""Cache key and cache directory derivation.

A cached file lives at::

    [<prefix>/]cache/<width>x<height>/<key>/<c1>/<c2>/<filename>

``key`` hashes the transformation parameters (fixed flags, operation,
engine identity, quality) but not the dimensions, so every size of the
same source and parameters ends up in sibling directories that share the
key segment. ``c1``/``c2`` shard the tree by the filename's first two
characters.
"""

from __future__ import annotations

import hashlib
import os
from typing import Iterable, Optional, Tuple

from .models import CacheKeyParameters, Operation

CACHE_DIR_NAME = "cache"
KEY_SEPARATOR = "|"


def parameters_hash(parameters: Iterable[object]) -> str:
    """Return the 32 character md5 hex digest of the joined parameters."""
    joined = KEY_SEPARATOR.join(str(p) for p in parameters)
    return hashlib.md5(joined.encode("utf-8"), usedforsecurity=False).hexdigest()


def cache_key(operation: Operation, engine: str, quality: int) -> str:
    params = CacheKeyParameters(
        constrain_only="constrainOnly",
        keep_aspect_ratio="keepAspectRatio",
        keep_frame="keepFrame",
        operation=Operation(operation).value,
        engine=engine,
        quality=int(quality),
    )
    return parameters_hash(params)


def shard(filename: str) -> Tuple[str, str]:
    """Return the two shard directory names for ``filename``.

    The second level repeats the first character when the second one is
    missing or is the extension dot, so ``A.jpg`` lands in ``a/a``.
    """
    if not filename:
        raise ValueError("Cannot shard an empty filename")
    first = filename[0].lower()
    if len(filename) > 1 and filename[1] != ".":
        return first, filename[1].lower()
    return first, first


def intermediate_dir(
    width: int,
    height: int,
    key: str,
    filename: str,
    prefix: Optional[str] = None,
) -> str:
    """Build the cache directory of a file, relative to the media root."""
    parts = []
    if prefix:
        parts.append(prefix)
    parts.extend([CACHE_DIR_NAME, f"{width}x{height}", key, *shard(filename)])
    return os.sep.join(parts)
