"""Exception types raised by the media cache.

A missing source image is not an error and has no exception here: the
helper returns ``None`` for it. Everything below is fatal to the request
and propagates to the caller unchanged.
"""

from __future__ import annotations


class MediaCropError(Exception):
    """Base class for media cache failures."""


class CacheDirectoryError(MediaCropError, OSError):
    """The cache directory could not be created."""


class ImageEngineError(MediaCropError, RuntimeError):
    """The pixel engine failed to decode, transform or encode an image."""
