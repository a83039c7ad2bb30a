"""On-demand image resize and crop cache for a media directory.

The package resolves images relative to a media root, derives a stable
cache location for each (source, size, operation, engine, quality)
combination, and generates the transformed file once. See
``mediacrop.helper.ImageCropHelper`` for the entry point.
"""

from .config import MediaSettings
from .errors import CacheDirectoryError, ImageEngineError, MediaCropError
from .helper import ImageCropHelper
from .models import Operation, TransformRequest

__all__ = [
    "CacheDirectoryError",
    "ImageCropHelper",
    "ImageEngineError",
    "MediaCropError",
    "MediaSettings",
    "Operation",
    "TransformRequest",
]
