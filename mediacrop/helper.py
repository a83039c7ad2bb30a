"""Resize and crop images on demand, caching the result under the media root.

``ImageCropHelper.resize`` and ``ImageCropHelper.crop`` take a path
relative to the media root and return the public URL of the transformed
image, or ``None`` when the source image does not exist. The first call
for a given source and set of parameters generates the file; later calls
find it on disk and return immediately.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from . import cache, image_ops, storage
from .config import MediaSettings
from .models import Operation, TransformRequest

logger = logging.getLogger(__name__)


class ImageCropHelper:
    """Cached image transformations for one media root.

    ``prefix`` and ``quality`` act as defaults for subsequent calls. Each
    call snapshots them into an immutable ``TransformRequest``.
    """

    def __init__(self, settings: Optional[MediaSettings] = None) -> None:
        self.settings = settings or MediaSettings.from_env()
        self._prefix = self.settings.prefix
        self._quality = self.settings.quality

    @property
    def prefix(self) -> Optional[str]:
        return self._prefix

    @prefix.setter
    def prefix(self, value: Optional[str]) -> None:
        self._prefix = value

    @property
    def quality(self) -> int:
        return self._quality

    @quality.setter
    def quality(self, value: Union[int, str]) -> None:
        self._quality = int(value)

    def resize(self, image_relative_path: str, width: int, height: Optional[int] = None) -> Optional[str]:
        """Resize the image to fit in ``width`` x ``height`` and return its URL."""
        return self.transform(self._request(image_relative_path, width, height, Operation.RESIZE))

    def crop(self, image_relative_path: str, width: int, height: Optional[int] = None) -> Optional[str]:
        """Resize then center-crop the image to exactly ``width`` x ``height``.

        ``height`` defaults to ``width``. Returns the URL of the cropped
        image, or None if the source does not exist.
        """
        return self.transform(self._request(image_relative_path, width, height, Operation.CROP))

    def _request(self, path: str, width: int, height: Optional[int], operation: Operation) -> TransformRequest:
        return TransformRequest(
            source_relative_path=path,
            width=width,
            height=height,
            operation=operation,
            quality=self._quality,
            prefix=self._prefix,
        )

    def _intermediate_dir(self, request: TransformRequest, filename: str) -> str:
        key = cache.cache_key(request.operation, self.settings.engine_identity(), request.quality)
        return cache.intermediate_dir(request.width, request.path_height, key, filename, request.prefix)

    def cache_path(self, request: TransformRequest) -> Path:
        """Return the absolute path the request's output is cached at."""
        filename = storage.image_basename(request.source_relative_path)
        return Path(self.settings.media_dir) / self._intermediate_dir(request, filename) / filename

    def cache_url(self, request: TransformRequest) -> str:
        filename = storage.image_basename(request.source_relative_path)
        return storage.build_url(self.settings.media_url, self._intermediate_dir(request, filename), filename)

    def remove_partial_files(self, max_age: float = 3600.0) -> int:
        """Sweep temp files left in the cache tree by interrupted saves.

        Only the tree of the current ``prefix`` is swept. Finished cache
        files are never removed.
        """
        root = Path(self.settings.media_dir)
        if self._prefix:
            root = root / self._prefix
        return storage.remove_partial_files(root / cache.CACHE_DIR_NAME, max_age)

    def transform(self, request: TransformRequest) -> Optional[str]:
        """Return the URL of the transformed image, generating it if needed.

        Raises:
            CacheDirectoryError: If the cache directory cannot be created.
            ImageEngineError: If the image cannot be decoded or encoded.
        """
        source = storage.resolve_source(self.settings.media_dir, request.source_relative_path)
        if source is None or not source.is_file():
            logger.debug("Source image not found: %s", request.source_relative_path)
            return None

        filename = storage.image_basename(source)
        intermediate_dir = self._intermediate_dir(request, filename)
        directory = Path(self.settings.media_dir) / intermediate_dir
        target = directory / filename
        url = storage.build_url(self.settings.media_url, intermediate_dir, filename)

        if target.is_file():
            logger.debug("Cache hit for %s", target)
            return url

        storage.ensure_dir(directory)
        logger.debug("Cache miss, generating %s %s", request.operation.value, target)
        if request.operation is Operation.CROP:
            self._crop(source, directory, filename, request)
        else:
            self._resize(source, directory, filename, request)
        return url

    def _open(self, path: Path, request: TransformRequest) -> image_ops.EditableImage:
        img = image_ops.open_image(path, self.settings.engine_identity())
        img.constrain_only(True)
        img.keep_aspect_ratio(True)
        img.keep_frame(False)
        img.quality(request.quality)
        img.keep_transparency(img.supports_alpha())
        return img

    def _resize(self, source: Path, directory: Path, filename: str, request: TransformRequest) -> None:
        img = self._open(source, request)
        img.resize(request.width, request.height)
        img.save(directory, filename)

    def _crop(self, source: Path, directory: Path, filename: str, request: TransformRequest) -> None:
        width, height = request.width, request.target_height
        img = self._open(source, request)

        # Resize along the binding axis so the other axis covers the box.
        if img.original_width / img.original_height < width / height:
            img.resize(width, None)
        else:
            img.resize(None, height)

        fd, intermediate = tempfile.mkstemp(dir=directory, prefix=f".{filename}.", suffix=".part")
        os.close(fd)
        try:
            img.save(intermediate)
            resized = image_ops.open_image(intermediate, self.settings.engine_identity())
            resized.quality(request.quality)
            resized.keep_transparency(resized.supports_alpha())

            excess_w = resized.original_width - width
            excess_h = resized.original_height - height
            if excess_w < 0 or excess_h < 0:
                logger.debug(
                    "Source %s too small for %sx%s crop, output stays %sx%s",
                    source,
                    width,
                    height,
                    min(resized.original_width, width),
                    min(resized.original_height, height),
                )
            top = max(excess_h, 0) // 2
            left = max(excess_w, 0) // 2
            resized.crop(top, left, max(excess_w, 0) - left, max(excess_h, 0) - top)
            resized.save(directory, filename)
        finally:
            try:
                os.unlink(intermediate)
            except FileNotFoundError:
                pass
