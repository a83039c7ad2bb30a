"""Runtime configuration for the media cache.

Settings are read from environment variables the same way the rest of the
backend reads them, but they are carried in an explicit ``MediaSettings``
object that is handed to the helper instead of being looked up globally.

Environment variables:
    MEDIA_DIR: Absolute or relative path of the media root (default
        './media').
    MEDIA_URL: Public URL prefix the media root is served under (default
        '/media/').
    IMAGE_ENGINE: Identity of the pixel engine, e.g. 'pillow-lanczos' or
        'pillow-bicubic'. Unset or unknown values fall back to the default.
    MEDIA_CACHE_PREFIX: Optional namespace directory placed before 'cache/'.
    MEDIA_CACHE_QUALITY: Default encoding quality, 0-100 (default 95).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .image_ops import DEFAULT_ENGINE, ENGINES
from .models import DEFAULT_QUALITY

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_DIR = "./media"
DEFAULT_MEDIA_URL = "/media/"


class MediaSettings(BaseModel):
    """Storage locations and defaults used by ``ImageCropHelper``.

    Attributes:
        media_dir: Root directory holding source images and the cache tree.
        media_url: URL prefix for files under ``media_dir``. Should end with
            a slash.
        engine: Configured engine identity, may be empty.
        prefix: Default cache namespace.
        quality: Default encoding quality.
    """

    media_dir: Path = Path(DEFAULT_MEDIA_DIR)
    media_url: str = DEFAULT_MEDIA_URL
    engine: Optional[str] = None
    prefix: Optional[str] = None
    quality: int = Field(default=DEFAULT_QUALITY, ge=0, le=100)

    @classmethod
    def from_env(cls) -> "MediaSettings":
        """Build settings from the process environment."""
        return cls(
            media_dir=Path(os.getenv("MEDIA_DIR", DEFAULT_MEDIA_DIR)),
            media_url=os.getenv("MEDIA_URL", DEFAULT_MEDIA_URL),
            engine=os.getenv("IMAGE_ENGINE") or None,
            prefix=os.getenv("MEDIA_CACHE_PREFIX") or None,
            quality=int(os.getenv("MEDIA_CACHE_QUALITY", str(DEFAULT_QUALITY))),
        )

    def engine_identity(self) -> str:
        """Return the active engine identity, falling back to the default."""
        if self.engine and self.engine in ENGINES:
            return self.engine
        if self.engine:
            logger.debug("Unknown image engine %r, using %s", self.engine, DEFAULT_ENGINE)
        return DEFAULT_ENGINE
