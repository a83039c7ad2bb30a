"""Pydantic models and value types for the media cache.

``TransformRequest`` captures everything that determines where a
transformed image lives and how it is produced. It is immutable so the
prefix and quality in effect for a call cannot change halfway through it.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

DEFAULT_QUALITY = 95


class Operation(str, Enum):
    """Supported transformations. Values are hashed into the cache key."""

    RESIZE = "resize"
    CROP = "crop"


class TransformRequest(BaseModel):
    """A single resize or crop request.

    Attributes:
        source_relative_path: Path of the source image relative to the media
            root. A leading slash is allowed.
        width: Target width in pixels.
        height: Target height in pixels. When omitted, crop uses ``width``
            and resize leaves the height free.
        operation: Which transformation to apply.
        quality: Encoding quality, 0-100.
        prefix: Optional namespace directory placed before ``cache/``.
    """

    model_config = ConfigDict(frozen=True)

    source_relative_path: str
    width: PositiveInt
    height: Optional[PositiveInt] = None
    operation: Operation = Operation.RESIZE
    quality: int = Field(default=DEFAULT_QUALITY, ge=0, le=100)
    prefix: Optional[str] = None

    @property
    def target_height(self) -> int:
        return self.height if self.height is not None else self.width

    @property
    def path_height(self) -> int:
        """Height component of the cache directory.

        Crop always encodes its real target height. Resize encodes ``0`` for
        "auto height" so it never collides with an explicit square box.
        """
        if self.operation is Operation.CROP:
            return self.target_height
        return self.height if self.height is not None else 0


class CacheKeyParameters(NamedTuple):
    """Ordered tokens hashed into the cache key segment."""

    constrain_only: str
    keep_aspect_ratio: str
    keep_frame: str
    operation: str
    engine: str
    quality: int
