"""Image manipulation utilities.

This module wraps Pillow behind a small stateful editing surface used by
the cache helper: open an image, set the resize behaviour (aspect ratio,
constrain-only, frame, transparency, quality), resize or crop it, then
save it. Saves are atomic: the encoded image goes to a temporary file in
the destination directory and is renamed into place.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from PIL import Image, ImageOps

from .errors import ImageEngineError
from .models import DEFAULT_QUALITY

logger = logging.getLogger(__name__)

ENGINES: Dict[str, Image.Resampling] = {
    "pillow-lanczos": Image.Resampling.LANCZOS,
    "pillow-bicubic": Image.Resampling.BICUBIC,
}
DEFAULT_ENGINE = "pillow-lanczos"

# Formats whose encoder keeps an alpha channel.
ALPHA_FORMATS = frozenset({"PNG", "WEBP"})

BACKGROUND = (255, 255, 255)

# Modes sharing a colour space, so an embedded ICC profile stays valid.
_COLOR_SPACES = {"RGBA": "RGB", "RGBX": "RGB", "P": "RGB", "PA": "RGB", "LA": "L"}


def format_supports_alpha(fmt: Optional[str]) -> bool:
    return (fmt or "").upper() in ALPHA_FORMATS


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _flatten(img: Image.Image) -> Image.Image:
    """Composite an image with alpha onto an opaque white background."""
    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, BACKGROUND)
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


def _color_space(mode: str) -> str:
    return _COLOR_SPACES.get(mode, mode)


def _new_file_mode() -> int:
    """Mode a plain ``open()`` would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _png_compress_level(quality: int) -> int:
    # 100 quality maps to no compression, 0 to the strongest.
    level = min(max(int(quality / 10 + 0.5), 1), 10)
    return 10 - level


def open_image(path: Union[str, "os.PathLike[str]"], engine: str = DEFAULT_ENGINE) -> "EditableImage":
    """Decode an image file into an ``EditableImage``.

    EXIF orientation is applied on load, since metadata is not carried over
    to the saved file.

    Raises:
        ImageEngineError: If the file cannot be read or decoded.
    """
    try:
        with Image.open(path) as im:
            fmt = im.format
            icc_profile = im.info.get("icc_profile")
            image = ImageOps.exif_transpose(im)
    except (OSError, Image.DecompressionBombError) as exc:
        raise ImageEngineError(f"Could not load image {path}: {exc}") from exc
    return EditableImage(image, fmt=fmt, engine=engine, icc_profile=icc_profile)


class EditableImage:
    """A decoded image plus the settings that control resize and save.

    Settings default to a plain stretch resize with no transparency; the
    cache helper sets every flag explicitly before transforming.
    """

    def __init__(
        self,
        image: Image.Image,
        fmt: Optional[str],
        engine: str = DEFAULT_ENGINE,
        icc_profile: Optional[bytes] = None,
    ) -> None:
        self._image = image
        self.format = fmt
        self.engine = engine
        self._resample = ENGINES.get(engine, ENGINES[DEFAULT_ENGINE])
        self._icc_profile = icc_profile
        self._decoded_mode = image.mode
        self.original_width, self.original_height = image.size
        self._constrain_only = False
        self._keep_aspect_ratio = False
        self._keep_frame = False
        self._keep_transparency = False
        self._quality = DEFAULT_QUALITY

    @property
    def size(self) -> Tuple[int, int]:
        return self._image.size

    def supports_alpha(self) -> bool:
        return format_supports_alpha(self.format)

    def constrain_only(self, flag: bool = True) -> "EditableImage":
        self._constrain_only = bool(flag)
        return self

    def keep_aspect_ratio(self, flag: bool = True) -> "EditableImage":
        self._keep_aspect_ratio = bool(flag)
        return self

    def keep_frame(self, flag: bool = True) -> "EditableImage":
        self._keep_frame = bool(flag)
        return self

    def keep_transparency(self, flag: bool = True) -> "EditableImage":
        self._keep_transparency = bool(flag)
        return self

    def quality(self, value: int) -> "EditableImage":
        self._quality = int(value)
        return self

    def _working_image(self) -> Image.Image:
        img = self._image
        if _has_alpha(img):
            img = img.convert("RGBA") if self._keep_transparency else _flatten(img)
        elif img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        return img

    def _fit(self, width: Optional[int], height: Optional[int]) -> Tuple[int, int]:
        src_w, src_h = self._image.size
        if not self._keep_aspect_ratio:
            dst_w = width if width is not None else src_w
            dst_h = height if height is not None else src_h
            if self._constrain_only:
                dst_w, dst_h = min(dst_w, src_w), min(dst_h, src_h)
            return dst_w, dst_h

        if height is None:
            bind_width = True
        elif width is None:
            bind_width = False
        else:
            bind_width = src_w / src_h >= width / height

        if bind_width:
            if self._constrain_only and width >= src_w:
                return src_w, src_h
            return width, max(1, round(width / src_w * src_h))
        if self._constrain_only and height >= src_h:
            return src_w, src_h
        return max(1, round(height / src_h * src_w)), height

    def resize(self, width: Optional[int] = None, height: Optional[int] = None) -> "EditableImage":
        """Resize to ``width`` x ``height`` according to the current settings.

        With aspect ratio kept, the image is fitted inside the box and a
        missing dimension is left free. With constrain-only, the image is
        never enlarged. With keep-frame, the fitted image is centred on a
        canvas of the full box size.
        """
        if width is None and height is None:
            raise ValueError("resize() needs at least a width or a height")
        dst_w, dst_h = self._fit(width, height)
        img = self._working_image()
        if img.size != (dst_w, dst_h):
            img = img.resize((dst_w, dst_h), self._resample)

        if self._keep_frame and self._keep_aspect_ratio and width and height:
            if self._keep_transparency and img.mode == "RGBA":
                canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
            else:
                canvas = Image.new(img.mode, (width, height), BACKGROUND if img.mode == "RGB" else 255)
            canvas.paste(img, ((width - dst_w) // 2, (height - dst_h) // 2))
            img = canvas

        self._image = img
        return self

    def crop(self, top: int = 0, left: int = 0, right: int = 0, bottom: int = 0) -> "EditableImage":
        """Trim the given number of pixels from each side."""
        if min(top, left, right, bottom) < 0:
            raise ValueError("crop() margins must not be negative")
        if not (top or left or right or bottom):
            return self
        width, height = self._image.size
        if left + right >= width or top + bottom >= height:
            raise ValueError(f"crop() margins exceed image size {width}x{height}")
        self._image = self._working_image().crop((left, top, width - right, height - bottom))
        return self

    def _encoder_params(self, mode: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        fmt = (self.format or "").upper()
        if fmt in ("JPEG", "WEBP"):
            params["quality"] = self._quality
        elif fmt == "PNG":
            params["compress_level"] = _png_compress_level(self._quality)
        # A profile only describes pixels still in the colour space it was decoded with.
        if self._icc_profile and _color_space(mode) == _color_space(self._decoded_mode):
            params["icc_profile"] = self._icc_profile
        return params

    def save(self, destination: Union[str, "os.PathLike[str]"], filename: Optional[str] = None) -> Path:
        """Encode the image to ``destination/filename`` atomically.

        When ``filename`` is omitted, ``destination`` is the full file path.
        The directory must already exist.

        Raises:
            ImageEngineError: If encoding or writing fails. No partial file
                is left behind.
        """
        path = Path(destination) / filename if filename else Path(destination)
        if not self.format:
            raise ImageEngineError(f"Unknown image format, cannot save {path}")

        img = self._working_image()
        if not self.supports_alpha() and _has_alpha(img):
            img = _flatten(img)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                img.save(fh, format=self.format, **self._encoder_params(img.mode))
            os.chmod(tmp_name, _new_file_mode())
            os.replace(tmp_name, path)
        except (OSError, ValueError, KeyError) as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise ImageEngineError(f"Could not save image {path}: {exc}") from exc
        logger.debug("Saved %s (%sx%s, %s)", path, img.width, img.height, self.format)
        return path
