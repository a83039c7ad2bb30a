"""Shared fixtures for the media cache tests.

Every test gets its own media root under ``tmp_path`` so generated cache
trees never leak between tests.
"""

from pathlib import Path

import pytest
from PIL import Image

from mediacrop import ImageCropHelper, MediaSettings


@pytest.fixture
def media_dir(tmp_path) -> Path:
    path = tmp_path / "media"
    path.mkdir()
    return path


@pytest.fixture
def settings(media_dir) -> MediaSettings:
    return MediaSettings(media_dir=media_dir, media_url="/media/")


@pytest.fixture
def helper(settings) -> ImageCropHelper:
    return ImageCropHelper(settings)


@pytest.fixture
def make_image(media_dir):
    """Write a solid test image under the media root and return its path."""

    def _make(relative: str, size, mode="RGB", color=(200, 30, 30), fmt=None) -> Path:
        path = media_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new(mode, size, color).save(path, format=fmt)
        return path

    return _make
