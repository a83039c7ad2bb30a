import os

import pytest

from mediacrop import storage
from mediacrop.errors import CacheDirectoryError


def test_resolve_source_strips_leading_slash(media_dir):
    assert storage.resolve_source(media_dir, "/catalog/a.jpg") == media_dir / "catalog" / "a.jpg"
    assert storage.resolve_source(media_dir, "catalog/a.jpg") == media_dir / "catalog" / "a.jpg"


def test_resolve_source_rejects_paths_outside_media_root(media_dir):
    assert storage.resolve_source(media_dir, "../secret.jpg") is None
    assert storage.resolve_source(media_dir, "catalog/../../secret.jpg") is None


def test_image_basename():
    assert storage.image_basename("/var/media/catalog/Shoe.JPG") == "Shoe.JPG"


def test_build_url_keeps_forward_slashes():
    url = storage.build_url("/media/", "cache/10x0/abc/s/h", "shoe.jpg", sep="/")
    assert url == "/media/cache/10x0/abc/s/h/shoe.jpg"


def test_build_url_rewrites_windows_separators():
    url = storage.build_url("https://cdn.example.com/media/", "cache\\10x0\\abc\\s\\h", "shoe.jpg", sep="\\")
    assert url == "https://cdn.example.com/media/cache/10x0/abc/s/h/shoe.jpg"


def test_filter_url_leaves_backslashes_on_posix():
    assert storage.filter_url("a\\b", sep="/") == "a\\b"


def test_ensure_dir_is_idempotent(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    storage.ensure_dir(target)
    storage.ensure_dir(target)
    assert target.is_dir()


def test_ensure_dir_failure_is_fatal(tmp_path):
    blocker = tmp_path / "cache"
    blocker.write_text("not a directory")
    with pytest.raises(CacheDirectoryError) as excinfo:
        storage.ensure_dir(blocker / "100x0")
    assert isinstance(excinfo.value, OSError)
    assert isinstance(excinfo.value.__cause__, OSError)
    assert not os.path.isdir(blocker)


def test_remove_partial_files_only_sweeps_stale_temp_files(tmp_path):
    shard = tmp_path / "cache" / "100x0" / "abc" / "a" / "b"
    shard.mkdir(parents=True)
    finished = shard / "ab.jpg"
    stale_tmp = shard / ".ab.jpg.k2j4x9.tmp"
    stale_part = shard / ".ab.jpg.p0q1r2.part"
    fresh_tmp = shard / ".ab.jpg.z8y7x6.tmp"
    for path in (finished, stale_tmp, stale_part, fresh_tmp):
        path.write_bytes(b"x")
    for path in (finished, stale_tmp, stale_part):
        os.utime(path, (1_000_000, 1_000_000))

    assert storage.remove_partial_files(tmp_path / "cache", max_age=60) == 2
    assert sorted(p.name for p in shard.iterdir()) == [".ab.jpg.z8y7x6.tmp", "ab.jpg"]


def test_remove_partial_files_on_missing_root(tmp_path):
    assert storage.remove_partial_files(tmp_path / "nope") == 0
