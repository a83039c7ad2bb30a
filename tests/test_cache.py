import os

import pytest

from mediacrop import cache
from mediacrop.models import CacheKeyParameters, Operation


def test_parameters_hash_is_md5_of_joined_tokens():
    assert cache.parameters_hash(["a", "b", 1]) == "33f5882a05818f772f3165f2f0c32467"


def test_cache_key_matches_flag_token_layout():
    assert cache.cache_key(Operation.RESIZE, "pillow-lanczos", 95) == "ae7ada7d857f9d0e945308ac0b83d7d3"
    assert cache.cache_key(Operation.CROP, "pillow-lanczos", 95) == "1685ab65fc7c620c6ccaf535bf2e7dce"


def test_cache_key_is_stable_and_hex():
    first = cache.cache_key(Operation.CROP, "pillow-bicubic", 70)
    assert first == cache.cache_key("crop", "pillow-bicubic", 70)
    assert len(first) == 32
    int(first, 16)


@pytest.mark.parametrize(
    "changed",
    [
        (Operation.CROP, "pillow-lanczos", 95),
        (Operation.RESIZE, "pillow-bicubic", 95),
        (Operation.RESIZE, "pillow-lanczos", 80),
    ],
)
def test_cache_key_changes_with_any_parameter(changed):
    assert cache.cache_key(*changed) != cache.cache_key(Operation.RESIZE, "pillow-lanczos", 95)


def test_key_parameters_keep_field_order():
    assert CacheKeyParameters._fields == (
        "constrain_only",
        "keep_aspect_ratio",
        "keep_frame",
        "operation",
        "engine",
        "quality",
    )


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("A.jpg", ("a", "a")),
        ("ab.jpg", ("a", "b")),
        ("Photo.PNG", ("p", "h")),
        ("x", ("x", "x")),
    ],
)
def test_shard(filename, expected):
    assert cache.shard(filename) == expected


def test_shard_rejects_empty_name():
    with pytest.raises(ValueError):
        cache.shard("")


def test_intermediate_dir_layout():
    assert cache.intermediate_dir(100, 0, "k" * 32, "Beach.jpg") == os.sep.join(
        ["cache", "100x0", "k" * 32, "b", "e"]
    )


def test_intermediate_dir_with_prefix():
    assert cache.intermediate_dir(64, 48, "abc", "ab.png", prefix="thumbs") == os.sep.join(
        ["thumbs", "cache", "64x48", "abc", "a", "b"]
    )
