"""Classification, selection and path rules."""

import os

import pytest

from domain.constants import CONTENT_TYPE_IMAGE, CONTENT_TYPE_UNSUPPORTED, CONTENT_TYPE_VIDEO
from domain.models import Resolution, TargetPreset
from domain.presets import DEFAULT_PRESET, PRESETS, preset_by_label
from domain.rules import (
    classify_media,
    is_selected_for_preset,
    scale_to_preset,
    target_path_for,
    temp_path_for,
)

FULL_HD = TargetPreset("Full HD (1080p)", 1920, 1080, "avc")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("clip.MOV", CONTENT_TYPE_VIDEO),
        ("clip.mkv", CONTENT_TYPE_VIDEO),
        ("clip.qt", CONTENT_TYPE_VIDEO),
        ("photo.JPEG", CONTENT_TYPE_IMAGE),
        ("photo.heic", CONTENT_TYPE_IMAGE),
        ("photo.ief", CONTENT_TYPE_IMAGE),
        ("notes.txt", CONTENT_TYPE_UNSUPPORTED),
        ("archive.zip", CONTENT_TYPE_UNSUPPORTED),
        ("README", CONTENT_TYPE_UNSUPPORTED),
    ],
)
def test_classify_media(name, expected):
    assert classify_media(os.path.join("some", "dir", name)) == expected


@pytest.mark.parametrize(
    "source, expected",
    [
        ((3840, 2160), True),
        ((2160, 3840), True),
        ((1000, 1000), False),
        ((2000, 800), False),
        ((1920, 1080), False),
        ((1921, 1081), True),
    ],
)
def test_selection_policy(source, expected):
    assert is_selected_for_preset(FULL_HD, Resolution(*source)) is expected


def test_selection_without_resolution_is_false():
    assert is_selected_for_preset(FULL_HD, None) is False


def test_scale_keeps_aspect_ratio():
    assert scale_to_preset(Resolution(3840, 2160), FULL_HD) == Resolution(1920, 1080)
    assert scale_to_preset(Resolution(2160, 3840), FULL_HD) == Resolution(1080, 1920)
    assert scale_to_preset(Resolution(4000, 3000), FULL_HD) == Resolution(1920, 1440)


def test_scale_without_source():
    assert scale_to_preset(None, FULL_HD) is None
    assert scale_to_preset(Resolution(0, 0), FULL_HD) is None


def test_target_path_in_place(tmp_path):
    src = str(tmp_path / "a" / "clip.mov")
    assert target_path_for(src, CONTENT_TYPE_VIDEO, str(tmp_path)) == str(tmp_path / "a" / "clip.mp4")


def test_target_path_under_target_root(tmp_path):
    root = tmp_path / "src"
    out = tmp_path / "out"
    src = str(root / "2024" / "trip" / "IMG_1.png")

    kept = target_path_for(src, CONTENT_TYPE_IMAGE, str(root), target_root=str(out))
    flat = target_path_for(src, CONTENT_TYPE_IMAGE, str(root), target_root=str(out), preserve_folders=False)
    top = target_path_for(str(root / "x.png"), CONTENT_TYPE_IMAGE, str(root), target_root=str(out))

    assert kept == str(out / "2024" / "trip" / "IMG_1.jpg")
    assert flat == str(out / "IMG_1.jpg")
    assert top == str(out / "x.jpg")


def test_target_extension_override(tmp_path):
    src = str(tmp_path / "photo.png")
    got = target_path_for(src, CONTENT_TYPE_IMAGE, str(tmp_path), overrides={CONTENT_TYPE_IMAGE: "jpeg"})
    assert got == str(tmp_path / "photo.jpeg")


def test_temp_path_is_sibling_with_item_fragment(tmp_path):
    src = str(tmp_path / "clip.mov")
    got = temp_path_for(src, "0123456789abcdef", ".mp4", ".tmp")
    assert got == str(tmp_path / "clip.tmp-01234567.mp4")


def test_preset_lookup():
    assert preset_by_label("Full HD (1080p)") == DEFAULT_PRESET
    assert preset_by_label("1080P") == DEFAULT_PRESET
    assert preset_by_label("4k (2160p)").width == 3840
    with pytest.raises(ValueError):
        preset_by_label("8K")


def test_catalog_order_and_encoding():
    assert [p.height for p in PRESETS] == [2160, 1080, 720, 540, 480, 360]
    assert {p.encoding for p in PRESETS} == {"avc"}
