"""Shared fixtures: real images on disk, a fake trash and a scriptable video optimizable."""

import os
import shutil
from pathlib import Path

import pytest
from PIL import Image

from domain.constants import CONTENT_TYPE_IMAGE, CONTENT_TYPE_VIDEO
from domain.errors import Cancelled, UnableToLoadVideoTrack
from domain.models import MediaItem, MediaProbe, OptimizerConfig, Resolution
from optimizer_io import file_ops
from optimizer_io.hash_stream import path_digest
from services.optimizable import ImageOptimizable, Optimizable


@pytest.fixture
def make_image():
    def _make(path, size=(64, 48), color=(200, 30, 30), **save_kwargs):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, **save_kwargs)
        return str(path)

    return _make


@pytest.fixture
def trash(tmp_path_factory, monkeypatch):
    """Replaces send2trash; returns the list of (original_path, trashed_copy) pairs."""
    bin_dir = tmp_path_factory.mktemp("trash")
    trashed = []

    def fake_send2trash(path):
        path = os.fspath(path)
        dest = bin_dir / f"{len(trashed)}_{os.path.basename(path)}"
        shutil.move(path, dest)
        trashed.append((path, str(dest)))

    monkeypatch.setattr(file_ops, "send2trash", fake_send2trash)
    return trashed


class FakeVideoOptimizable(Optimizable):
    """Video stand-in: 'probes' any existing file, 'encodes' by writing bytes."""

    content_type = CONTENT_TYPE_VIDEO

    def __init__(self, config=None, resolution=(3840, 2160), steps=(0.25, 0.5, 0.75), on_step=None, fail_with=None):
        super().__init__(config)
        self.resolution = Resolution(*resolution)
        self.steps = steps
        self.on_step = on_step
        self.fail_with = fail_with
        self.calls = []

    def probe(self, path):
        if not os.path.exists(path):
            raise UnableToLoadVideoTrack()
        return MediaProbe(resolution=self.resolution, encoding="h264", duration=10.0)

    def target_encoding(self, preset_encoding):
        return preset_encoding

    def thumbnail(self, path, size):
        return Image.new("RGB", (size, size))

    def _optimize(self, source_path, target_resolution, output_path, progress, stop_flag, encoding):
        self.calls.append((source_path, target_resolution, output_path, encoding))
        with open(output_path, "wb") as f:
            f.write(b"partial")
        for i, value in enumerate(self.steps):
            if self.on_step:
                self.on_step(i)
            if stop_flag and stop_flag():
                raise Cancelled()
            progress(value)
        if self.fail_with:
            raise self.fail_with
        with open(output_path, "ab") as f:
            f.write(b"-optimized")


@pytest.fixture
def fake_video():
    return FakeVideoOptimizable


@pytest.fixture
def optimizables_factory():
    def _build(config=None, **video_kwargs):
        config = config or OptimizerConfig(generate_thumbnails=False)
        return {
            CONTENT_TYPE_IMAGE: ImageOptimizable(config),
            CONTENT_TYPE_VIDEO: FakeVideoOptimizable(config, **video_kwargs),
        }

    return _build


@pytest.fixture
def image_item():
    def _item(path, source=(400, 300), target=(200, 150), target_path=None, selected=True):
        return MediaItem(
            id=path_digest(path),
            source_path=path,
            target_path=target_path or os.path.splitext(path)[0] + ".jpg",
            content_type=CONTENT_TYPE_IMAGE,
            source_resolution=Resolution(*source),
            target_resolution=Resolution(*target),
            target_encoding="jpeg",
            is_selected=selected,
        )

    return _item
