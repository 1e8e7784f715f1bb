import os

from domain.constants import CONTENT_TYPE_IMAGE, CONTENT_TYPE_VIDEO
from domain.models import OptimizerConfig, Resolution
from services.scan_service import ScanService


def _tree(root, make_image):
    make_image(root / "a.png", size=(400, 300))
    make_image(root / "sub" / "b.jpg", size=(30, 20))
    (root / "sub" / "clip.mov").write_bytes(b"movie")
    (root / "notes.txt").write_text("hello")
    (root / "broken.jpg").write_bytes(b"not really a jpeg")


def test_scan_builds_items_in_walk_order(tmp_path, make_image, optimizables_factory):
    _tree(tmp_path, make_image)
    config = OptimizerConfig(generate_thumbnails=False)
    service = ScanService(optimizables_factory(config), config)

    progress = []
    skipped = []
    items = service.scan(
        str(tmp_path),
        progress_cb=lambda i, total, msg: progress.append((i, total, msg)),
        skip_cb=lambda reason, path: skipped.append((reason, os.path.basename(path))),
    )

    names = [os.path.basename(it.source_path) for it in items]
    assert names == ["a.png", "broken.jpg", "b.jpg", "clip.mov"]
    assert [it.content_type for it in items] == [
        CONTENT_TYPE_IMAGE, CONTENT_TYPE_IMAGE, CONTENT_TYPE_IMAGE, CONTENT_TYPE_VIDEO
    ]
    assert ("unsupported", "notes.txt") in skipped

    # one tick per discovered file, strictly increasing, constant total
    assert [p[0] for p in progress] == [1, 2, 3, 4, 5]
    assert {p[1] for p in progress} == {5}
    assert any("notes.txt is not supported, skipped" == p[2] for p in progress)


def test_scan_probes_properties(tmp_path, make_image, optimizables_factory):
    _tree(tmp_path, make_image)
    config = OptimizerConfig(generate_thumbnails=False)
    items = {os.path.basename(it.source_path): it for it in ScanService(optimizables_factory(config), config).scan(str(tmp_path))}

    a = items["a.png"]
    assert a.source_resolution == Resolution(400, 300)
    assert a.source_encoding == "png"
    assert a.source_size == os.path.getsize(tmp_path / "a.png")
    assert a.target_path == str(tmp_path / "a.jpg")
    assert a.error == ""

    clip = items["clip.mov"]
    assert clip.source_resolution == Resolution(3840, 2160)
    assert clip.target_path == str(tmp_path / "sub" / "clip.mp4")

    broken = items["broken.jpg"]
    assert broken.source_resolution is None
    assert broken.error.startswith("UnableToLoadImage")
    assert broken.time_end is None


def test_scan_with_thumbnails(tmp_path, make_image, optimizables_factory):
    make_image(tmp_path / "wide.png", size=(400, 200))
    (tmp_path / "broken.png").write_bytes(b"nope")
    config = OptimizerConfig(generate_thumbnails=True, thumbnail_size=50)
    items = {os.path.basename(it.source_path): it for it in ScanService(optimizables_factory(config), config).scan(str(tmp_path))}

    assert items["wide.png"].thumbnail.size == (50, 25)
    assert items["broken.png"].thumbnail is None
    assert "Thumbnail: " in items["broken.png"].error


def test_scan_target_root_mirrors_folders(tmp_path, make_image, optimizables_factory):
    src = tmp_path / "src"
    out = tmp_path / "out"
    make_image(src / "2024" / "p.png")
    config = OptimizerConfig(generate_thumbnails=False, target_root=str(out))

    (item,) = ScanService(optimizables_factory(config), config).scan(str(src))

    assert item.target_path == str(out / "2024" / "p.jpg")


def test_scan_emits_field_changes(tmp_path, make_image, optimizables_factory):
    make_image(tmp_path / "a.png", size=(10, 10))
    config = OptimizerConfig(generate_thumbnails=False)
    events = []

    (item,) = ScanService(optimizables_factory(config), config).scan(
        str(tmp_path), emit=lambda item_id, field, value: events.append((item_id, field, value))
    )

    assert (item.id, "source_resolution", Resolution(10, 10)) in events
    assert all(e[0] == item.id for e in events)


def test_scan_empty_and_missing_roots(tmp_path, optimizables_factory):
    service = ScanService(optimizables_factory(), OptimizerConfig(generate_thumbnails=False))
    assert service.scan(str(tmp_path)) == []
    assert service.scan(str(tmp_path / "nope")) == []


def test_scan_stop_before_probing(tmp_path, make_image, optimizables_factory):
    make_image(tmp_path / "a.png")
    service = ScanService(optimizables_factory(), OptimizerConfig(generate_thumbnails=False))
    assert service.scan(str(tmp_path), stop_flag=lambda: True) == []


def test_ids_are_stable_across_scans(tmp_path, make_image, optimizables_factory):
    make_image(tmp_path / "a.png")
    make_image(tmp_path / "b.png")
    service = ScanService(optimizables_factory(), OptimizerConfig(generate_thumbnails=False))

    first = [it.id for it in service.scan(str(tmp_path))]
    second = [it.id for it in service.scan(str(tmp_path))]

    assert first == second
    assert len(set(first)) == 2
