import csv

from domain.models import OptimizerConfig
from services.report_service import ReportService
from services.session_service import Session


def test_report_lists_every_item(tmp_path, make_image, optimizables_factory, trash):
    src = tmp_path / "src"
    make_image(src / "big.png", size=(4000, 3000))
    make_image(src / "small.png", size=(100, 80))
    config = OptimizerConfig(generate_thumbnails=False)
    session = Session(str(src), config=config, optimizables=optimizables_factory(config))
    session.rescan()

    paths = ReportService().produce(session, str(tmp_path / "reports"))

    with open(paths["csv"], newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["source_path"].endswith(".png") for r in rows] == [True, True]
    big = next(r for r in rows if r["source_path"].endswith("big.png"))
    assert big["source_resolution"] == "4000x3000"
    assert big["target_resolution"] == "1920x1440"
    assert big["status"] == "IDLE"
    assert big["time_end"] == ""

    with open(paths["summary"], encoding="utf-8") as f:
        summary = f.read()
    assert "Preset: Full HD (1080p) (1920x1080)" in summary
    assert "- Items selected: 1" in summary
    assert "Elapsed: -" in summary


def test_elapsed_seconds():
    from utils.timeutil import elapsed_seconds

    assert elapsed_seconds("2024-05-01T10:00:00", "2024-05-01T10:01:05") == 65
    assert elapsed_seconds(None, "2024-05-01T10:01:05") is None
