from domain.models import TargetPreset

DEFAULT_PRESET = TargetPreset(label="Full HD (1080p)", width=1920, height=1080, encoding="avc")

PRESETS = (
    TargetPreset(label="4K (2160p)", width=3840, height=2160, encoding="avc"),
    DEFAULT_PRESET,
    TargetPreset(label="HD (720p)", width=1280, height=720, encoding="avc"),
    TargetPreset(label="qHD (540p)", width=960, height=540, encoding="avc"),
    TargetPreset(label="SD (480p)", width=640, height=480, encoding="avc"),
    TargetPreset(label="Low Quality (360p)", width=480, height=360, encoding="avc"),
)


def preset_by_label(label: str) -> TargetPreset:
    """Case-insensitive lookup; also accepts the short form, e.g. "1080p"."""
    wanted = (label or "").strip().lower()
    for p in PRESETS:
        name = p.label.lower()
        if wanted == name or f"({wanted})" in name:
            return p
    raise ValueError(f"Unknown preset: {label!r}")
