from dataclasses import dataclass, field, fields
from typing import Any, Callable, Optional

from domain.constants import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_TEMP_SUFFIX,
    DEFAULT_THUMBNAIL_SIZE,
    ITEM_STATUS_IDLE,
)


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    @property
    def longest(self) -> int:
        return max(self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class MediaProbe:
    resolution: Resolution
    encoding: str = ""
    duration: Optional[float] = None  # seconds, videos only


@dataclass(frozen=True)
class TargetPreset:
    label: str
    width: int
    height: int
    encoding: str

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)


@dataclass(frozen=True)
class OptimizerConfig:
    target_root: Optional[str] = None       # None -> write next to the source
    preserve_folders: bool = True
    replace_source: bool = False            # trash the source even when the target name differs
    temp_suffix: str = DEFAULT_TEMP_SUFFIX
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    preserve_metadata: bool = True
    use_trash: bool = True

    # Worker pools
    probe_workers: Optional[int] = None
    optimize_workers: int = 1

    generate_thumbnails: bool = True
    thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE

    # ffmpeg knobs
    video_crf: int = 23
    video_speed: str = "medium"
    progress_interval: float = 0.5

    # content type -> extension, e.g. {"IMAGE": ".webp"}
    extension_overrides: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "OptimizerConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})


@dataclass
class MediaItem:
    id: str
    source_path: str
    target_path: str
    content_type: str
    source_resolution: Optional[Resolution] = None
    target_resolution: Optional[Resolution] = None
    source_encoding: str = ""
    target_encoding: str = ""
    source_size: Optional[int] = None
    target_size: Optional[int] = None
    time_begin: Optional[str] = None
    time_end: Optional[str] = None
    completion_percentage: Optional[float] = None
    error: str = ""
    is_selected: bool = False
    status: str = ITEM_STATUS_IDLE
    thumbnail: Any = None

    def update(self, emit: Optional[Callable[[str, str, Any], None]] = None, **changes):
        """Set fields and report each one that actually changed.

        emit(item_id, field_name, new_value) is called once per changed field.
        """
        for name, value in changes.items():
            if not hasattr(self, name):
                raise AttributeError(f"MediaItem has no field {name!r}")
            if getattr(self, name) == value:
                continue
            setattr(self, name, value)
            if emit:
                emit(self.id, name, value)

    @property
    def replaces_source(self) -> bool:
        return self.target_path == self.source_path
