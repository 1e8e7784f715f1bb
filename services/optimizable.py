# services/optimizable.py
#
# One Optimizable per content kind. Callers only ever talk to this contract
# (probe / get_dimensions / optimize_with_progress / thumbnail) and never
# branch on the concrete class.

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from domain.constants import (
    CONTENT_TYPE_IMAGE,
    CONTENT_TYPE_VIDEO,
    VIDEO_ENCODERS,
)
from domain.errors import Cancelled, FileExists, OptimizerError, UnableToEncode, UnknownExportError
from domain.models import MediaProbe, OptimizerConfig, Resolution
from domain.rules import target_extension
from services.metadata_service import probe_image
from services.thumbnail_service import image_thumbnail, video_thumbnail
from services.transcode_service import image_format_for, resize_image, transcode_video
from services.video_metadata_service import probe_video

# anything below this is "still running"; 1.0 is reserved for success
_RUNNING_CEILING = 0.99


class ProgressForwarder:
    """Shapes raw codec progress into what item observers may rely on.

    - first value is 0.0
    - values never decrease and stay below 1.0 while running
    - 1.0 is sent only by finish()
    """

    def __init__(self, progress_cb: Optional[Callable[[float], None]]):
        self._cb = progress_cb
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        self._send(0.0)

    def __call__(self, value: float) -> None:
        self._send(min(max(float(value), 0.0), _RUNNING_CEILING))

    def finish(self) -> None:
        self._send(1.0)

    def _send(self, value: float) -> None:
        with self._lock:
            if self._last is not None and value <= self._last:
                return
            self._last = value
        if self._cb:
            self._cb(value)


class Optimizable(ABC):
    content_type: str = ""

    def __init__(self, config: Optional[OptimizerConfig] = None):
        self.config = config or OptimizerConfig()

    @abstractmethod
    def probe(self, path: str) -> MediaProbe:
        """Dimensions and encoding; raises the kind-specific load error."""

    def get_dimensions(self, path: str) -> tuple[int, int]:
        res = self.probe(path).resolution
        return res.width, res.height

    @abstractmethod
    def target_encoding(self, preset_encoding: str) -> str:
        ...

    def target_extension(self) -> str:
        return target_extension(self.content_type, self.config.extension_overrides)

    @abstractmethod
    def thumbnail(self, path: str, size: int):
        ...

    def optimize_with_progress(
        self,
        source_path: str,
        target_resolution: Optional[Resolution],
        output_path: str,
        progress_cb: Optional[Callable[[float], None]] = None,
        stop_flag: Optional[Callable[[], bool]] = None,
        encoding: str = "",
    ) -> None:
        """Write an optimized copy of source_path to output_path.

        output_path is a scratch location chosen by the caller, never the final
        target. progress_cb sees 0.0 first and 1.0 only on success.
        """
        if os.path.exists(output_path):
            raise FileExists(f"File already exists: {output_path}")
        if target_resolution is None:
            raise UnknownExportError("No target resolution")

        progress = ProgressForwarder(progress_cb)
        progress.start()
        if stop_flag and stop_flag():
            raise Cancelled()

        try:
            self._optimize(source_path, target_resolution, output_path, progress, stop_flag, encoding)
        except OptimizerError:
            raise
        except Exception as e:
            raise UnknownExportError(f"{type(e).__name__}: {e}") from e

        progress.finish()

    @abstractmethod
    def _optimize(
        self,
        source_path: str,
        target_resolution: Resolution,
        output_path: str,
        progress: ProgressForwarder,
        stop_flag: Optional[Callable[[], bool]],
        encoding: str,
    ) -> None:
        ...


class VideoOptimizable(Optimizable):
    content_type = CONTENT_TYPE_VIDEO

    def probe(self, path: str) -> MediaProbe:
        return probe_video(path)

    def target_encoding(self, preset_encoding: str) -> str:
        return preset_encoding

    def thumbnail(self, path: str, size: int):
        return video_thumbnail(path, size)

    def _optimize(self, source_path, target_resolution, output_path, progress, stop_flag, encoding):
        encoder = VIDEO_ENCODERS.get((encoding or "").lower())
        if not encoder:
            raise UnableToEncode(f"No encoder for {encoding!r}")

        # duration drives the progress ratio; without it we only get 0 and 1
        duration = self.probe(source_path).duration

        transcode_video(
            source_path,
            output_path,
            target_resolution,
            encoder,
            duration=duration,
            crf=self.config.video_crf,
            speed=self.config.video_speed,
            progress_interval=self.config.progress_interval,
            progress_cb=progress,
            stop_flag=stop_flag,
        )


class ImageOptimizable(Optimizable):
    content_type = CONTENT_TYPE_IMAGE

    def probe(self, path: str) -> MediaProbe:
        return probe_image(path)

    def target_encoding(self, preset_encoding: str) -> str:
        # the image format follows the target extension, not the preset
        ext = self.target_extension()
        fmt = image_format_for(ext)
        return fmt.lower() if fmt else ext.lstrip(".").lower()

    def thumbnail(self, path: str, size: int):
        return image_thumbnail(path, size)

    def _optimize(self, source_path, target_resolution, output_path, progress, stop_flag, encoding):
        resize_image(
            source_path,
            output_path,
            target_resolution,
            quality=self.config.jpeg_quality,
            preserve_metadata=self.config.preserve_metadata,
            progress_cb=progress,
            stop_flag=stop_flag,
        )


def build_optimizables(config: Optional[OptimizerConfig] = None) -> dict[str, Optimizable]:
    return {
        CONTENT_TYPE_VIDEO: VideoOptimizable(config),
        CONTENT_TYPE_IMAGE: ImageOptimizable(config),
    }
