import io
import shutil
import subprocess
from typing import Optional

from PIL import Image, ImageOps


def image_thumbnail(path: str, size: int) -> Image.Image:
    with Image.open(path) as img:
        img.draft("RGB", (size, size))  # JPEG fast path, no-op elsewhere
        thumb = ImageOps.exif_transpose(img)
        thumb = thumb.convert("RGB")
        thumb.thumbnail((size, size))
        return thumb


def video_thumbnail(path: str, size: int, at_seconds: float = 1.0) -> Image.Image:
    """Grab one frame with ffmpeg and shrink it."""
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise RuntimeError("ffmpeg is not installed")

    def _grab(seek: Optional[float]) -> bytes:
        cmd = [ffmpeg, "-hide_banner", "-nostdin", "-v", "error"]
        if seek:
            cmd += ["-ss", f"{seek:.3f}"]
        cmd += [
            "-i", path,
            "-frames:v", "1",
            "-vf", f"scale={size}:{size}:force_original_aspect_ratio=decrease",
            "-f", "image2pipe",
            "-vcodec", "png",
            "-",
        ]
        p = subprocess.run(cmd, capture_output=True)
        return p.stdout if p.returncode == 0 else b""

    # short clips: seeking past the end yields nothing, retry from the start
    data = _grab(at_seconds) or _grab(None)
    if not data:
        raise RuntimeError("Could not extract a video frame")

    with Image.open(io.BytesIO(data)) as frame:
        thumb = frame.convert("RGB")
    thumb.thumbnail((size, size))
    return thumb
