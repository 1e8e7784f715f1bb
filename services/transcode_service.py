# services/transcode_service.py
#
# The codec side of optimization: ffmpeg for video, Pillow for images.
# Functions here report raw fractions through progress_cb; callers own the
# 0.0 / 1.0 bookends.

from __future__ import annotations

import io
import logging
import os
import queue
import shutil
import subprocess
import sys
import threading
from collections import deque
from typing import Callable, Optional

from PIL import Image, UnidentifiedImageError

from domain.errors import Cancelled, FileExists, UnableToEncode, UnknownExportError
from domain.models import Resolution

logger = logging.getLogger(__name__)

ProgressCb = Optional[Callable[[float], None]]
StopFlag = Optional[Callable[[], bool]]

# ffmpeg never gets to report 1.0 itself; success is decided by the exit code
_MAX_RUNNING_RATIO = 0.99

# stop_flag is checked at least this often, even while ffmpeg prints nothing
_STOP_POLL_SECONDS = 0.2
_TERMINATE_GRACE = 5.0
_STDERR_KEEP_LINES = 200


def _subprocess_kwargs() -> dict:
    """Hide console windows on Windows."""
    kwargs = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
    return kwargs


def even_resolution(res: Resolution) -> Resolution:
    """yuv420p needs even dimensions."""
    return Resolution(max(2, res.width - res.width % 2), max(2, res.height - res.height % 2))


def build_ffmpeg_command(
    ffmpeg: str,
    source: str,
    output: str,
    resolution: Resolution,
    encoder: str,
    crf: int = 23,
    speed: str = "medium",
    progress_interval: float = 0.5,
) -> list[str]:
    res = even_resolution(resolution)
    return [
        ffmpeg,
        "-hide_banner",
        "-nostdin",
        "-v", "error",
        "-n",
        "-i", source,
        "-map", "0:v:0",
        "-map", "0:a?",
        "-vf", f"scale={res.width}:{res.height}",
        "-c:v", encoder,
        "-preset", speed,
        "-crf", str(crf),
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-map_metadata", "0",
        "-movflags", "+faststart",
        "-progress", "pipe:1",
        "-stats_period", str(progress_interval),
        "-nostats",
        output,
    ]


def parse_progress_seconds(line: str) -> Optional[float]:
    """Encoded position from one `-progress` line, or None if the line has none.

    out_time_us and out_time_ms both carry microseconds (ffmpeg naming quirk).
    """
    key, sep, value = line.strip().partition("=")
    if not sep:
        return None
    if key in ("out_time_us", "out_time_ms"):
        try:
            us = int(value)
        except ValueError:
            return None
        return us / 1_000_000 if us >= 0 else None
    return None


def _stderr_tail(text: str, lines: int = 5) -> str:
    tail = [l for l in (text or "").strip().splitlines() if l.strip()][-lines:]
    return " | ".join(tail)


def _pump(stream, sink, done=None) -> None:
    """Reader thread body: forward each line of a child pipe until EOF."""
    try:
        for line in stream:
            sink(line)
    finally:
        if done:
            done()


def _stop_process(process) -> None:
    process.terminate()
    try:
        process.wait(timeout=_TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        logger.warning("ffmpeg ignored terminate, killing it")
        process.kill()


def transcode_video(
    source: str,
    output: str,
    resolution: Resolution,
    encoder: str,
    duration: Optional[float] = None,
    crf: int = 23,
    speed: str = "medium",
    progress_interval: float = 0.5,
    progress_cb: ProgressCb = None,
    stop_flag: StopFlag = None,
) -> None:
    """Re-encode source into output at the given resolution.

    Both ffmpeg pipes are drained on reader threads so a chatty stderr can
    never stall the encoder. stop_flag is polled every _STOP_POLL_SECONDS,
    whether or not progress arrives; when it fires ffmpeg is terminated and
    Cancelled is raised. The partially written output is left for the caller
    to discard.
    """
    if os.path.exists(output):
        raise FileExists(f"File already exists: {output}")

    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise UnableToEncode("ffmpeg is not installed")

    cmd = build_ffmpeg_command(
        ffmpeg, source, output, resolution, encoder,
        crf=crf, speed=speed, progress_interval=progress_interval,
    )
    logger.debug("Running %s", " ".join(cmd))

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
            **_subprocess_kwargs(),
        )
    except OSError as e:
        raise UnableToEncode(f"Could not start ffmpeg: {e}")

    progress_lines: queue.Queue = queue.Queue()
    stderr_lines: deque = deque(maxlen=_STDERR_KEEP_LINES)
    readers = [
        threading.Thread(
            target=_pump,
            args=(process.stdout, progress_lines.put, lambda: progress_lines.put(None)),
            daemon=True,
        ),
        threading.Thread(target=_pump, args=(process.stderr, stderr_lines.append), daemon=True),
    ]
    for reader in readers:
        reader.start()

    cancelled = False
    try:
        while True:
            if stop_flag and stop_flag():
                cancelled = True
                _stop_process(process)
                break
            try:
                raw_line = progress_lines.get(timeout=_STOP_POLL_SECONDS)
            except queue.Empty:
                continue
            if raw_line is None:
                break
            seconds = parse_progress_seconds(raw_line)
            if seconds is not None and duration and progress_cb:
                progress_cb(min(seconds / duration, _MAX_RUNNING_RATIO))
    except BaseException:
        _stop_process(process)
        raise
    finally:
        return_code = process.wait()
        for reader in readers:
            reader.join(_TERMINATE_GRACE)
        for stream in (process.stdout, process.stderr):
            if stream:
                stream.close()

    stderr_output = "".join(stderr_lines)

    if cancelled:
        raise Cancelled()
    if return_code < 0:
        raise Cancelled(f"ffmpeg was stopped by signal {-return_code}")
    if return_code != 0:
        detail = _stderr_tail(stderr_output) or f"ffmpeg exited with code {return_code}"
        if "Unknown encoder" in stderr_output or "Error while opening encoder" in stderr_output:
            raise UnableToEncode(detail)
        if "already exists" in stderr_output:
            raise FileExists(detail)
        raise UnknownExportError(detail)
    if not os.path.exists(output):
        raise UnknownExportError("ffmpeg finished without writing an output file")


def image_format_for(ext: str) -> Optional[str]:
    """Pillow writer for an output extension (".jpg" -> "JPEG"), None if there is none."""
    fmt = Image.registered_extensions().get(ext.lower())
    if fmt and fmt in Image.SAVE:
        return fmt
    return None


def resize_image(
    source: str,
    output: str,
    resolution: Resolution,
    quality: int = 75,
    preserve_metadata: bool = True,
    progress_cb: ProgressCb = None,
    stop_flag: StopFlag = None,
) -> None:
    """Decode, resize to resolution, and write output in the format its extension names.

    EXIF and ICC data ride along when preserve_metadata is set. stop_flag is
    checked after every stage, always before anything is written. Output is
    opened exclusively, so an existing file is never overwritten.
    """

    def _checkpoint(value: float):
        if progress_cb:
            progress_cb(value)
        if stop_flag and stop_flag():
            raise Cancelled()

    if os.path.exists(output):
        raise FileExists(f"File already exists: {output}")

    ext = os.path.splitext(output)[1]
    fmt = image_format_for(ext)
    if not fmt:
        raise UnableToEncode(f"No image encoder for {ext or 'files without an extension'}")

    try:
        with Image.open(source) as opened:
            opened.load()
            img = opened.copy()
            info = dict(opened.info)
    except FileNotFoundError:
        raise UnknownExportError("Could not load file from source path.")
    except (UnidentifiedImageError, OSError, ValueError):
        raise UnknownExportError("Could not load image from source path.")
    _checkpoint(0.1)

    try:
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        elif img.mode not in ("RGB", "RGBA", "L", "LA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        resized = img.resize((resolution.width, resolution.height), Image.Resampling.LANCZOS)
    except (ValueError, OSError) as e:
        raise UnknownExportError(f"Unsupported pixel format {img.mode}: {e}")
    _checkpoint(0.4)

    save_kwargs = {"format": fmt, "quality": int(quality), "optimize": True}
    if preserve_metadata:
        if info.get("exif"):
            save_kwargs["exif"] = info["exif"]
        if info.get("icc_profile"):
            save_kwargs["icc_profile"] = info["icc_profile"]

    buf = io.BytesIO()
    try:
        resized.save(buf, **save_kwargs)
    except (ValueError, OSError) as e:
        raise UnknownExportError(f"Could not convert {fmt.lower()} data: {e}")
    _checkpoint(0.7)

    try:
        with open(output, "xb") as f:
            f.write(buf.getvalue())
    except FileExistsError:
        raise FileExists(f"File already exists: {output}")
    except OSError as e:
        raise UnknownExportError(f"Could not write to {output}: {e}")
