#services/video_metadata_service.py

from typing import Optional
import subprocess
import json

from domain.errors import UnableToLoadVideoTrack
from domain.models import MediaProbe, Resolution


def _ffprobe_streams(path: str) -> dict:
    # ffprobe must be available on PATH
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-select_streams", "v",
        "-show_entries",
        "stream=index,codec_name,width,height,disposition:stream_tags=rotate"
        ":stream_side_data=rotation:format=duration",
        path,
    ]
    try:
        p = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        raise UnableToLoadVideoTrack("ffprobe is not installed")
    if p.returncode != 0:
        raise UnableToLoadVideoTrack()
    try:
        return json.loads(p.stdout or "{}")
    except json.JSONDecodeError:
        raise UnableToLoadVideoTrack("ffprobe returned unreadable output")


def _rotation(stream: dict) -> int:
    raw = (stream.get("tags") or {}).get("rotate")
    if raw is None:
        for side in stream.get("side_data_list") or []:
            if "rotation" in side:
                raw = side["rotation"]
                break
    try:
        return int(float(raw)) % 360 if raw is not None else 0
    except (TypeError, ValueError):
        return 0


def _duration(data: dict) -> Optional[float]:
    raw = (data.get("format") or {}).get("duration")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def probe_video(path: str) -> MediaProbe:
    """
    Display size, codec and duration of the first real video track.
    Cover art (attached pictures) does not count as a track.
    """
    data = _ffprobe_streams(path)

    for stream in data.get("streams") or []:
        if (stream.get("disposition") or {}).get("attached_pic"):
            continue
        width = stream.get("width")
        height = stream.get("height")
        if not width or not height:
            continue
        if _rotation(stream) in (90, 270):
            width, height = height, width
        return MediaProbe(
            resolution=Resolution(int(width), int(height)),
            encoding=stream.get("codec_name") or "",
            duration=_duration(data),
        )

    raise UnableToLoadVideoTrack()
