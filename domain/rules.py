import mimetypes
import os
from typing import Optional

from domain.constants import (
    CONTENT_TYPE_IMAGE,
    CONTENT_TYPE_UNSUPPORTED,
    CONTENT_TYPE_VIDEO,
    IMAGE_EXTS,
    TARGET_EXTS,
    VIDEO_EXTS,
)
from domain.models import Resolution, TargetPreset


def classify_media(path: str) -> str:
    """Classify a file into VIDEO/IMAGE/UNSUPPORTED.

    Notes:
    - Known container extensions win.
    - Otherwise the declared MIME type decides (video/*, image/*).
    - Anything else is UNSUPPORTED.
    """
    ext = os.path.splitext(path)[1].lower()

    if ext in VIDEO_EXTS:
        return CONTENT_TYPE_VIDEO
    if ext in IMAGE_EXTS:
        return CONTENT_TYPE_IMAGE

    mime, _ = mimetypes.guess_type(path, strict=False)
    if mime:
        if mime.startswith("video/"):
            return CONTENT_TYPE_VIDEO
        if mime.startswith("image/"):
            return CONTENT_TYPE_IMAGE

    return CONTENT_TYPE_UNSUPPORTED


def is_selected_for_preset(preset: TargetPreset, source: Optional[Resolution]) -> bool:
    """True when the source is strictly larger than the preset in either orientation."""
    if source is None:
        return False
    w, h = source.width, source.height
    return (w > preset.width and h > preset.height) or (h > preset.width and w > preset.height)


def scale_to_preset(source: Optional[Resolution], preset: TargetPreset) -> Optional[Resolution]:
    """Keep the aspect ratio; the longer source side maps onto the longer preset side."""
    if source is None or source.longest <= 0:
        return None
    scale = preset.resolution.longest / source.longest
    return Resolution(
        width=max(1, int(round(source.width * scale))),
        height=max(1, int(round(source.height * scale))),
    )


def target_extension(content_type: str, overrides: Optional[dict] = None) -> str:
    ext = (overrides or {}).get(content_type) or TARGET_EXTS[content_type]
    return ext if ext.startswith(".") else f".{ext}"


def target_path_for(
    source_path: str,
    content_type: str,
    source_root: str,
    target_root: Optional[str] = None,
    preserve_folders: bool = True,
    overrides: Optional[dict] = None,
) -> str:
    """Final location for the optimized file.

    Without a target root the file stays beside its source; otherwise it goes
    under target_root, keeping the folder structure relative to source_root
    when preserve_folders is on.
    """
    stem = os.path.splitext(os.path.basename(source_path))[0]
    filename = stem + target_extension(content_type, overrides)

    if not target_root:
        return os.path.join(os.path.dirname(source_path), filename)

    if preserve_folders:
        rel_dir = os.path.relpath(os.path.dirname(source_path), source_root)
        if rel_dir == os.curdir:
            return os.path.join(target_root, filename)
        return os.path.join(target_root, rel_dir, filename)

    return os.path.join(target_root, filename)


def temp_path_for(source_path: str, item_id: str, ext: str, suffix: str) -> str:
    """Sibling of the source: <stem><suffix>-<id[:8]><ext>."""
    folder = os.path.dirname(source_path)
    stem = os.path.splitext(os.path.basename(source_path))[0]
    return os.path.join(folder, f"{stem}{suffix}-{item_id[:8]}{ext}")
