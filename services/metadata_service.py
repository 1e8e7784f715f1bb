# services/metadata_service.py

from __future__ import annotations

from PIL import Image, UnidentifiedImageError

from domain.errors import UnableToLoadImage
from domain.models import MediaProbe, Resolution


def probe_image(path: str) -> MediaProbe:
    """
    Pixel size and format of an image, read from its header only.

    Raises UnableToLoadImage when the file is missing, unreadable or carries
    no usable dimensions.
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            fmt = (img.format or "").lower()
    except FileNotFoundError:
        raise UnableToLoadImage(f"Image not found: {path}")
    except UnidentifiedImageError:
        raise UnableToLoadImage("Could not retrieve image properties.")
    except (OSError, ValueError) as e:
        raise UnableToLoadImage(f"Could not read image: {e}")

    if not width or not height:
        raise UnableToLoadImage("Could not load image dimensions.")

    return MediaProbe(resolution=Resolution(int(width), int(height)), encoding=fmt)
