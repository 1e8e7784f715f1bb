IMAGE_EXTS = {
    ".jpg", ".jpeg", ".png", ".heic", ".heif", ".bmp", ".tif", ".tiff", ".gif", ".webp"
}

VIDEO_EXTS = {
    ".mp4", ".mov", ".m4v", ".avi", ".wmv", ".webm", ".mkv", ".3gp", ".mts", ".m2ts",
    ".mpg", ".mpeg", ".vob", ".ts", ".flv"
}

CONTENT_TYPE_VIDEO = "VIDEO"
CONTENT_TYPE_IMAGE = "IMAGE"
CONTENT_TYPE_UNSUPPORTED = "UNSUPPORTED"

TARGET_EXTS = {
    CONTENT_TYPE_VIDEO: ".mp4",
    CONTENT_TYPE_IMAGE: ".jpg",
}

# preset encoding identifier -> ffmpeg encoder
VIDEO_ENCODERS = {
    "avc": "libx264",
    "hevc": "libx265",
}

ITEM_STATUS_IDLE = "IDLE"
ITEM_STATUS_RUNNING = "RUNNING"
ITEM_STATUS_SUCCEEDED = "SUCCEEDED"
ITEM_STATUS_FAILED = "FAILED"

DEFAULT_TEMP_SUFFIX = ".tmp"
DEFAULT_JPEG_QUALITY = 75
DEFAULT_THUMBNAIL_SIZE = 100
