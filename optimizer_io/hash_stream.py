# optimizer_io/hash_stream.py

from blake3 import blake3

from optimizer_io.path_utils import norm_abs_path


def path_digest(path: str, length: int = 16) -> str:
    """
    Stable id for a file location. Same path -> same id across rescans.
    """
    h = blake3(norm_abs_path(path).encode("utf-8", errors="surrogateescape"))
    return h.hexdigest()[:length]
