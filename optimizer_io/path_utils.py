import os

def norm_abs_path(p: str) -> str:
    return os.path.abspath(os.path.normpath(p))

def ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

def is_hidden_name(name: str) -> bool:
    return name.startswith(".")

def same_path(a: str, b: str) -> bool:
    """True when a and b name the same file, including case-only differences
    on case-insensitive volumes (normcase is a no-op on POSIX)."""
    a, b = norm_abs_path(a), norm_abs_path(b)
    if os.path.normcase(a) == os.path.normcase(b):
        return True
    if a.lower() != b.lower():
        return False
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False
