from datetime import datetime
from typing import Optional

def now_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat()

def elapsed_seconds(begin: Optional[str], end: Optional[str]) -> Optional[int]:
    """Whole seconds between two now_iso() stamps; None while either is unset."""
    if not begin or not end:
        return None
    delta = datetime.fromisoformat(end) - datetime.fromisoformat(begin)
    return int(delta.total_seconds())
