import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemEvent:
    item_id: Optional[str]  # None for session-level changes
    field: str
    value: Any


class EventBus:
    """Fan-out of field changes to whoever is watching the session.

    Emitted from worker threads as well as the caller's thread, so the
    subscriber list is guarded and handlers must be thread-safe themselves.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[ItemEvent], None]] = []

    def subscribe(self, handler: Callable[[ItemEvent], None]) -> Callable[[ItemEvent], None]:
        with self._lock:
            self._subscribers.append(handler)
        return handler

    def unsubscribe(self, handler: Callable[[ItemEvent], None]) -> None:
        with self._lock:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

    def emit(self, item_id: Optional[str], field: str, value: Any) -> None:
        with self._lock:
            handlers = list(self._subscribers)
        if not handlers:
            return
        event = ItemEvent(item_id, field, value)
        for h in handlers:
            try:
                h(event)
            except Exception:
                logger.exception("Event handler failed for %s.%s", item_id, field)
