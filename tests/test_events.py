import pytest

from domain.events import EventBus, ItemEvent
from domain.models import MediaItem


def test_subscribers_receive_events_until_unsubscribed():
    bus = EventBus()
    got = []
    handler = bus.subscribe(got.append)

    bus.emit("abc", "status", "RUNNING")
    bus.unsubscribe(handler)
    bus.emit("abc", "status", "SUCCEEDED")

    assert got == [ItemEvent("abc", "status", "RUNNING")]


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    got = []

    def broken(event):
        raise ValueError("boom")

    bus.subscribe(broken)
    bus.subscribe(got.append)
    bus.emit(None, "time_begin", "2024-01-01T00:00:00")

    assert len(got) == 1


def test_item_update_emits_only_changes():
    item = MediaItem(id="x", source_path="/a.png", target_path="/a.jpg", content_type="IMAGE")
    seen = []

    item.update(lambda *e: seen.append(e), error="", status="RUNNING", completion_percentage=0.0)

    assert seen == [("x", "status", "RUNNING"), ("x", "completion_percentage", 0.0)]
    with pytest.raises(AttributeError):
        item.update(None, bogus=1)
