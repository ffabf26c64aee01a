"""Tests for the Event Bus."""

from cadence.core.bus import EventBus
from cadence.core.events import Event, EventType


def test_emit_and_subscribe(bus: EventBus):
    """Basic pub/sub works."""
    received = []
    bus.on(EventType.TASK_FIRED, received.append)
    bus.emit(Event(type=EventType.TASK_FIRED, data={"name": "poll"}))

    assert len(received) == 1
    assert received[0].data == {"name": "poll"}


def test_wildcard_subscription(bus: EventBus):
    """Wildcard 'task:*' matches 'task:fired'."""
    received = []
    bus.on("task:*", lambda e: received.append(e.type))

    bus.emit(Event(type=EventType.TASK_FIRED))
    bus.emit(Event(type=EventType.TASK_REMOVED))
    bus.emit(Event(type=EventType.SCHEDULER_START))  # should NOT match

    assert received == ["task:fired", "task:removed"]


def test_catch_all_subscription(bus: EventBus):
    received = []
    bus.on("*", lambda e: received.append(e.type))

    bus.emit(Event(type=EventType.TASK_ADDED))
    bus.emit(Event(type=EventType.SCHEDULER_STOP))

    assert len(received) == 2


def test_unsubscribe(bus: EventBus):
    received = []
    handler = received.append
    bus.on(EventType.TASK_FIRED, handler)
    bus.off(EventType.TASK_FIRED, handler)

    bus.emit(Event(type=EventType.TASK_FIRED))

    assert received == []
    assert bus.subscriber_count == 0


def test_failing_handler_is_isolated(bus: EventBus, caplog):
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.on(EventType.TASK_FIRED, broken)
    bus.on(EventType.TASK_FIRED, received.append)

    bus.emit(Event(type=EventType.TASK_FIRED))

    assert len(received) == 1
    assert "Subscriber error for task:fired" in caplog.text


def test_subscriber_count(bus: EventBus):
    bus.on("task:*", lambda e: None)
    bus.on("*", lambda e: None)
    bus.on("*", lambda e: None)
    assert bus.subscriber_count == 3
