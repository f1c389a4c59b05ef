"""Tests for the event bus."""

import logging

from agent_sync import CapturingEventBus
from agent_sync import EventBus


def test_handlers_run_in_registration_order():
    """Test that handlers run in the order they were registered."""
    bus = EventBus()
    seen = []
    bus.on("lock:write", lambda payload: seen.append(("first", payload["entry_count"])))
    bus.on("lock:write", lambda payload: seen.append(("second", payload["entry_count"])))

    bus.emit("lock:write", {"path": "/x", "entry_count": 3})

    assert seen == [("first", 3), ("second", 3)]


def test_unsubscribe():
    """Test that unsubscribing (even twice) stops delivery."""
    bus = EventBus()
    seen = []
    unsubscribe = bus.on("cache:hit", seen.append)

    unsubscribe()
    unsubscribe()
    bus.emit("cache:hit", {"kind": "fetch", "key": "k", "url": "u"})

    assert seen == []


def test_once():
    """Test that a once handler fires a single time."""
    bus = EventBus()
    seen = []
    bus.once("operation:start", seen.append)

    bus.emit("operation:start", {"operation": "check"})
    bus.emit("operation:start", {"operation": "sync"})

    assert seen == [{"operation": "check"}]


def test_failing_handler_does_not_break_emit(caplog):
    """Test that a raising handler is logged and later handlers still run."""
    bus = EventBus()
    seen = []

    def broken(payload):
        raise RuntimeError("handler bug")

    bus.on("install:start", broken)
    bus.on("install:start", seen.append)

    with caplog.at_level(logging.WARNING, logger="agent_sync.events"):
        bus.emit("install:start", {"cognitive": "x", "target": "cursor", "mode": "copy"})

    assert len(seen) == 1
    assert "handler bug" in caplog.text


def test_capturing_bus_records_everything():
    """Test that the capturing bus records emissions and still dispatches."""
    bus = CapturingEventBus()
    seen = []
    bus.on("lock:read", seen.append)

    bus.emit("lock:read", {"path": "/a"})
    bus.emit("lock:write", {"path": "/a", "entry_count": 0})

    assert [name for name, _ in bus.events] == ["lock:read", "lock:write"]
    assert bus.of("lock:read") == [{"path": "/a"}]
    assert seen == [{"path": "/a"}]
