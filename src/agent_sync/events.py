"""Synchronous, typed event bus.

Emission is fire-and-forget and off the hot path, so handlers run inline in
registration order. A failing handler is logged and never breaks the emitter.
Each event's payload is one of the TypedDicts below, built by the emitter.
"""

import logging
from collections.abc import Callable
from collections.abc import Mapping
from typing import Any
from typing import Literal
from typing import TypedDict

logger = logging.getLogger(__name__)

EventName = Literal[
    "install:start",
    "install:symlink",
    "install:copy",
    "install:complete",
    "lock:read",
    "lock:write",
    "lock:migrate",
    "cache:hit",
    "cache:miss",
    "operation:start",
    "operation:complete",
    "operation:error",
]


class InstallStartPayload(TypedDict):
    cognitive: str
    target: str
    mode: str


class InstallLinkPayload(TypedDict):
    source: str
    target: str


class InstallCompletePayload(TypedDict):
    cognitive: str
    target: str
    result: Any


class LockReadPayload(TypedDict):
    path: str


class LockWritePayload(TypedDict):
    path: str
    entry_count: int


class LockMigratePayload(TypedDict):
    from_version: int
    to_version: int


class CachePayload(TypedDict):
    kind: str
    key: str
    url: str


class OperationPayload(TypedDict, total=False):
    operation: str
    options: dict[str, Any]
    result: Any
    duration_ms: float
    error: str


Handler = Callable[[Mapping[str, Any]], None]
Unsubscribe = Callable[[], None]


class EventBus:
    """Observer list keyed by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def emit(self, event: EventName, payload: Mapping[str, Any]) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception as e:
                logger.warning(f"Handler for '{event}' failed: {e}")

    def on(self, event: EventName, handler: Handler) -> Unsubscribe:
        """Register `handler`; returns a callable that unregisters it."""
        handlers = self._handlers.setdefault(event, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def once(self, event: EventName, handler: Handler) -> Unsubscribe:
        unsubscribe: Unsubscribe

        def wrapper(payload: Mapping[str, Any]) -> None:
            unsubscribe()
            handler(payload)

        unsubscribe = self.on(event, wrapper)
        return unsubscribe


class CapturingEventBus(EventBus):
    """Event bus that records every emission in order (for tests and diagnostics)."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, Mapping[str, Any]]] = []

    def emit(self, event: EventName, payload: Mapping[str, Any]) -> None:
        self.events.append((event, payload))
        super().emit(event, payload)

    def of(self, event: EventName) -> list[Mapping[str, Any]]:
        """Payloads recorded for one event name."""
        return [payload for name, payload in self.events if name == event]


class NullEventBus:
    """Event sink that drops everything."""

    def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        pass
