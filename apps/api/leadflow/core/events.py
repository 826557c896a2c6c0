from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous pub/sub; handlers run on the publishing thread in subscription order."""

    def __init__(self) -> None:
        self._handlers: dict[str, tuple[EventHandler, ...]] = {}
        self._lock = Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[event_name] = (*self._handlers.get(event_name, ()), handler)

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        event = InternalEvent(name=event_name, payload=payload)
        for handler in self._handlers.get(event_name, ()):
            handler(event)


event_bus = InProcessEventBus()
