"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Dict, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """In-process event bus.

    Handlers are matched on the exact event class.  ``publish`` returns the
    number of handlers that received the event so relays can tell an
    unhandled event from a delivered one.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}
        self._by_name: Dict[str, Type[DomainEvent]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)
        self._by_name[event_class.__name__] = event_class

    def publish(self, event: DomainEvent) -> int:
        handlers = self._handlers.get(type(event), [])
        for handler in handlers:
            handler.handle(event)
        return len(handlers)

    def event_class_for(self, event_name: str) -> Type[DomainEvent] | None:
        """Resolve a subscribed event class from its stored ``event_name``."""
        return self._by_name.get(event_name)


# Global bus instance (singleton)

event_bus = InMemoryEventBus()
