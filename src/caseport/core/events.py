# src/caseport/core/events.py
"""Event bus for import callbacks.

Checked record creation emits a RecordCreated event after every insert;
this is where an application hooks the side effects it normally runs on
record creation. Raw creation emits nothing.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RecordCreated:
    """A record was written by checked creation."""

    entity_type: str
    record_id: int
    original_id: int
    values: dict[str, Any]


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations.

    Allows both EventBus and NullEventBus to satisfy the interface
    without inheritance.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type."""
        ...

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers."""
        ...


class EventBus:
    """Simple synchronous event bus.

    Handlers run in subscription order, inside the importer's transaction.
    Handler exceptions propagate and abort the import.

    Example:
        bus = EventBus()
        bus.subscribe(RecordCreated, lambda e: print(e.entity_type, e.record_id))
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)

    def emit(self, event: T) -> None:
        handlers = self._subscribers.get(type(event), [])
        for handler in handlers:
            handler(event)


class NullEventBus:
    """No-op event bus for library use where nothing listens.

    Does NOT inherit from EventBus: subscribing to it is a no-op, and
    inheritance would hide that from a caller expecting callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        pass

    def emit(self, event: T) -> None:
        pass
