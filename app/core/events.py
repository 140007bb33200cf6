"""
In-process domain events.

Entities record events while they change state; the Unit of Work collects
them after a successful flush and hands them to the dispatcher, which calls
every handler registered for the event class (or one of its bases).
"""

from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeVar

from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for domain events."""

    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        return type(self).__name__


class HasDomainEvents:
    """
    Mixin for entities that raise domain events.

    Events live in the instance ``__dict__`` under a private key, outside the
    mapped columns, so ORM-loaded instances get an empty list on first access.
    """

    @property
    def domain_events(self) -> list[DomainEvent]:
        return self.__dict__.setdefault("_domain_events", [])

    def add_domain_event(self, event: DomainEvent) -> None:
        self.domain_events.append(event)

    def clear_domain_events(self) -> list[DomainEvent]:
        events = list(self.domain_events)
        self.domain_events.clear()
        return events


EventHandler = Callable[[Any], Awaitable[None]]
E = TypeVar("E", bound=DomainEvent)


class EventDispatcher:
    """Registry of async handlers keyed by event class."""

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = defaultdict(list)

    def register(
        self, event_type: type[E]
    ) -> Callable[[Callable[[E], Awaitable[None]]], Callable[[E], Awaitable[None]]]:
        """
        Decorator registering a handler for ``event_type``.

        Example:
            @dispatcher.register(TodoItemCompleted)
            async def log_completed(event: TodoItemCompleted) -> None:
                ...
        """

        def decorator(handler: Callable[[E], Awaitable[None]]) -> Callable[[E], Awaitable[None]]:
            self._handlers[event_type].append(handler)
            return handler

        return decorator

    def handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for cls in type(event).__mro__:
            handlers.extend(self._handlers.get(cls, []))
        return handlers

    async def dispatch(self, events: Iterable[DomainEvent]) -> None:
        """Run every handler for each event, in order. Handler errors propagate."""
        for event in events:
            for handler in self.handlers_for(event):
                try:
                    await handler(event)
                except Exception as e:
                    logger.error(
                        "domain_event_handler_failed",
                        event=event.name,
                        handler=getattr(handler, "__name__", repr(handler)),
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise


# Global dispatcher used by the Unit of Work
dispatcher = EventDispatcher()
