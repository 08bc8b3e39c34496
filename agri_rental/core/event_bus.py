"""
In-process domain event bus.

Lifecycle services publish; audit, notification and metrics subscribers
consume. Every subscriber runs in isolation: whatever it raises is logged
and counted here and never reaches the publisher, so a side-effect outage
cannot undo or block a committed state change.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from agri_rental.core.metrics import event_subscriber_failures

logger = logging.getLogger(__name__)


class EventSubscriber(Protocol):
    async def on_event(self, event: Any) -> None:
        """Consume a domain event."""


class EventBus:
    """Dispatches events to registered subscribers."""

    def __init__(self, subscribers: Iterable[EventSubscriber] | None = None) -> None:
        self._subscribers: list[EventSubscriber] = list(subscribers) if subscribers is not None else []

    @property
    def subscribers(self) -> tuple[EventSubscriber, ...]:
        return tuple(self._subscribers)

    def register(self, subscriber: EventSubscriber) -> None:
        """Register a new subscriber."""
        self._subscribers.append(subscriber)

    async def publish(self, event: Any) -> None:
        """Deliver an event to every subscriber, in registration order."""
        for subscriber in self._subscribers:
            name = type(subscriber).__name__
            try:
                await subscriber.on_event(event)
            except Exception:
                event_subscriber_failures.labels(
                    subscriber=name,
                    event=type(event).__name__,
                ).inc()
                logger.error(
                    f"Subscriber {name} failed on {type(event).__name__}",
                    exc_info=True,
                )
