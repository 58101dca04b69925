"""
In-memory event bus for discount engine notifications.

The engine publishes an event whenever it writes or removes a discount and
when a pass finishes. Hosts subscribe to feed audit logs, cache invalidation,
price-drop alerts and the like, without the engine knowing about any of them.

Design decisions:
- Synchronous delivery, in subscription order
- Type-based subscriptions, plus "*" for every event
- A failing handler is logged and does not stop the others
- Publishing is thread-safe so a threaded pass can publish from workers
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

logger = logging.getLogger("discount_events")


@dataclass
class Event:
    """
    Immutable record of something the engine did.

    Attributes:
        event_type: Name used for routing (see events.EventTypes)
        payload: Event-specific data, JSON-friendly
        source: Component that published the event
        event_id: Unique identifier for this event instance
        timestamp: When the event was created
    """
    event_type: str
    payload: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Simple pub/sub bus.

    Example:
        bus = EventBus()
        bus.subscribe("DiscountApplied", lambda event: print(event.payload))
        service = AutoDiscountService(catalog, event_bus=bus)
    """

    def __init__(self, keep_log: bool = True):
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._event_log: list[Event] = []
        self._keep_log = keep_log
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        with self._lock:
            self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to '{event_type}' events")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to every event (audit logging, debugging)."""
        self.subscribe("*", handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Returns:
            True if the handler was found and removed, False otherwise
        """
        with self._lock:
            try:
                self._subscribers[event_type].remove(handler)
            except ValueError:
                return False
        logger.debug(f"Unsubscribed handler from '{event_type}' events")
        return True

    def publish(self, event: Event) -> int:
        """
        Deliver an event to its subscribers.

        Returns:
            Number of handlers called
        """
        with self._lock:
            if self._keep_log:
                self._event_log.append(event)
            handlers = list(self._subscribers.get(event.event_type, []))
            handlers += self._subscribers.get("*", [])

        logger.debug(f"Publishing: {event}")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler raised exception for {event}: {e}")

        return len(handlers)

    def get_subscriber_count(self, event_type: str) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))

    def get_event_log(self, event_type: str | None = None) -> list[Event]:
        """Copy of published events, optionally filtered by type."""
        with self._lock:
            if event_type is None:
                return list(self._event_log)
            return [e for e in self._event_log if e.event_type == event_type]

    def clear_event_log(self) -> None:
        with self._lock:
            self._event_log.clear()
