"""Event bus for launch session events."""

import logging
from collections.abc import Callable

from unvcpfl_cli.events.schemas import SessionEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """Synchronous publish/subscribe for session events.

    Handlers run in subscription order on the publisher's task. A handler that
    raises is logged and skipped; the supervisor never sees the error.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[EventHandler, tuple[type, ...] | None]] = []

    def subscribe(self, handler: EventHandler, *event_types: type) -> None:
        """Subscribe a handler.

        Args:
            handler: Callable that takes a SessionEvent
            event_types: Only deliver these event classes (all events when omitted)
        """
        self._subscribers.append((handler, event_types or None))

    def unsubscribe(self, handler: EventHandler) -> None:
        self._subscribers = [(h, types) for h, types in self._subscribers if h != handler]

    def publish(self, event: SessionEvent) -> None:
        for handler, types in list(self._subscribers):
            if types is not None and not isinstance(event, types):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in event handler {getattr(handler, '__name__', handler)!r} for {event.type}")
