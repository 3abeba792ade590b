# app/core/events.py
"""
In-process publisher for committed order events.

The durable feed is the `order_events` table (polled through
GET /orders/events). This publisher is the push side for code running
in the same process: services call `publish` after commit, listeners
registered with `subscribe` are invoked synchronously in sequence order.
"""

import logging
import threading
from typing import Callable

from app.models.order import OrderEvent

logger = logging.getLogger(__name__)

Listener = Callable[[OrderEvent], None]
Predicate = Callable[[OrderEvent], bool]


class OrderChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[int, tuple[Listener, Predicate | None]] = {}
        self._next_token = 0

    def subscribe(self, listener: Listener, predicate: Predicate | None = None) -> Callable[[], None]:
        """
        Register `listener` for events matching `predicate` (all when None).

        Returns a callable that removes the subscription.
        """
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (listener, predicate)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, events: list[OrderEvent]) -> None:
        with self._lock:
            subscribers = list(self._subscribers.values())

        for event in sorted(events, key=lambda e: e.id or 0):
            for listener, predicate in subscribers:
                if predicate is not None and not predicate(event):
                    continue
                try:
                    listener(event)
                except Exception:
                    # A broken listener must not undo a committed write.
                    logger.exception("Order event listener failed for event %s", event.id)


order_feed = OrderChangeFeed()
