"""Publish/subscribe fan-out for store mutations."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from .models import StoreEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[StoreEvent], None]


@dataclass(eq=False)
class _Subscription:
    callback: Subscriber


class EventBroadcaster:
    """Delivers every event to all subscribers in registration order.

    A subscriber that raises is logged and skipped; it never affects the
    remaining subscribers or the caller of ``notify``.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*. The returned handle removes exactly this registration."""
        subscription = _Subscription(callback)
        with self._lock:
            self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return unsubscribe

    def notify(self, event: StoreEvent) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            try:
                subscription.callback(event)
            except Exception:
                logger.exception("Subscriber %r failed handling %s event", subscription.callback, event.type)
