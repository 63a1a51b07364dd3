# app/services/notifier.py
"""
Order event fan-out (fire-and-forget).

- `LocalOrderEvents`: in-process subscriber registry, one per app instance.
  Storefront/admin/delivery live views subscribe to it.
- `FcmOrderNotifier`: Firebase Cloud Messaging topic messages
  (`orders_admin`, `orders_delivery`, `user_<uid>`).
- `FanoutNotifier`: publishes one event to several notifiers.

No notifier gives delivery guarantees; failures are logged and dropped.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from firebase_admin import exceptions as fb_exceptions
from firebase_admin import messaging

from app.schemas.order import Order, utcnow

logger = logging.getLogger("grocer.events")

NEW_ORDER = "new_order"
ORDER_STATUS_UPDATED = "order_status_updated"


@dataclass(frozen=True)
class OrderEvent:
    type: str
    order_id: str
    status: str
    user_id: str
    delivery_partner_id: Optional[str] = None
    at: datetime = field(default_factory=utcnow)

    @classmethod
    def for_order(cls, type_: str, order: Order) -> OrderEvent:
        return cls(
            type=type_,
            order_id=order.id,
            status=order.status.value,
            user_id=order.user_id,
            delivery_partner_id=order.delivery_partner_id,
        )

    def as_data(self) -> dict:
        # FCM data payloads only carry strings
        return {
            "type": self.type,
            "order_id": self.order_id,
            "status": self.status,
            "user_id": self.user_id,
            "delivery_partner_id": self.delivery_partner_id or "",
            "at": self.at.isoformat(),
        }


class Notifier(Protocol):
    def publish(self, event: OrderEvent) -> None: ...


Subscriber = Callable[[OrderEvent], None]


class LocalOrderEvents:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers a callback; returns the matching unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: OrderEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Order event subscriber failed (%s %s)", event.type, event.order_id)


class FcmOrderNotifier:
    ADMIN_TOPIC = "orders_admin"
    DELIVERY_TOPIC = "orders_delivery"

    def __init__(self, app=None):
        self._app = app

    def _topics(self, event: OrderEvent) -> List[str]:
        topics = [self.ADMIN_TOPIC, f"user_{event.user_id}"]
        if event.type == NEW_ORDER or event.status == "packed":
            topics.append(self.DELIVERY_TOPIC)
        return topics

    def publish(self, event: OrderEvent) -> None:
        for topic in self._topics(event):
            message = messaging.Message(
                notification=messaging.Notification(
                    title="New order" if event.type == NEW_ORDER else "Order update",
                    body=f"Order {event.order_id} is {event.status}",
                ),
                data=event.as_data(),
                topic=topic,
            )
            try:
                messaging.send(message, app=self._app)
            except (fb_exceptions.FirebaseError, ValueError) as exc:
                logger.warning("FCM publish to %s failed: %s", topic, exc)


class FanoutNotifier:
    def __init__(self, *notifiers: Notifier):
        self._notifiers = notifiers

    def publish(self, event: OrderEvent) -> None:
        for notifier in self._notifiers:
            try:
                notifier.publish(event)
            except Exception:
                logger.exception("Notifier %s failed", type(notifier).__name__)
