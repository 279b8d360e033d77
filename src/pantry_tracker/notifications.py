"""Notification hand-off for expiry alerts."""

import logging
from typing import Protocol

from .data_store import InventoryStore
from .models import NotificationPayload

logger = logging.getLogger(__name__)


class NotificationService(Protocol):
    """Anything that can accept a notification for delivery."""

    def send(self, payload: NotificationPayload) -> None: ...


class NotificationOutbox:
    """Stores payloads in the inventory store for the application to deliver."""

    def __init__(self, data_store: InventoryStore):
        self.data_store = data_store

    def send(self, payload: NotificationPayload) -> None:
        self.data_store.add_notification(payload)
        logger.info(
            "Queued %s notification for %s: %s", payload.kind, payload.owner_id, payload.title
        )

    def pending(self, owner_id: str | None = None) -> list[NotificationPayload]:
        """Payloads stored so far, oldest first."""
        return self.data_store.load_notifications(owner_id)
