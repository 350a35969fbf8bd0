# src/services/notification_ledger.py

"""Pending/sent bookkeeping for price change notifications."""

import logging
from decimal import Decimal

from src.models.notification import (
    Notification,
    NotificationKind,
    PendingNotification,
)
from src.models.price import to_price
from src.storage.repository import Repository

logger = logging.getLogger("price_tracker.ledger")


class NotificationLedger:
    """Records notifications and hands unsent ones to a delivery consumer.

    The ledger never talks to a mailer.  Re-reading ``pending()`` is
    safe; only ``mark_sent`` changes delivery state.
    """

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def record(
        self,
        product_ref: int,
        kind: NotificationKind,
        old_price: Decimal,
        new_price: Decimal,
    ) -> Notification:
        notification = self.repository.create_notification(
            product_ref,
            kind,
            to_price(old_price),
            to_price(new_price),
        )
        logger.info(
            "Recorded %s notification %d for product %d (%s -> %s)",
            kind.value,
            notification.id,
            product_ref,
            old_price,
            new_price,
        )
        return notification

    def pending(self) -> list[PendingNotification]:
        """Unsent notifications joined with their products."""
        result: list[PendingNotification] = []
        for notification in self.repository.list_pending():
            product = self.repository.get(notification.product_ref)
            if product is None:
                logger.warning(
                    "Notification %d references missing product %d",
                    notification.id,
                    notification.product_ref,
                )
                continue
            result.append(PendingNotification(notification, product))
        return result

    def mark_sent(self, notification_id: int) -> None:
        """Idempotent; unknown ids are ignored."""
        self.repository.mark_sent(notification_id)
        logger.debug("Notification %d marked sent", notification_id)
