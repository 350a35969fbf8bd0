# src/models/notification.py

"""Notification ledger models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.models.tracked_product import TrackedProduct


class NotificationKind(str, Enum):
    """What kind of price movement a notification reports."""

    PRICE_DROP = "price_drop"
    PRICE_INCREASE = "price_increase"


@dataclass
class Notification:
    """A qualifying price change awaiting (or done with) delivery."""

    id: int
    product_ref: int
    kind: NotificationKind
    old_price: Decimal
    new_price: Decimal
    sent: bool = False
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class PendingNotification:
    """An unsent notification together with the product it refers to."""

    notification: Notification
    product: TrackedProduct

    @property
    def id(self) -> int:
        return self.notification.id

    @property
    def recipient(self) -> str:
        return self.product.user_email
