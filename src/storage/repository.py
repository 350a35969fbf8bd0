# src/storage/repository.py

"""Persistence contract consumed by the tracker services."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.models.notification import Notification, NotificationKind
from src.models.price_history import PriceHistoryEntry
from src.models.tracked_product import TrackedProduct
from src.models.user_settings import UserSettings


class Repository(ABC):
    """Durable store for products, history, notifications and settings.

    Implementations own id assignment.  Writes to one product row must
    not tear; concurrent writers get last-write-wins.
    """

    # ── Tracked products ─────────────────────────────────

    @abstractmethod
    def list_active(
        self, email: str | None = None,
    ) -> list[TrackedProduct]:
        """Active products, optionally for one owner, oldest first."""

    @abstractmethod
    def get(self, product_ref: int) -> TrackedProduct | None:
        """Product by internal id, active or not."""

    @abstractmethod
    def find_by_external_id(
        self, product_id: str, email: str,
    ) -> TrackedProduct | None:
        """Active product tracking *product_id* for *email*."""

    @abstractmethod
    def create(
        self,
        *,
        product_id: str,
        title: str,
        current_price: Decimal,
        target_price: Decimal,
        url: str,
        user_email: str,
        image_url: str | None = None,
        original_price: Decimal | None = None,
    ) -> TrackedProduct:
        """Insert a new active product."""

    @abstractmethod
    def update(self, product_ref: int, **changes: Any) -> TrackedProduct:
        """Apply *changes*; raises ``NotFound`` for an unknown id."""

    @abstractmethod
    def soft_delete(self, product_ref: int) -> None:
        """Flip ``is_active`` off; history and notifications remain."""

    # ── Price history ────────────────────────────────────

    @abstractmethod
    def append_history(
        self,
        product_ref: int,
        price: Decimal,
        recorded_at: datetime | None = None,
    ) -> PriceHistoryEntry:
        """Append one observation."""

    @abstractmethod
    def list_history(self, product_ref: int) -> list[PriceHistoryEntry]:
        """All observations for a product, newest first."""

    # ── Notifications ────────────────────────────────────

    @abstractmethod
    def create_notification(
        self,
        product_ref: int,
        kind: NotificationKind,
        old_price: Decimal,
        new_price: Decimal,
    ) -> Notification:
        """Insert an unsent notification."""

    @abstractmethod
    def list_pending(self) -> list[Notification]:
        """Unsent notifications, oldest first."""

    @abstractmethod
    def list_notifications(self, product_ref: int) -> list[Notification]:
        """Every notification for a product, sent or not."""

    @abstractmethod
    def mark_sent(self, notification_id: int) -> None:
        """Set ``sent``; unknown or already-sent ids are a no-op."""

    @abstractmethod
    def increment_delivery_attempts(self, notification_id: int) -> int:
        """Bump and return the failed-delivery counter."""

    # ── Settings ─────────────────────────────────────────

    @abstractmethod
    def get_settings(self, email: str) -> UserSettings | None:
        """Settings for *email*, if any were saved."""

    @abstractmethod
    def list_all_settings(self) -> list[UserSettings]:
        """Every saved settings record."""

    @abstractmethod
    def upsert_settings(self, settings: UserSettings) -> UserSettings:
        """Insert or replace the record keyed by its email."""
