# src/storage/memory_repository.py

"""Dict-backed repository for tests and throwaway runs."""

import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.errors import DuplicateTracking, NotFound, ValidationError
from src.models.notification import Notification, NotificationKind
from src.models.price_history import PriceHistoryEntry
from src.models.tracked_product import UPDATABLE_FIELDS, TrackedProduct
from src.models.user_settings import UserSettings
from src.storage.repository import Repository


class InMemoryRepository(Repository):
    """Keeps everything in process memory behind one lock.

    Reads hand out copies so callers never mutate stored rows in place.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._products: dict[int, TrackedProduct] = {}
        self._history: dict[int, PriceHistoryEntry] = {}
        self._notifications: dict[int, Notification] = {}
        self._attempts: dict[int, int] = {}
        self._settings: dict[str, UserSettings] = {}
        self._next_product = 1
        self._next_history = 1
        self._next_notification = 1
        self._next_settings = 1

    # ── Tracked products ─────────────────────────────────

    def list_active(
        self, email: str | None = None,
    ) -> list[TrackedProduct]:
        with self._lock:
            return [
                replace(p)
                for p in self._products.values()
                if p.is_active and (email is None or p.user_email == email)
            ]

    def get(self, product_ref: int) -> TrackedProduct | None:
        with self._lock:
            product = self._products.get(product_ref)
            return replace(product) if product else None

    def find_by_external_id(
        self, product_id: str, email: str,
    ) -> TrackedProduct | None:
        with self._lock:
            for p in self._products.values():
                if (
                    p.is_active
                    and p.product_id == product_id
                    and p.user_email == email
                ):
                    return replace(p)
        return None

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
        now = datetime.now()
        with self._lock:
            if any(
                p.is_active
                and p.product_id == product_id
                and p.user_email == user_email
                for p in self._products.values()
            ):
                raise DuplicateTracking(product_id, user_email)
            product = TrackedProduct(
                id=self._next_product,
                product_id=product_id,
                title=title,
                current_price=current_price,
                target_price=target_price,
                url=url,
                user_email=user_email,
                image_url=image_url,
                original_price=original_price,
                created_at=now,
                updated_at=now,
            )
            self._products[product.id] = product
            self._next_product += 1
            return replace(product)

    def update(self, product_ref: int, **changes: Any) -> TrackedProduct:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}"
            )
        with self._lock:
            product = self._products.get(product_ref)
            if product is None:
                raise NotFound("Product", product_ref)
            updated = replace(
                product, **changes, updated_at=datetime.now()
            )
            self._products[product_ref] = updated
            return replace(updated)

    def soft_delete(self, product_ref: int) -> None:
        self.update(product_ref, is_active=False)

    # ── Price history ────────────────────────────────────

    def append_history(
        self,
        product_ref: int,
        price: Decimal,
        recorded_at: datetime | None = None,
    ) -> PriceHistoryEntry:
        with self._lock:
            entry = PriceHistoryEntry(
                id=self._next_history,
                product_ref=product_ref,
                price=price,
                recorded_at=recorded_at or datetime.now(),
            )
            self._history[entry.id] = entry
            self._next_history += 1
            return entry

    def list_history(self, product_ref: int) -> list[PriceHistoryEntry]:
        with self._lock:
            entries = [
                e for e in self._history.values()
                if e.product_ref == product_ref
            ]
        return sorted(
            entries, key=lambda e: (e.recorded_at, e.id), reverse=True
        )

    # ── Notifications ────────────────────────────────────

    def create_notification(
        self,
        product_ref: int,
        kind: NotificationKind,
        old_price: Decimal,
        new_price: Decimal,
    ) -> Notification:
        with self._lock:
            notification = Notification(
                id=self._next_notification,
                product_ref=product_ref,
                kind=kind,
                old_price=old_price,
                new_price=new_price,
            )
            self._notifications[notification.id] = notification
            self._next_notification += 1
            return replace(notification)

    def list_pending(self) -> list[Notification]:
        with self._lock:
            return [
                replace(n) for n in self._notifications.values()
                if not n.sent
            ]

    def list_notifications(self, product_ref: int) -> list[Notification]:
        with self._lock:
            return [
                replace(n) for n in self._notifications.values()
                if n.product_ref == product_ref
            ]

    def mark_sent(self, notification_id: int) -> None:
        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is not None:
                notification.sent = True

    def increment_delivery_attempts(self, notification_id: int) -> int:
        with self._lock:
            count = self._attempts.get(notification_id, 0) + 1
            self._attempts[notification_id] = count
            return count

    # ── Settings ─────────────────────────────────────────

    def get_settings(self, email: str) -> UserSettings | None:
        with self._lock:
            settings = self._settings.get(email)
            return replace(settings) if settings else None

    def list_all_settings(self) -> list[UserSettings]:
        with self._lock:
            return [replace(s) for s in self._settings.values()]

    def upsert_settings(self, settings: UserSettings) -> UserSettings:
        now = datetime.now()
        with self._lock:
            existing = self._settings.get(settings.user_email)
            if existing is None:
                stored = replace(
                    settings,
                    id=self._next_settings,
                    created_at=now,
                    updated_at=now,
                )
                self._next_settings += 1
            else:
                stored = replace(
                    settings,
                    id=existing.id,
                    created_at=existing.created_at,
                    updated_at=now,
                )
            self._settings[stored.user_email] = stored
            return replace(stored)
