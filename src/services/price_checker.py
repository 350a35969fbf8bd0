# src/services/price_checker.py

"""Per-product price check: extract, classify, record."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from src.config.settings import Settings
from src.errors import ExtractionFailed, NotFound
from src.models.notification import Notification
from src.models.tracked_product import TrackedProduct
from src.services.change_classifier import (
    ChangeDecision,
    classify,
    notification_kind,
)
from src.services.notification_ledger import NotificationLedger
from src.services.price_extractor import PriceExtractor
from src.storage.repository import Repository

logger = logging.getLogger("price_tracker.checker")


class CheckStatus(str, Enum):
    UPDATED = "updated"
    NO_PRICE = "no_price"       # Snapshot found but price unknown
    FAILED = "failed"
    SKIPPED = "skipped"         # Product vanished or deactivated


@dataclass
class CheckOutcome:
    """What one product check observed and wrote."""

    product_ref: int
    status: CheckStatus
    old_price: Decimal | None = None
    new_price: Decimal | None = None
    decision: ChangeDecision | None = None
    notification: Notification | None = None
    error: str = ""


class PriceChecker:
    """Runs one product through extractor and classifier.

    Every successful extraction with a known price appends a history
    entry.  A notification is recorded only when the classifier says so.
    The product row is refreshed regardless of the notify outcome.
    """

    def __init__(
        self,
        repository: Repository,
        extractor: PriceExtractor,
        ledger: NotificationLedger | None = None,
    ) -> None:
        self.repository = repository
        self.extractor = extractor
        self.ledger = ledger or NotificationLedger(repository)

    def _min_change_for(self, email: str) -> Decimal:
        settings = self.repository.get_settings(email)
        if settings is None:
            return Settings.MIN_CHANGE_THRESHOLD
        return settings.price_threshold

    def check_product(
        self, product_ref: int, now: datetime | None = None,
    ) -> CheckOutcome:
        now = now or datetime.now()
        product = self.repository.get(product_ref)
        if product is None or not product.is_active:
            logger.info("Product %d vanished; skipping", product_ref)
            return CheckOutcome(product_ref, CheckStatus.SKIPPED)

        try:
            snapshot = self.extractor.extract(product.product_id)
        except ExtractionFailed as exc:
            logger.warning(
                "Could not fetch current data for product %d (%s)",
                product_ref,
                product.product_id,
            )
            return CheckOutcome(
                product_ref, CheckStatus.FAILED, error=str(exc)
            )

        old_price = product.current_price
        changes: dict[str, object] = {
            "last_checked": now,
            "title": snapshot.title,
            "image_url": snapshot.image_url or product.image_url,
        }

        if not snapshot.has_price:
            # Title-only sources must not overwrite a known price
            if not self._apply(product_ref, changes):
                return CheckOutcome(product_ref, CheckStatus.SKIPPED)
            logger.info(
                "Product %d: %s reported no price",
                product_ref,
                snapshot.source,
            )
            return CheckOutcome(
                product_ref, CheckStatus.NO_PRICE, old_price=old_price
            )

        return self.apply_price(product, snapshot.price, now, **changes)

    def apply_price(
        self,
        product: TrackedProduct,
        new_price: Decimal,
        now: datetime | None = None,
        **changes: object,
    ) -> CheckOutcome:
        """Write an observed price: row, history, then maybe a notification."""
        now = now or datetime.now()
        old_price = product.current_price
        changes["current_price"] = new_price
        changes.setdefault("last_checked", now)
        if not self._apply(product.id, changes):
            return CheckOutcome(product.id, CheckStatus.SKIPPED)

        self.repository.append_history(product.id, new_price, now)

        decision = classify(
            old_price,
            new_price,
            product.target_price,
            min_change=self._min_change_for(product.user_email),
        )
        logger.info(
            "Product %d: old %s, new %s, target %s -> %s",
            product.id,
            old_price,
            new_price,
            product.target_price,
            decision.kind.value,
        )

        notification = None
        kind = notification_kind(decision)
        if kind is not None:
            notification = self.ledger.record(
                product.id, kind, old_price, new_price
            )

        return CheckOutcome(
            product.id,
            CheckStatus.UPDATED,
            old_price=old_price,
            new_price=new_price,
            decision=decision,
            notification=notification,
        )

    def _apply(self, product_ref: int, changes: dict[str, object]) -> bool:
        # The row may have been soft-deleted while extraction ran.
        current = self.repository.get(product_ref)
        if current is None or not current.is_active:
            logger.info(
                "Product %d deleted mid-check; skipping", product_ref
            )
            return False
        try:
            self.repository.update(product_ref, **changes)
        except NotFound:
            logger.info(
                "Product %d deleted mid-check; skipping", product_ref
            )
            return False
        return True

    def due_products(
        self, now: datetime | None = None, force: bool = False,
    ) -> list[TrackedProduct]:
        """Active products whose owner's check interval has elapsed."""
        products = self.repository.list_active()
        if force:
            return products

        now = now or datetime.now()
        frequencies = {
            s.user_email: s.check_frequency
            for s in self.repository.list_all_settings()
        }
        due: list[TrackedProduct] = []
        for product in products:
            hours = frequencies.get(
                product.user_email,
                Settings.DEFAULT_CHECK_FREQUENCY_HOURS,
            )
            if (
                product.last_checked is None
                or now - product.last_checked >= timedelta(hours=hours)
            ):
                due.append(product)
        return due
