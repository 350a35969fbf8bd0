# src/services/tracking_service.py

"""Caller-facing operations on tracked products and settings."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.config.settings import Settings
from src.errors import DuplicateTracking, NotFound, ValidationError
from src.filters.identifier_parser import (
    canonical_url,
    parse_product_identifier,
)
from src.filters.snapshot_validator import SnapshotValidator
from src.models.price import ZERO, to_price
from src.models.price_history import PriceHistoryEntry
from src.models.tracked_product import TrackedProduct
from src.models.user_settings import UserSettings
from src.services.email_composer import compose_price_drop_alert
from src.services.mailer import Mailer
from src.services.price_checker import CheckOutcome, PriceChecker
from src.services.price_extractor import PriceExtractor
from src.storage.repository import Repository

logger = logging.getLogger("price_tracker.tracking")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TEST_DROP_FACTOR = Decimal("0.8")


def validate_email(email: str) -> str:
    """Normalise and check an owner email."""
    cleaned = (email or "").strip().lower()
    if not _EMAIL_RE.match(cleaned):
        raise ValidationError(f"Invalid email address: {email!r}")
    return cleaned


@dataclass
class TrackingStats:
    """Dashboard numbers for one owner."""

    tracked_count: int
    price_drops: int
    total_savings: Decimal
    last_check: datetime | None


class TrackingService:
    """Add, edit and inspect tracked products for an owner."""

    def __init__(
        self,
        repository: Repository,
        extractor: PriceExtractor | None = None,
        mailer: Mailer | None = None,
    ) -> None:
        self.repository = repository
        self._extractor = extractor
        self.mailer = mailer

    @property
    def extractor(self) -> PriceExtractor:
        if self._extractor is None:
            self._extractor = PriceExtractor()
        return self._extractor

    # ── Products ─────────────────────────────────────────

    def add_product(
        self,
        product_id: str,
        email: str,
        title: str,
        current_price: Any,
        target_price: Any,
        image_url: str | None = None,
        url: str | None = None,
        original_price: Any = None,
    ) -> TrackedProduct:
        """Start tracking a product; records the first history entry."""
        product_id = parse_product_identifier(product_id)
        email = validate_email(email)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        current = to_price(current_price)
        target = to_price(target_price)
        original = (
            to_price(original_price) if original_price is not None
            else current
        )

        if self.repository.find_by_external_id(product_id, email):
            raise DuplicateTracking(product_id, email)

        product = self.repository.create(
            product_id=product_id,
            title=title,
            current_price=current,
            target_price=target,
            url=url or canonical_url(product_id),
            user_email=email,
            image_url=image_url,
            original_price=original,
        )
        self.repository.append_history(product.id, current)
        logger.info(
            "Now tracking %s (%r) for %s at %s, target %s",
            product_id,
            title,
            email,
            current,
            target,
        )
        return product

    def add_from_lookup(
        self,
        raw_input: str,
        email: str,
        target_price: Any,
        title: str | None = None,
        current_price: Any = None,
    ) -> TrackedProduct:
        """Look a product up and track it.

        A placeholder snapshot is only accepted when the caller supplies
        the missing title and price.
        """
        email = validate_email(email)
        to_price(target_price)
        snapshot = self.extractor.lookup(raw_input)

        if snapshot.needs_manual_entry:
            if not title or current_price is None:
                raise ValidationError(
                    f"Could not fetch details for {snapshot.product_id}; "
                    "provide a title and current price"
                )
        resolved_title = title or snapshot.title
        resolved_price = (
            current_price if current_price is not None else snapshot.price
        )
        if not title and not SnapshotValidator.is_valid_title(
            resolved_title
        ):
            raise ValidationError(
                f"Fetched title for {snapshot.product_id} is unusable"
            )
        if current_price is None and not snapshot.has_price:
            raise ValidationError(
                f"No price found for {snapshot.product_id}; "
                "provide a current price"
            )
        return self.add_product(
            snapshot.product_id,
            email,
            resolved_title,
            resolved_price,
            target_price,
            image_url=snapshot.image_url,
            url=snapshot.url or None,
        )

    def list_products(self, email: str | None = None) -> list[TrackedProduct]:
        if email is not None:
            email = validate_email(email)
        return self.repository.list_active(email)

    def get_product(self, product_ref: int) -> TrackedProduct:
        product = self.repository.get(product_ref)
        if product is None:
            raise NotFound("Product", product_ref)
        return product

    def update_product(
        self, product_ref: int, **changes: Any,
    ) -> TrackedProduct:
        """Manual edit of title, prices, url or image."""
        for key in ("current_price", "target_price", "original_price"):
            if changes.get(key) is not None:
                changes[key] = to_price(changes[key])
        if "title" in changes:
            changes["title"] = str(changes["title"]).strip()
            if not changes["title"]:
                raise ValidationError("Title must not be empty")
        self.get_product(product_ref)
        return self.repository.update(product_ref, **changes)

    def remove_product(self, product_ref: int) -> None:
        """Stop tracking; history and notifications are kept."""
        self.get_product(product_ref)
        self.repository.soft_delete(product_ref)
        logger.info("Stopped tracking product %d", product_ref)

    def price_history(self, product_ref: int) -> list[PriceHistoryEntry]:
        """Newest first."""
        self.get_product(product_ref)
        return self.repository.list_history(product_ref)

    def simulate_price_change(
        self, product_ref: int, new_price: Any,
    ) -> CheckOutcome:
        """Feed a hand-entered price through the regular check path."""
        product = self.get_product(product_ref)
        if not product.is_active:
            raise NotFound("Product", product_ref)
        checker = PriceChecker(self.repository, self.extractor)
        return checker.apply_price(product, to_price(new_price))

    def stats(self, email: str | None = None) -> TrackingStats:
        products = self.list_products(email)
        below = [p for p in products if p.below_target]
        checks = [p.last_checked for p in products if p.last_checked]
        return TrackingStats(
            tracked_count=len(products),
            price_drops=len(below),
            total_savings=sum((p.potential_savings for p in below), ZERO),
            last_check=max(checks) if checks else None,
        )

    # ── Settings ─────────────────────────────────────────

    def get_settings(self, email: str) -> UserSettings:
        """Stored settings, creating the defaults on first use."""
        email = validate_email(email)
        settings = self.repository.get_settings(email)
        if settings is None:
            settings = self.repository.upsert_settings(
                UserSettings(
                    user_email=email,
                    check_frequency=Settings.DEFAULT_CHECK_FREQUENCY_HOURS,
                    price_threshold=Settings.MIN_CHANGE_THRESHOLD,
                )
            )
        return settings

    def save_settings(
        self,
        email: str,
        email_price_drops: bool | None = None,
        email_weekly_summary: bool | None = None,
        check_frequency: int | None = None,
        price_threshold: Any = None,
    ) -> UserSettings:
        """Validate and upsert; omitted fields keep their stored value."""
        current = self.get_settings(email)
        if (
            check_frequency is not None
            and check_frequency not in Settings.ALLOWED_CHECK_FREQUENCIES
        ):
            allowed = ", ".join(
                str(h) for h in Settings.ALLOWED_CHECK_FREQUENCIES
            )
            raise ValidationError(
                f"Check frequency must be one of {allowed} hours"
            )
        threshold = (
            to_price(price_threshold)
            if price_threshold is not None
            else current.price_threshold
        )
        updated = UserSettings(
            user_email=current.user_email,
            email_price_drops=(
                current.email_price_drops
                if email_price_drops is None else email_price_drops
            ),
            email_weekly_summary=(
                current.email_weekly_summary
                if email_weekly_summary is None else email_weekly_summary
            ),
            check_frequency=(
                current.check_frequency
                if check_frequency is None else check_frequency
            ),
            price_threshold=threshold,
        )
        return self.repository.upsert_settings(updated)

    # ── Test email ───────────────────────────────────────

    def send_test_notification(self, email: str) -> bool:
        """Send a pretend 20% drop alert for the owner's first product."""
        email = validate_email(email)
        if self.mailer is None:
            raise ValidationError("No mailer configured")
        products = self.repository.list_active(email)
        if not products:
            raise NotFound("Tracked product for", email)
        product = products[0]
        old_price = product.current_price
        new_price = to_price(old_price * _TEST_DROP_FACTOR)
        message = compose_price_drop_alert(product, old_price, new_price)
        sent = self.mailer.send(message)
        if sent:
            logger.info("Test notification sent to %s", email)
        else:
            logger.error("Test notification to %s failed", email)
        return sent
