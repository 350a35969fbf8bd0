# src/services/notification_delivery.py

"""Delivery consumer: pending notifications -> mailer -> mark sent."""

import logging
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.errors import DeliveryFailed
from src.models.notification import NotificationKind, PendingNotification
from src.models.tracked_product import TrackedProduct
from src.services.email_composer import (
    compose_price_drop_alert,
    compose_weekly_summary,
)
from src.services.mailer import Mailer
from src.services.notification_ledger import NotificationLedger
from src.storage.repository import Repository

logger = logging.getLogger("price_tracker.delivery")


@dataclass
class DeliveryReport:
    """Outcome of one pass over the pending notifications."""

    sent: int = 0
    acknowledged: int = 0
    failed: int = 0
    suppressed: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


class NotificationDelivery:
    """Delivers pending notifications at least once.

    A failed send leaves the notification pending for the next pass.
    After ``max_attempts`` failures it is marked sent and dropped so
    a permanently bad address cannot be retried forever.
    """

    def __init__(
        self,
        repository: Repository,
        mailer: Mailer,
        ledger: NotificationLedger | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.repository = repository
        self.mailer = mailer
        self.ledger = ledger or NotificationLedger(repository)
        self.max_attempts = (
            max_attempts
            if max_attempts is not None
            else Settings.MAX_DELIVERY_ATTEMPTS
        )

    def _wants_email(self, item: PendingNotification) -> bool:
        if item.notification.kind is not NotificationKind.PRICE_DROP:
            return False
        if not item.product.is_active:
            return False
        settings = self.repository.get_settings(item.recipient)
        return settings is None or settings.email_price_drops

    def _send(self, item: PendingNotification) -> None:
        """Compose and send; raises ``DeliveryFailed`` on rejection."""
        message = compose_price_drop_alert(
            item.product,
            item.notification.old_price,
            item.notification.new_price,
        )
        try:
            accepted = self.mailer.send(message)
        except Exception as exc:
            raise DeliveryFailed(item.id, str(exc)) from exc
        if not accepted:
            raise DeliveryFailed(item.id, "mailer rejected message")

    def deliver_pending(self) -> DeliveryReport:
        """One delivery pass over ``ledger.pending()``."""
        report = DeliveryReport()
        for item in self.ledger.pending():
            if not self._wants_email(item):
                self.ledger.mark_sent(item.id)
                report.acknowledged += 1
                logger.debug(
                    "Acknowledged %s notification %d without email",
                    item.notification.kind.value,
                    item.id,
                )
                continue

            try:
                self._send(item)
            except DeliveryFailed as exc:
                report.failed += 1
                report.errors.append(str(exc))
                attempts = self.repository.increment_delivery_attempts(
                    item.id
                )
                logger.error("%s (attempt %d)", exc, attempts)
                if attempts >= self.max_attempts:
                    self.ledger.mark_sent(item.id)
                    report.suppressed += 1
                    logger.warning(
                        "Giving up on notification %d for %s after "
                        "%d attempts",
                        item.id,
                        item.recipient,
                        attempts,
                    )
                continue

            self.ledger.mark_sent(item.id)
            report.sent += 1
            logger.info(
                "Price drop email for product %d sent to %s",
                item.product.id,
                item.recipient,
            )

        if report.sent or report.failed:
            logger.info(
                "Delivery pass: %d sent, %d failed, %d acknowledged, "
                "%d suppressed",
                report.sent,
                report.failed,
                report.acknowledged,
                report.suppressed,
            )
        return report

    def send_weekly_summaries(self) -> int:
        """Email each opted-in owner a digest; returns the count sent."""
        by_owner: dict[str, list[TrackedProduct]] = {}
        for product in self.repository.list_active():
            by_owner.setdefault(product.user_email, []).append(product)

        sent = 0
        for settings in self.repository.list_all_settings():
            if not settings.email_weekly_summary:
                continue
            products = by_owner.get(settings.user_email)
            if not products:
                continue
            message = compose_weekly_summary(settings.user_email, products)
            try:
                accepted = self.mailer.send(message)
            except Exception as exc:
                logger.error(
                    "Weekly summary to %s failed: %s",
                    settings.user_email,
                    exc,
                    exc_info=True,
                )
                continue
            if accepted:
                sent += 1
            else:
                logger.error(
                    "Weekly summary to %s was rejected",
                    settings.user_email,
                )
        logger.info("Weekly summaries sent: %d", sent)
        return sent
