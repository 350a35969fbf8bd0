# tests/test_price_checker.py

"""Tests for the per-product check pipeline."""

import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

from src.errors import ExtractionFailed
from src.models.notification import NotificationKind
from src.models.product import ProductSnapshot
from src.models.user_settings import UserSettings
from src.services.change_classifier import ChangeKind
from src.services.price_checker import CheckStatus, PriceChecker
from src.storage.memory_repository import InMemoryRepository

PID = "B08N5WRWNW"
EMAIL = "shopper@example.com"
NOW = datetime(2026, 5, 4, 10, 0, 0)


def _snapshot(price: str, title: str = "Echo Dot (5th Gen)") -> ProductSnapshot:
    return ProductSnapshot(
        product_id=PID,
        title=title,
        price=Decimal(price),
        image_url="https://m.media-amazon.com/images/I/echo.jpg",
    )


class _CheckerCase(unittest.TestCase):

    def setUp(self) -> None:
        self.repo = InMemoryRepository()
        self.extractor = MagicMock()
        self.checker = PriceChecker(self.repo, self.extractor)
        self.product = self.repo.create(
            product_id=PID,
            title="Echo Dot",
            current_price=Decimal("50.00"),
            target_price=Decimal("40.00"),
            url=f"https://www.amazon.com/dp/{PID}",
            user_email=EMAIL,
        )


class TestCheckProduct(_CheckerCase):

    def test_drop_below_target_end_to_end(self) -> None:
        self.extractor.extract.return_value = _snapshot("38.00")

        outcome = self.checker.check_product(self.product.id, now=NOW)

        self.assertIs(outcome.status, CheckStatus.UPDATED)
        self.assertEqual(outcome.old_price, Decimal("50.00"))
        self.assertEqual(outcome.new_price, Decimal("38.00"))
        assert outcome.decision is not None
        self.assertIs(outcome.decision.kind, ChangeKind.DROP_NOTABLE)

        stored = self.repo.get(self.product.id)
        assert stored is not None
        self.assertEqual(stored.current_price, Decimal("38.00"))
        self.assertEqual(stored.last_checked, NOW)
        self.assertEqual(stored.title, "Echo Dot (5th Gen)")

        history = self.repo.list_history(self.product.id)
        self.assertEqual([h.price for h in history], [Decimal("38.00")])

        notifications = self.repo.list_notifications(self.product.id)
        self.assertEqual(len(notifications), 1)
        self.assertIs(notifications[0].kind, NotificationKind.PRICE_DROP)
        self.assertFalse(notifications[0].sent)
        self.assertEqual(notifications[0].old_price, Decimal("50.00"))
        self.extractor.extract.assert_called_once_with(PID)

    def test_unchanged_price_still_records_history(self) -> None:
        self.extractor.extract.return_value = _snapshot("50.00")
        outcome = self.checker.check_product(self.product.id, now=NOW)

        self.assertIs(outcome.status, CheckStatus.UPDATED)
        self.assertIsNone(outcome.notification)
        self.assertEqual(len(self.repo.list_history(self.product.id)), 1)
        self.assertEqual(self.repo.list_notifications(self.product.id), [])

    def test_small_drop_no_notification(self) -> None:
        self.extractor.extract.return_value = _snapshot("48.00")
        outcome = self.checker.check_product(self.product.id, now=NOW)
        assert outcome.decision is not None
        self.assertIs(outcome.decision.kind, ChangeKind.DROP)
        self.assertIsNone(outcome.notification)
        stored = self.repo.get(self.product.id)
        assert stored is not None
        self.assertEqual(stored.current_price, Decimal("48.00"))

    def test_owner_threshold_overrides_default(self) -> None:
        self.repo.upsert_settings(UserSettings(
            user_email=EMAIL, price_threshold=Decimal("15.00")
        ))
        self.extractor.extract.return_value = _snapshot("38.00")
        outcome = self.checker.check_product(self.product.id, now=NOW)
        assert outcome.decision is not None
        self.assertIs(outcome.decision.kind, ChangeKind.NONE)
        self.assertIsNone(outcome.notification)

    def test_extraction_failure_leaves_row_alone(self) -> None:
        self.extractor.extract.side_effect = ExtractionFailed(PID)
        outcome = self.checker.check_product(self.product.id, now=NOW)

        self.assertIs(outcome.status, CheckStatus.FAILED)
        self.assertIn(PID, outcome.error)
        stored = self.repo.get(self.product.id)
        assert stored is not None
        self.assertIsNone(stored.last_checked)
        self.assertEqual(self.repo.list_history(self.product.id), [])

    def test_unknown_price_keeps_known_price(self) -> None:
        self.extractor.extract.return_value = _snapshot(
            "0.00", title="Echo Dot (5th Gen) Charcoal"
        )
        outcome = self.checker.check_product(self.product.id, now=NOW)

        self.assertIs(outcome.status, CheckStatus.NO_PRICE)
        stored = self.repo.get(self.product.id)
        assert stored is not None
        self.assertEqual(stored.current_price, Decimal("50.00"))
        self.assertEqual(stored.title, "Echo Dot (5th Gen) Charcoal")
        self.assertEqual(stored.last_checked, NOW)
        self.assertEqual(self.repo.list_history(self.product.id), [])

    def test_deleted_product_skipped(self) -> None:
        self.repo.soft_delete(self.product.id)
        outcome = self.checker.check_product(self.product.id, now=NOW)
        self.assertIs(outcome.status, CheckStatus.SKIPPED)
        self.extractor.extract.assert_not_called()

    def test_deleted_during_extraction_skipped(self) -> None:
        def _remove_then_return(product_id: str) -> ProductSnapshot:
            self.repo.soft_delete(self.product.id)
            return _snapshot("38.00")

        self.extractor.extract.side_effect = _remove_then_return
        outcome = self.checker.check_product(self.product.id, now=NOW)

        self.assertIs(outcome.status, CheckStatus.SKIPPED)
        self.assertEqual(self.repo.list_history(self.product.id), [])
        self.assertEqual(self.repo.list_pending(), [])
        stored = self.repo.get(self.product.id)
        assert stored is not None
        self.assertEqual(stored.current_price, Decimal("50.00"))

    def test_deleted_during_title_only_extraction_skipped(self) -> None:
        def _remove_then_return(product_id: str) -> ProductSnapshot:
            self.repo.soft_delete(self.product.id)
            return _snapshot("0.00", title="Echo Dot Charcoal")

        self.extractor.extract.side_effect = _remove_then_return
        outcome = self.checker.check_product(self.product.id, now=NOW)

        self.assertIs(outcome.status, CheckStatus.SKIPPED)
        stored = self.repo.get(self.product.id)
        assert stored is not None
        self.assertEqual(stored.title, "Echo Dot")

    def test_missing_product_skipped(self) -> None:
        outcome = self.checker.check_product(777, now=NOW)
        self.assertIs(outcome.status, CheckStatus.SKIPPED)

    def test_increase_recorded_when_enabled(self) -> None:
        self.extractor.extract.return_value = _snapshot("60.00")
        outcome = self.checker.check_product(self.product.id, now=NOW)
        assert outcome.decision is not None
        self.assertIs(outcome.decision.kind, ChangeKind.INCREASE_NOTABLE)
        self.assertEqual(
            bool(outcome.notification), outcome.decision.should_notify
        )


class TestApplyPrice(_CheckerCase):

    def test_manual_price_goes_through_classifier(self) -> None:
        outcome = self.checker.apply_price(
            self.product, Decimal("35.00"), now=NOW
        )
        self.assertIs(outcome.status, CheckStatus.UPDATED)
        self.assertIsNotNone(outcome.notification)
        self.assertEqual(len(self.repo.list_history(self.product.id)), 1)


class TestDueProducts(_CheckerCase):

    def test_never_checked_is_due(self) -> None:
        self.assertEqual(
            [p.id for p in self.checker.due_products(NOW)], [self.product.id]
        )

    def test_recently_checked_not_due(self) -> None:
        self.repo.update(
            self.product.id, last_checked=NOW - timedelta(hours=3)
        )
        self.assertEqual(self.checker.due_products(NOW), [])

    def test_default_frequency_elapsed(self) -> None:
        self.repo.update(
            self.product.id, last_checked=NOW - timedelta(hours=24)
        )
        self.assertEqual(len(self.checker.due_products(NOW)), 1)

    def test_owner_frequency(self) -> None:
        self.repo.upsert_settings(
            UserSettings(user_email=EMAIL, check_frequency=12)
        )
        self.repo.update(
            self.product.id, last_checked=NOW - timedelta(hours=13)
        )
        self.assertEqual(len(self.checker.due_products(NOW)), 1)

    def test_force_returns_everything_active(self) -> None:
        self.repo.update(self.product.id, last_checked=NOW)
        self.assertEqual(len(self.checker.due_products(NOW, force=True)), 1)
        self.repo.soft_delete(self.product.id)
        self.assertEqual(self.checker.due_products(NOW, force=True), [])


if __name__ == "__main__":
    unittest.main()
