# tests/test_repositories.py

"""Contract tests run against both repository backends."""

import tempfile
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

from src.errors import DuplicateTracking, NotFound, ValidationError
from src.models.notification import NotificationKind
from src.models.user_settings import UserSettings
from src.storage.memory_repository import InMemoryRepository
from src.storage.repository import Repository
from src.storage.tracker_db import TrackerDB

EMAIL = "shopper@example.com"


class _RepositoryContract:
    """Mixed into a TestCase that provides ``make_repository``."""

    repo: Repository

    def make_repository(self) -> Repository:
        raise NotImplementedError

    def setUp(self) -> None:
        self.repo = self.make_repository()

    def _create(self, product_id: str = "B08N5WRWNW", email: str = EMAIL):
        return self.repo.create(
            product_id=product_id,
            title="Echo Dot (5th Gen)",
            current_price=Decimal("49.99"),
            target_price=Decimal("39.99"),
            url=f"https://www.amazon.com/dp/{product_id}",
            user_email=email,
            original_price=Decimal("59.99"),
        )

    # ── Products ─────────────────────────────────────────

    def test_create_assigns_id_and_defaults(self) -> None:
        product = self._create()
        self.assertGreater(product.id, 0)
        self.assertTrue(product.is_active)
        self.assertIsNone(product.last_checked)
        self.assertEqual(product.current_price, Decimal("49.99"))
        self.assertEqual(product.original_price, Decimal("59.99"))

    def test_ids_are_unique(self) -> None:
        a = self._create("B000000001")
        b = self._create("B000000002")
        self.assertNotEqual(a.id, b.id)

    def test_list_active_scoped_by_email(self) -> None:
        self._create("B000000001", "a@example.com")
        self._create("B000000002", "b@example.com")
        self.assertEqual(len(self.repo.list_active()), 2)
        mine = self.repo.list_active("a@example.com")
        self.assertEqual([p.product_id for p in mine], ["B000000001"])

    def test_soft_delete_keeps_row(self) -> None:
        product = self._create()
        self.repo.append_history(product.id, Decimal("49.99"))
        self.repo.soft_delete(product.id)

        self.assertEqual(self.repo.list_active(), [])
        stored = self.repo.get(product.id)
        assert stored is not None
        self.assertFalse(stored.is_active)
        self.assertEqual(len(self.repo.list_history(product.id)), 1)

    def test_find_by_external_id_ignores_inactive(self) -> None:
        product = self._create()
        self.assertIsNotNone(
            self.repo.find_by_external_id("B08N5WRWNW", EMAIL)
        )
        self.assertIsNone(
            self.repo.find_by_external_id("B08N5WRWNW", "other@example.com")
        )
        self.repo.soft_delete(product.id)
        self.assertIsNone(
            self.repo.find_by_external_id("B08N5WRWNW", EMAIL)
        )

    def test_duplicate_active_tracking_rejected(self) -> None:
        self._create()
        with self.assertRaises(DuplicateTracking):
            self._create()
        self.assertEqual(len(self.repo.list_active()), 1)

    def test_retrack_after_soft_delete(self) -> None:
        first = self._create()
        self.repo.soft_delete(first.id)
        second = self._create()
        self.assertNotEqual(first.id, second.id)
        self._create(email="other@example.com")
        self.assertEqual(len(self.repo.list_active()), 2)

    def test_update_fields(self) -> None:
        product = self._create()
        checked = datetime(2026, 3, 1, 12, 0, 0)
        updated = self.repo.update(
            product.id,
            current_price=Decimal("38.00"),
            last_checked=checked,
        )
        self.assertEqual(updated.current_price, Decimal("38.00"))
        self.assertEqual(updated.last_checked, checked)
        self.assertEqual(updated.title, "Echo Dot (5th Gen)")

    def test_update_unknown_product(self) -> None:
        with self.assertRaises(NotFound):
            self.repo.update(9999, title="Anything Goes Here")

    def test_update_rejects_unknown_field(self) -> None:
        product = self._create()
        with self.assertRaises(ValidationError):
            self.repo.update(product.id, user_email="x@example.com")

    def test_get_missing_is_none(self) -> None:
        self.assertIsNone(self.repo.get(424242))

    # ── History ──────────────────────────────────────────

    def test_history_newest_first(self) -> None:
        product = self._create()
        base = datetime(2026, 1, 1, 9, 0, 0)
        self.repo.append_history(product.id, Decimal("50.00"), base)
        self.repo.append_history(
            product.id, Decimal("45.00"), base + timedelta(days=2)
        )
        self.repo.append_history(
            product.id, Decimal("47.50"), base + timedelta(days=1)
        )
        prices = [e.price for e in self.repo.list_history(product.id)]
        self.assertEqual(
            prices, [Decimal("45.00"), Decimal("47.50"), Decimal("50.00")]
        )

    def test_history_prices_exact(self) -> None:
        product = self._create()
        self.repo.append_history(product.id, Decimal("0.10"))
        entry = self.repo.list_history(product.id)[0]
        self.assertEqual(entry.price, Decimal("0.10"))

    # ── Notifications ────────────────────────────────────

    def test_notification_lifecycle(self) -> None:
        product = self._create()
        n = self.repo.create_notification(
            product.id, NotificationKind.PRICE_DROP,
            Decimal("50.00"), Decimal("38.00"),
        )
        self.assertFalse(n.sent)
        self.assertEqual([p.id for p in self.repo.list_pending()], [n.id])

        self.repo.mark_sent(n.id)
        self.assertEqual(self.repo.list_pending(), [])
        stored = self.repo.list_notifications(product.id)
        self.assertEqual(len(stored), 1)
        self.assertTrue(stored[0].sent)
        self.assertIs(stored[0].kind, NotificationKind.PRICE_DROP)
        self.assertEqual(stored[0].new_price, Decimal("38.00"))

    def test_mark_sent_is_idempotent(self) -> None:
        product = self._create()
        n = self.repo.create_notification(
            product.id, NotificationKind.PRICE_DROP,
            Decimal("50.00"), Decimal("38.00"),
        )
        self.repo.mark_sent(n.id)
        self.repo.mark_sent(n.id)
        self.repo.mark_sent(123456)
        self.assertTrue(self.repo.list_notifications(product.id)[0].sent)

    def test_pending_oldest_first(self) -> None:
        product = self._create()
        first = self.repo.create_notification(
            product.id, NotificationKind.PRICE_DROP,
            Decimal("50.00"), Decimal("45.00"),
        )
        second = self.repo.create_notification(
            product.id, NotificationKind.PRICE_INCREASE,
            Decimal("45.00"), Decimal("55.00"),
        )
        self.assertEqual(
            [n.id for n in self.repo.list_pending()], [first.id, second.id]
        )

    def test_delivery_attempts_count_up(self) -> None:
        product = self._create()
        n = self.repo.create_notification(
            product.id, NotificationKind.PRICE_DROP,
            Decimal("50.00"), Decimal("38.00"),
        )
        self.assertEqual(self.repo.increment_delivery_attempts(n.id), 1)
        self.assertEqual(self.repo.increment_delivery_attempts(n.id), 2)

    # ── Settings ─────────────────────────────────────────

    def test_settings_missing(self) -> None:
        self.assertIsNone(self.repo.get_settings(EMAIL))

    def test_settings_upsert(self) -> None:
        created = self.repo.upsert_settings(UserSettings(user_email=EMAIL))
        self.assertTrue(created.email_price_drops)
        self.assertEqual(created.check_frequency, 24)

        updated = self.repo.upsert_settings(UserSettings(
            user_email=EMAIL,
            email_price_drops=False,
            email_weekly_summary=True,
            check_frequency=12,
            price_threshold=Decimal("2.50"),
        ))
        self.assertEqual(updated.id, created.id)
        self.assertFalse(updated.email_price_drops)
        self.assertTrue(updated.email_weekly_summary)
        self.assertEqual(updated.check_frequency, 12)
        self.assertEqual(updated.price_threshold, Decimal("2.50"))
        self.assertEqual(len(self.repo.list_all_settings()), 1)


class TestInMemoryRepository(_RepositoryContract, unittest.TestCase):

    def make_repository(self) -> Repository:
        return InMemoryRepository()

    def test_reads_are_copies(self) -> None:
        product = self._create()
        product.title = "Mutated Locally"
        stored = self.repo.get(product.id)
        assert stored is not None
        self.assertEqual(stored.title, "Echo Dot (5th Gen)")


class TestTrackerDB(_RepositoryContract, unittest.TestCase):

    def make_repository(self) -> Repository:
        db = TrackerDB(":memory:")
        self.addCleanup(db.close)
        return db


class TestTrackerDBOnDisk(unittest.TestCase):

    def test_data_survives_reopen(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "tracker.db"
            db = TrackerDB(path)
            product = db.create(
                product_id="B08N5WRWNW",
                title="Echo Dot (5th Gen)",
                current_price=Decimal("49.99"),
                target_price=Decimal("39.99"),
                url="https://www.amazon.com/dp/B08N5WRWNW",
                user_email=EMAIL,
            )
            db.append_history(product.id, Decimal("49.99"))
            db.close()

            reopened = TrackerDB(path)
            try:
                self.assertEqual(len(reopened.list_active(EMAIL)), 1)
                self.assertEqual(len(reopened.list_history(product.id)), 1)
            finally:
                reopened.close()


if __name__ == "__main__":
    unittest.main()
