# tests/test_cli.py

"""Tests for argument parsing and the headless CLI commands."""

import argparse
import io
import json
import unittest
from decimal import Decimal
from unittest.mock import MagicMock, patch

from main import _bool_flag, _build_parser
from src.cli.runner import Services, dispatch, run_list, run_settings
from src.services.notification_delivery import NotificationDelivery
from src.services.price_checker import PriceChecker
from src.services.tracking_service import TrackingService
from src.storage.memory_repository import InMemoryRepository

EMAIL = "shopper@example.com"


def _services() -> Services:
    repo = InMemoryRepository()
    extractor = MagicMock()
    mailer = MagicMock()
    return Services(
        repository=repo,
        extractor=extractor,
        tracking=TrackingService(repo, extractor, mailer),
        checker=PriceChecker(repo, extractor),
        delivery=NotificationDelivery(repo, mailer),
    )


class TestParser(unittest.TestCase):

    def test_add_arguments(self) -> None:
        args = _build_parser().parse_args([
            "add", "B08N5WRWNW", "--email", EMAIL, "--target", "39.99",
        ])
        self.assertEqual(args.command, "add")
        self.assertEqual(args.product, "B08N5WRWNW")
        self.assertEqual(args.target, "39.99")
        self.assertIsNone(args.title)

    def test_list_format(self) -> None:
        args = _build_parser().parse_args(["list", "-f", "json"])
        self.assertEqual(args.output_format, "json")

    def test_settings_flags(self) -> None:
        args = _build_parser().parse_args([
            "settings", EMAIL, "--price-drops", "off", "--frequency", "12",
        ])
        self.assertFalse(args.price_drops)
        self.assertEqual(args.frequency, 12)
        self.assertIsNone(args.weekly_summary)

    def test_frequency_choices(self) -> None:
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                _build_parser().parse_args(
                    ["settings", EMAIL, "--frequency", "6"]
                )

    def test_edit_arguments(self) -> None:
        args = _build_parser().parse_args(
            ["edit", "3", "--target", "29.99", "--title", "Echo Dot"]
        )
        self.assertEqual(args.id, 3)
        self.assertEqual(args.target, "29.99")
        self.assertIsNone(args.price)
        self.assertIsNone(args.original)

    def test_simulate_arguments(self) -> None:
        args = _build_parser().parse_args(["simulate", "3", "35.00"])
        self.assertEqual(
            (args.command, args.id, args.price), ("simulate", 3, "35.00")
        )

    def test_command_required(self) -> None:
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                _build_parser().parse_args([])

    def test_bool_flag(self) -> None:
        self.assertTrue(_bool_flag("Yes"))
        self.assertFalse(_bool_flag("0"))
        with self.assertRaises(argparse.ArgumentTypeError):
            _bool_flag("maybe")


class TestCommands(unittest.TestCase):

    def setUp(self) -> None:
        self.services = _services()
        self.services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )

    def test_list_json(self) -> None:
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = run_list(self.services, EMAIL, "json")
        self.assertEqual(code, 0)
        data = json.loads(out.getvalue())
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["current_price"], "49.99")
        self.assertIsNone(data[0]["last_checked"])

    def test_settings_update(self) -> None:
        args = _build_parser().parse_args([
            "settings", EMAIL, "--weekly-summary", "true",
            "--threshold", "2",
        ])
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            run_settings(self.services, args)
        data = json.loads(out.getvalue())
        self.assertTrue(data["email_weekly_summary"])
        self.assertEqual(data["price_threshold"], "2.00")
        stored = self.services.repository.get_settings(EMAIL)
        assert stored is not None
        self.assertEqual(stored.price_threshold, Decimal("2.00"))


class TestDispatch(unittest.TestCase):

    def test_domain_error_exit_code(self) -> None:
        args = _build_parser().parse_args(["remove", "999"])
        with patch("src.cli.runner.build_services", return_value=_services()):
            self.assertEqual(dispatch(args), 2)

    def test_remove(self) -> None:
        services = _services()
        product = services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )
        args = _build_parser().parse_args(["remove", str(product.id)])
        with patch("src.cli.runner.build_services", return_value=services):
            self.assertEqual(dispatch(args), 0)
        self.assertEqual(services.repository.list_active(), [])

    def test_edit_updates_fields(self) -> None:
        services = _services()
        product = services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )
        args = _build_parser().parse_args([
            "edit", str(product.id), "--target", "30", "--title", " Echo Dot ",
        ])
        with patch("src.cli.runner.build_services", return_value=services):
            self.assertEqual(dispatch(args), 0)
        stored = services.repository.get(product.id)
        assert stored is not None
        self.assertEqual(stored.target_price, Decimal("30.00"))
        self.assertEqual(stored.title, "Echo Dot")
        self.assertEqual(stored.current_price, Decimal("49.99"))

    def test_edit_without_changes_is_an_error(self) -> None:
        services = _services()
        product = services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )
        args = _build_parser().parse_args(["edit", str(product.id)])
        with patch("src.cli.runner.build_services", return_value=services):
            self.assertEqual(dispatch(args), 2)

    def test_simulate_queues_drop_notification(self) -> None:
        services = _services()
        product = services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )
        args = _build_parser().parse_args(
            ["simulate", str(product.id), "35.00"]
        )
        with patch("src.cli.runner.build_services", return_value=services):
            self.assertEqual(dispatch(args), 0)
        stored = services.repository.get(product.id)
        assert stored is not None
        self.assertEqual(stored.current_price, Decimal("35.00"))
        self.assertEqual(len(services.repository.list_pending()), 1)
        services.extractor.extract.assert_not_called()

    def test_simulate_removed_product_is_an_error(self) -> None:
        services = _services()
        product = services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )
        services.tracking.remove_product(product.id)
        args = _build_parser().parse_args(
            ["simulate", str(product.id), "35.00"]
        )
        with patch("src.cli.runner.build_services", return_value=services):
            self.assertEqual(dispatch(args), 2)

    def test_check_runs_a_forced_sweep(self) -> None:
        services = _services()
        services.tracking.add_product(
            "B08N5WRWNW", EMAIL, "Echo Dot (5th Gen)", "49.99", "39.99",
        )
        services.extractor.extract.return_value = MagicMock(
            title="Echo Dot (5th Gen)",
            price=Decimal("35.00"),
            image_url=None,
            has_price=True,
            source="stub",
        )
        args = _build_parser().parse_args(["check"])
        with patch("src.cli.runner.build_services", return_value=services):
            self.assertEqual(dispatch(args), 0)
        self.assertEqual(len(services.repository.list_pending()), 1)


if __name__ == "__main__":
    unittest.main()
