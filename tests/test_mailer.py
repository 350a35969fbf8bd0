# tests/test_mailer.py

"""Tests for the Resend-backed mailer."""

import unittest
from unittest.mock import MagicMock, patch

from src.services.mailer import EmailMessage, ResendMailer

MESSAGE = EmailMessage(
    to="shopper@example.com",
    subject="Price Drop Alert: Echo Dot - Save 24%!",
    html="<h2>Price Drop Alert!</h2>",
)


@patch("src.services.mailer.resend")
class TestResendMailer(unittest.TestCase):

    def test_send_success(self, mock_resend: MagicMock) -> None:
        mock_resend.Emails.send.return_value = {"id": "email_123"}
        mailer = ResendMailer(api_key="re_test", from_email="alerts@example.com")

        self.assertTrue(mailer.send(MESSAGE))
        self.assertEqual(mock_resend.api_key, "re_test")
        mock_resend.Emails.send.assert_called_once_with({
            "from": "alerts@example.com",
            "to": ["shopper@example.com"],
            "subject": MESSAGE.subject,
            "html": MESSAGE.html,
        })

    def test_missing_key_is_failure(self, mock_resend: MagicMock) -> None:
        mailer = ResendMailer(api_key="")
        with self.assertLogs("price_tracker.mailer", level="ERROR"):
            self.assertFalse(mailer.send(MESSAGE))
        mock_resend.Emails.send.assert_not_called()

    def test_api_error_is_failure(self, mock_resend: MagicMock) -> None:
        mock_resend.Emails.send.side_effect = RuntimeError("invalid domain")
        mailer = ResendMailer(api_key="re_test")
        self.assertFalse(mailer.send(MESSAGE))

    def test_defaults_from_settings(self, mock_resend: MagicMock) -> None:
        with patch.multiple(
            "src.config.settings.Settings",
            RESEND_API_KEY="re_env",
            FROM_EMAIL="env@example.com",
        ):
            mailer = ResendMailer()
        self.assertEqual(mailer.api_key, "re_env")
        self.assertEqual(mailer.from_email, "env@example.com")


if __name__ == "__main__":
    unittest.main()
