# src/services/mailer.py

"""Outbound email transport."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import resend

from src.config.settings import Settings

logger = logging.getLogger("price_tracker.mailer")


@dataclass(frozen=True)
class EmailMessage:
    """A fully composed message ready for delivery."""

    to: str
    subject: str
    html: str


class Mailer(ABC):
    """Accepts a message for delivery and reports whether it took it."""

    @abstractmethod
    def send(self, message: EmailMessage) -> bool:
        """True when the message was accepted for delivery."""


class ResendMailer(Mailer):
    """Delivers through the Resend API.

    A missing API key or an API error is a failed send; nothing is ever
    reported as delivered unless Resend accepted it.
    """

    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
    ) -> None:
        self.api_key = (
            api_key if api_key is not None else Settings.RESEND_API_KEY
        )
        self.from_email = from_email or Settings.FROM_EMAIL

    def send(self, message: EmailMessage) -> bool:
        if not self.api_key:
            logger.error(
                "RESEND_API_KEY not configured; cannot email %s",
                message.to,
            )
            return False

        resend.api_key = self.api_key
        try:
            response: Any = resend.Emails.send({
                "from": self.from_email,
                "to": [message.to],
                "subject": message.subject,
                "html": message.html,
            })
        except Exception as exc:
            logger.error(
                "Resend rejected message to %s: %s", message.to, exc
            )
            return False

        email_id = (
            response.get("id") if isinstance(response, dict) else None
        )
        logger.info(
            "Email accepted by Resend (id=%s) for %s: %s",
            email_id,
            message.to,
            message.subject,
        )
        return True
