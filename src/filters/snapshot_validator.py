# src/filters/snapshot_validator.py

"""Snapshot validation: reject placeholder or garbage extraction output."""

import logging
import re
from decimal import Decimal

from src.config.settings import Settings
from src.models.product import ProductSnapshot

logger = logging.getLogger("price_tracker.filters")

# Whole-word match so "Terror Tales" is not mistaken for "Error"
_PLACEHOLDER_RE = re.compile(
    r"\b(?:"
    + "|".join(re.escape(m) for m in Settings.TITLE_PLACEHOLDER_MARKERS)
    + r")\b",
    re.IGNORECASE,
)


class SnapshotValidator:
    """Structural validity checks applied to extraction results."""

    @staticmethod
    def is_valid_title(title: str | None) -> bool:
        """Title longer than the minimum and free of placeholder markers."""
        if not title:
            return False
        stripped = title.strip()
        if len(stripped) <= Settings.MIN_TITLE_LENGTH:
            return False
        return _PLACEHOLDER_RE.search(stripped) is None

    @staticmethod
    def is_usable_price(price: Decimal | None) -> bool:
        """Per-field price check: positive and under the sanity bound."""
        if price is None:
            return False
        return Decimal("0") < price < Settings.MAX_SANE_PRICE

    @staticmethod
    def is_valid(
        snapshot: ProductSnapshot | None,
        allow_unknown_price: bool = False,
    ) -> bool:
        """Return True when *snapshot* may be handed to callers.

        A price of exactly zero means "unknown" and is only accepted
        when the producing strategy is allowed to return it.
        """
        if snapshot is None:
            return False
        if not SnapshotValidator.is_valid_title(snapshot.title):
            logger.debug(
                "Rejected snapshot with unusable title "
                "(source=%s, title=%r)",
                snapshot.source,
                snapshot.title,
            )
            return False
        if snapshot.price < 0 or snapshot.price >= Settings.MAX_SANE_PRICE:
            logger.debug(
                "Rejected snapshot with out-of-range price "
                "(source=%s, price=%s)",
                snapshot.source,
                snapshot.price,
            )
            return False
        if snapshot.price == 0 and not allow_unknown_price:
            logger.debug(
                "Rejected snapshot with unknown price (source=%s)",
                snapshot.source,
            )
            return False
        return True
