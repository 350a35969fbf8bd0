# src/filters/identifier_parser.py

"""Parse user input into a 10-character catalog identifier."""

import logging
import re
from urllib.parse import parse_qs, urlparse

from src.config.settings import Settings
from src.errors import ValidationError

logger = logging.getLogger("price_tracker.filters")

_RAW_ID_RE = re.compile(r"^[A-Z0-9]{10}$", re.IGNORECASE)

# Path shapes that embed the identifier, most specific first
_PATH_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"/dp/([A-Z0-9]{10})(?:[/?#]|$)", re.IGNORECASE),
    re.compile(r"/gp/product/([A-Z0-9]{10})(?:[/?#]|$)", re.IGNORECASE),
    re.compile(r"/gp/aw/d/([A-Z0-9]{10})(?:[/?#]|$)", re.IGNORECASE),
    re.compile(r"/exec/obidos/ASIN/([A-Z0-9]{10})(?:[/?#]|$)", re.IGNORECASE),
]

_QUERY_KEYS: tuple[str, ...] = ("asin", "ASIN", "itemExternalId")


def parse_product_identifier(raw: str | None) -> str:
    """Return the uppercase identifier for a raw code or product URL.

    Raises ``ValidationError`` when *raw* matches neither shape.
    """
    if not raw or not raw.strip():
        raise ValidationError("Product URL or identifier is required")
    text = raw.strip()

    if _RAW_ID_RE.match(text):
        return text.upper()

    for pattern in _PATH_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).upper()

    params = parse_qs(urlparse(text).query)
    for key in _QUERY_KEYS:
        for value in params.get(key, []):
            if _RAW_ID_RE.match(value):
                return value.upper()

    logger.debug("Rejected product input: %s", text[:120])
    raise ValidationError(
        "Invalid product URL - could not extract a catalog identifier"
    )


def canonical_url(product_id: str) -> str:
    """Deterministic product page URL for an identifier."""
    return f"{Settings.CATALOG_BASE_URL}/dp/{product_id}"
