# src/scrapers/page_parser.py

"""Field extraction shared by every extraction strategy.

Strategies differ in *where* they fetch from; the parsing of what comes
back is the same for all of them and lives here.  Each field (title,
price, image, url) has a priority list of CSS selectors loaded from
``selectors.json`` plus regex fallbacks for markup that BeautifulSoup
selectors cannot reach (inline JSON blobs, broken HTML).  The first
candidate that passes the field's own validity check wins.
"""

import json
import logging
import re
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import lru_cache
from typing import Any

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings
from src.filters.identifier_parser import canonical_url
from src.filters.snapshot_validator import SnapshotValidator
from src.models.price import CENT, ZERO
from src.models.product import ProductSnapshot

logger = logging.getLogger("price_tracker.parser")

_ENTITY_RE = re.compile(r"&[#a-zA-Z0-9]+;")
_WHITESPACE_RE = re.compile(r"\s+")
_SITE_PREFIX_RE = re.compile(r"^\s*Amazon\.com\s*:?\s*", re.IGNORECASE)
_SITE_SUFFIX_RE = re.compile(
    r"\s*[|\-:]\s*Amazon(?:\.com)?\s*(?:[|:].*)?$", re.IGNORECASE
)
_PRICE_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")

_TITLE_REGEXES: list[re.Pattern[str]] = [
    re.compile(r'<span[^>]*id="productTitle"[^>]*>([^<]+)</span>', re.I),
    re.compile(r'<meta[^>]*property="og:title"[^>]*content="([^"]+)"', re.I),
    re.compile(r'data-title="([^"]+)"', re.I),
    re.compile(r"<title>([^<]+)</title>", re.I),
]

_PRICE_REGEXES: list[re.Pattern[str]] = [
    re.compile(r'"priceAmount"\s*:\s*"?([0-9,]+\.?[0-9]*)', re.I),
    re.compile(r'"price"\s*:\s*"?\$?([0-9,]+\.?[0-9]*)"?', re.I),
    re.compile(
        r'<span[^>]*class="[^"]*price[^"]*"[^>]*>[\s$]*([0-9,]+\.?[0-9]*)',
        re.I,
    ),
]

# Candidate object paths inside JSON payloads, most specific first
_JSON_PATHS: list[tuple[str | int, ...]] = [
    ("data", "product"),
    ("product",),
    ("item",),
    ("productDetails",),
    ("main", "product"),
    ("data", "products", 0),
    ("data",),
    ("result",),
    ("products", 0),
    ("items", 0),
]
_JSON_TITLE_KEYS = (
    "product_title", "title", "name", "productTitle", "displayName",
)
_JSON_PRICE_KEYS = (
    "product_price", "product_minimum_offer_price", "price",
    "currentPrice", "listPrice", "list_price",
)
_JSON_IMAGE_KEYS = (
    "product_photo", "product_main_image_url", "imageUrl", "image",
    "images",
)


# ── Text helpers ─────────────────────────────────────────


def clean_title(raw: str | None) -> str:
    """Strip entities, collapse whitespace and site-name boilerplate."""
    if not raw:
        return ""
    text = _ENTITY_RE.sub("", raw)
    text = _WHITESPACE_RE.sub(" ", text)
    text = _SITE_PREFIX_RE.sub("", text)
    text = _SITE_SUFFIX_RE.sub("", text)
    return text.strip()


def parse_price(value: object) -> Decimal | None:
    """Extract a 2dp price from '$1,299.00', '49.', 19.99 and the like.

    Returns ``None`` when no number is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    else:
        raw = str(value).replace(",", "")
    match = _PRICE_NUMBER_RE.search(raw)
    if not match:
        return None
    try:
        return Decimal(match.group(0)).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
    except InvalidOperation:
        return None


def first_usable_price(candidates: Iterable[object]) -> Decimal | None:
    """Return the first candidate that parses to a usable price."""
    for candidate in candidates:
        price = parse_price(candidate)
        if SnapshotValidator.is_usable_price(price):
            return price
    return None


def fallback_image_url(product_id: str) -> str:
    """Deterministic image URL derived from the identifier."""
    return Settings.FALLBACK_IMAGE_URL_TEMPLATE.format(
        product_id=product_id
    )


@lru_cache(maxsize=1)
def load_selectors() -> dict[str, dict[str, list[str]]]:
    """Load the field selector priority lists from selectors.json."""
    with open(Settings.SELECTORS_PATH, encoding="utf-8") as f:
        data: dict[str, dict[str, list[str]]] = json.load(f)
    return data


def _profile(name: str) -> dict[str, list[str]]:
    selectors = load_selectors()
    return selectors.get(name, selectors["default"])


# ── HTML ─────────────────────────────────────────────────


def _element_value(el: Tag) -> str:
    """Pick the meaningful value out of a matched element."""
    if el.name == "meta":
        return str(el.get("content") or "")
    if el.name == "link":
        return str(el.get("href") or "")
    if el.name == "img":
        return str(
            el.get("data-old-hires") or el.get("src") or ""
        )
    return el.get_text(" ", strip=True)


def _select_values(
    soup: BeautifulSoup, selectors: list[str],
) -> Iterable[str]:
    """Yield element values for each selector in priority order."""
    for selector in selectors:
        try:
            elements = soup.select(selector)
        except ValueError:
            logger.warning("Bad selector in selectors.json: %s", selector)
            continue
        for el in elements:
            value = _element_value(el)
            if value:
                yield value


def _extract_title(soup: BeautifulSoup, html: str, fields: dict[str, list[str]]) -> str:
    for candidate in _select_values(soup, fields.get("title", [])):
        title = clean_title(candidate)
        if SnapshotValidator.is_valid_title(title):
            return title
    for pattern in _TITLE_REGEXES:
        match = pattern.search(html)
        if match:
            title = clean_title(match.group(1))
            if SnapshotValidator.is_valid_title(title):
                return title
    return ""


def _extract_price(soup: BeautifulSoup, html: str, fields: dict[str, list[str]]) -> Decimal:
    price = first_usable_price(
        _select_values(soup, fields.get("price", []))
    )
    if price is None and fields.get("price"):
        price = first_usable_price(
            m.group(1)
            for pattern in _PRICE_REGEXES
            for m in pattern.finditer(html)
        )
    return price if price is not None else ZERO


def _first_http(values: Iterable[str]) -> str | None:
    for value in values:
        if value.startswith(("http://", "https://")):
            return value
    return None


def is_unavailable(html: str) -> bool:
    """True when the page carries an out-of-stock marker."""
    lower = html.lower()
    return any(m in lower for m in Settings.UNAVAILABLE_MARKERS)


def parse_html_product(
    html: str,
    product_id: str,
    profile: str = "default",
    source: str = "",
) -> ProductSnapshot | None:
    """Parse a product snapshot out of an HTML document.

    Returns ``None`` when no usable title is found.  Price falls back
    to zero ("unknown"); whether that is acceptable is the calling
    strategy's decision.
    """
    if not html:
        return None
    soup = BeautifulSoup(html, "lxml")
    fields = _profile(profile)

    title = _extract_title(soup, html, fields)
    if not title:
        return None

    price = _extract_price(soup, html, fields)
    image = _first_http(_select_values(soup, fields.get("image", [])))
    url = _first_http(_select_values(soup, fields.get("url", [])))

    return ProductSnapshot(
        product_id=product_id,
        title=title,
        price=price,
        image_url=image or fallback_image_url(product_id),
        availability=not is_unavailable(html),
        url=url or canonical_url(product_id),
        source=source,
    )


# ── JSON ─────────────────────────────────────────────────


def _walk(data: Any, path: tuple[str | int, ...]) -> Any:
    node = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
        elif not isinstance(node, dict):
            return None
        node = node[key] if isinstance(key, int) else node.get(key)
        if node is None:
            return None
    return node


def _first_key(item: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, "", []):
            return value
    return None


def parse_json_product(
    data: Any,
    product_id: str,
    source: str = "",
) -> ProductSnapshot | None:
    """Find a product-shaped object in a JSON payload and parse it."""
    for path in _JSON_PATHS:
        item = _walk(data, path)
        if not isinstance(item, dict):
            continue
        item_id = item.get("asin")
        if item_id and str(item_id).upper() != product_id:
            continue
        raw_title = _first_key(item, _JSON_TITLE_KEYS)
        if not isinstance(raw_title, str):
            continue
        title = clean_title(raw_title)
        if not SnapshotValidator.is_valid_title(title):
            continue

        price = first_usable_price(
            item.get(key) for key in _JSON_PRICE_KEYS
        )
        image = _first_key(item, _JSON_IMAGE_KEYS)
        if isinstance(image, list):
            image = image[0] if image else None
        url = item.get("product_url") or item.get("url")
        availability = (
            item.get("availability") is not False
            and item.get("inStock") is not False
            and item.get("availability") != "Out of Stock"
        )
        return ProductSnapshot(
            product_id=product_id,
            title=title,
            price=price if price is not None else ZERO,
            image_url=str(image) if image else fallback_image_url(product_id),
            availability=availability,
            url=str(url) if url else canonical_url(product_id),
            source=source,
        )
    return None
