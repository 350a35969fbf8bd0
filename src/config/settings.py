# src/config/settings.py

"""Central configuration for the price_tracker service."""

import os
from decimal import Decimal
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the price_tracker service."""

    # --- Network ---
    REQUEST_TIMEOUT: int = 10           # Seconds before a request times out
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 900.0
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
        "enter the characters you see below",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Extraction ---
    CATALOG_BASE_URL: str = "https://www.amazon.com"
    FALLBACK_IMAGE_URL_TEMPLATE: str = (
        "https://images-na.ssl-images-amazon.com/images/P/{product_id}.01.L.jpg"
    )
    MIN_TITLE_LENGTH: int = 5           # Titles must be strictly longer
    MAX_SANE_PRICE: Decimal = Decimal("10000")
    TITLE_PLACEHOLDER_MARKERS: list[str] = [
        "amazon product",
        "page not found",
        "service unavailable",
        "404",
        "error",
        "robot check",
        "sorry! something went wrong",
        "please update title manually",
    ]
    UNAVAILABLE_MARKERS: list[str] = [
        "currently unavailable",
        "out of stock",
    ]
    RAPIDAPI_KEY: str = os.getenv("RAPIDAPI_KEY", "")
    RAPIDAPI_HOST: str = os.getenv(
        "RAPIDAPI_HOST", "realtime-amazon-data.p.rapidapi.com"
    )
    RAPIDAPI_COUNTRY: str = os.getenv("RAPIDAPI_COUNTRY", "US")

    # Tried strictly in this order; the first valid snapshot wins.
    EXTRACTION_STRATEGIES: list[dict[str, str]] = [
        {
            "id": "rapidapi",
            "label": "RapidAPI product data",
            "strategy": "src.scrapers.rapidapi_strategy.RapidApiStrategy",
        },
        {
            "id": "product_page",
            "label": "Product page",
            "strategy": "src.scrapers.product_page_strategy.ProductPageStrategy",
        },
        {
            "id": "open_graph",
            "label": "Share page (Open Graph)",
            "strategy": "src.scrapers.open_graph_strategy.OpenGraphStrategy",
        },
        {
            "id": "ajax",
            "label": "Offer / availability endpoints",
            "strategy": "src.scrapers.ajax_strategy.AjaxEndpointStrategy",
        },
        {
            "id": "mobile",
            "label": "Mobile product page",
            "strategy": "src.scrapers.mobile_page_strategy.MobilePageStrategy",
        },
        {
            "id": "reviews",
            "label": "Review pages",
            "strategy": "src.scrapers.review_page_strategy.ReviewPageStrategy",
        },
    ]

    # --- Change classification ---
    MIN_CHANGE_THRESHOLD: Decimal = Decimal("1.00")
    NOTIFY_THRESHOLD: Decimal = Decimal("5.00")
    # Increases are ledgered for history; only drops are emailed
    NOTIFY_ON_INCREASE: bool = (
        os.getenv("NOTIFY_ON_INCREASE", "false").lower() == "true"
    )

    # --- Scheduling ---
    SWEEP_TICK_SECONDS: float = 300.0   # How often due products are polled
    INTER_ITEM_DELAY: float = 1.0       # Throttle between products in a sweep
    DEFAULT_CHECK_FREQUENCY_HOURS: int = 24
    ALLOWED_CHECK_FREQUENCIES: tuple[int, ...] = (12, 24, 48)
    WEEKLY_SUMMARY_WEEKDAY: int = 6     # Sunday (Monday == 0)
    WEEKLY_SUMMARY_HOUR: int = 9
    DELIVERY_POLL_SECONDS: float = 30.0
    MAX_DELIVERY_ATTEMPTS: int = 5

    # --- Mail ---
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    FROM_EMAIL: str = os.getenv(
        "FROM_EMAIL", "alert@amzpricetracker.xyz"
    )

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = Path(
        os.getenv("PRICE_TRACKER_DB", str(DATA_DIR / "tracker.db"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Logging ---
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 3
    LOG_KEEP_RUNS: int = 20
