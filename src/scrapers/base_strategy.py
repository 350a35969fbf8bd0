# src/scrapers/base_strategy.py

"""Abstract base class for all product-data extraction strategies."""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.filters.snapshot_validator import SnapshotValidator
from src.models.product import ProductSnapshot
from src.scrapers.page_parser import parse_html_product, parse_json_product


class BaseStrategy(ABC):
    """One independent way of acquiring a product snapshot.

    ``attempt()`` never raises: transport errors, non-2xx responses and
    parse misses all end as ``None`` so the extractor can move on to the
    next strategy.  No call is retried; sibling endpoints returned by
    ``endpoints()`` are tried in order and the first valid parse wins.
    """

    name: str = "base"
    # Strategies that can only confirm a title may report price 0
    allow_unknown_price: bool = False
    # Full HTML pages get a second chance through cloudscraper
    use_cloudscraper_fallback: bool = False
    user_agent: str | None = None
    accept: str = Settings.DEFAULT_HEADERS["Accept"]

    def __init__(self, session: Any | None = None) -> None:
        self.logger = logging.getLogger(
            f"price_tracker.strategy.{self.name}"
        )
        self.settings = Settings()
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._request_timeout: int = (
            self.settings.REQUEST_TIMEOUT
        )

    # Cloudflare / bot-wall markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "/errors/validatecaptcha",
    ]

    # ── Response checks ──────────────────────────────────

    def _validate_response(self, text: str) -> bool:
        """Check for challenge pages and CAPTCHA indicators."""
        if text.lstrip().startswith(("{", "[")):
            return True
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Bot challenge detected (marker: '%s')",
                    self.name,
                    marker,
                )
                return False

        # Skip the keyword scan on real product pages to avoid
        # false positives from footer links
        has_body_content = (
            "<body" in lower and len(text) > 5000
        )
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] CAPTCHA keyword '%s' detected",
                        self.name,
                        keyword,
                    )
                    return False
        return True

    # ── Circuit breaker ──────────────────────────────────

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this strategy.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.name,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        """Reset failure counters after a successful fetch."""
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        threshold = self.settings.CIRCUIT_BREAKER_THRESHOLD
        if self._consecutive_failures >= threshold:
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.name,
                self._consecutive_failures,
            )

    # ── Transport ────────────────────────────────────────

    def headers(self) -> dict[str, str]:
        """Request headers for this strategy's endpoints."""
        headers = {
            **self.settings.DEFAULT_HEADERS,
            "Accept": self.accept,
            "Referer": self._get_homepage(),
        }
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    def _fetch_get(self, url: str) -> str | None:
        """Single bounded GET; returns the body or ``None``."""
        headers = self.headers()
        try:
            resp = self.session.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if resp.status_code == 200:
                text = str(resp.text)
                if self._validate_response(text):
                    return text
            else:
                self.logger.debug(
                    "[%s] HTTP %d from %s",
                    self.name,
                    resp.status_code,
                    url,
                )
        except Exception as exc:
            self.logger.warning(
                "[%s] Request error for %s: %s",
                self.name,
                url,
                exc,
            )

        if not self.use_cloudscraper_fallback:
            return None
        return self._fetch_with_cloudscraper(url, headers)

    def _fetch_with_cloudscraper(
        self, url: str, headers: dict[str, str],
    ) -> str | None:
        """Fallback transport for pages behind a JS challenge."""
        self.logger.debug(
            "[%s] curl_cffi failed, falling back to cloudscraper",
            self.name,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if resp.status_code == 200:
                text = str(resp.text)
                if self._validate_response(text):
                    return text
        except Exception as exc:
            self.logger.warning(
                "[%s] cloudscraper fallback also failed: %s",
                self.name,
                exc,
            )
        return None

    # ── Parsing helpers ──────────────────────────────────

    def _parse_html(
        self, body: str, product_id: str, profile: str = "default",
    ) -> ProductSnapshot | None:
        return parse_html_product(
            body, product_id, profile=profile, source=self.name,
        )

    def _parse_json_or_html(
        self, body: str, product_id: str, profile: str = "default",
    ) -> ProductSnapshot | None:
        """Endpoints that answer with either JSON or an HTML fragment."""
        try:
            data = json.loads(body)
        except ValueError:
            return self._parse_html(body, product_id, profile)
        return parse_json_product(data, product_id, source=self.name)

    # ── Public interface ─────────────────────────────────

    def is_enabled(self) -> bool:
        """Strategies needing credentials switch themselves off."""
        return True

    def attempt(self, product_id: str) -> ProductSnapshot | None:
        """Try every endpoint of this strategy; never raises."""
        if not self.is_enabled():
            return None
        if self._check_circuit():
            self.logger.debug(
                "[%s] Skipped, circuit breaker open", self.name
            )
            return None

        fetched_any = False
        try:
            for url in self.endpoints(product_id):
                body = self._fetch_get(url)
                if body is None:
                    continue
                fetched_any = True
                snapshot = self.parse(body, product_id)
                if SnapshotValidator.is_valid(
                    snapshot, self.allow_unknown_price
                ):
                    self.logger.info(
                        "[%s] Extracted %s from %s",
                        self.name,
                        product_id,
                        url,
                    )
                    self._record_success()
                    return snapshot
        except Exception as exc:
            self.logger.error(
                "[%s] Unexpected error for %s: %s",
                self.name,
                product_id,
                exc,
                exc_info=True,
            )

        if fetched_any:
            self._record_success()
        else:
            self._record_failure()
        return None

    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        return f"{self.settings.CATALOG_BASE_URL}/"

    @abstractmethod
    def endpoints(self, product_id: str) -> list[str]:
        """Sibling endpoints for *product_id*, in priority order."""
        ...

    @abstractmethod
    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        """Turn one response body into a snapshot, or ``None``."""
        ...
