# src/scrapers/mobile_page_strategy.py

"""Scraper for the lightweight mobile product page."""

from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy


class MobilePageStrategy(BaseStrategy):
    """Mobile pages are served to phones with far less bot filtering."""

    name = "mobile"
    allow_unknown_price = True
    use_cloudscraper_fallback = True
    user_agent = (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.0 Mobile/15E148 Safari/604.1"
    )

    def endpoints(self, product_id: str) -> list[str]:
        base = self.settings.CATALOG_BASE_URL
        return [
            f"{base}/gp/aw/d/{product_id}",
            f"{base}/gp/aw/d/{product_id}/ref=ox_sc_mini_detail?ie=UTF8&psc=1",
        ]

    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        return self._parse_html(body, product_id, profile="mobile")
