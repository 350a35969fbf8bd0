# src/scrapers/product_page_strategy.py

"""Scraper for the desktop product detail page."""

from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy


class ProductPageStrategy(BaseStrategy):
    """Desktop detail page variants; needs a real price to succeed."""

    name = "product_page"
    use_cloudscraper_fallback = True

    def endpoints(self, product_id: str) -> list[str]:
        base = self.settings.CATALOG_BASE_URL
        return [
            f"{base}/dp/{product_id}?th=1&psc=1",
            f"{base}/gp/product/{product_id}",
            f"{base}/exec/obidos/ASIN/{product_id}",
        ]

    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        return self._parse_html(body, product_id, profile="default")
