# src/scrapers/ajax_strategy.py

"""XHR endpoints (offer listing, availability, wishlist preview)."""

from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy


class AjaxEndpointStrategy(BaseStrategy):
    """Endpoints that answer either JSON or an HTML fragment."""

    name = "ajax"
    allow_unknown_price = True
    accept = "application/json, text/html, */*"

    def headers(self) -> dict[str, str]:
        return {
            **super().headers(),
            "X-Requested-With": "XMLHttpRequest",
        }

    def endpoints(self, product_id: str) -> list[str]:
        base = self.settings.CATALOG_BASE_URL
        return [
            f"{base}/gp/product/ajax/ref=dp_aod_NEW_mbc?asin={product_id}"
            "&pc=dp&experienceId=aodAjaxMain",
            f"{base}/gp/product/product-availability/{product_id}",
            f"{base}/hz/wishlist/ls/preview?asin={product_id}",
        ]

    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        return self._parse_json_or_html(body, product_id)
