# src/scrapers/open_graph_strategy.py

"""Link-preview metadata from the share page."""

from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy


class OpenGraphStrategy(BaseStrategy):
    """Reads og:* meta tags served to link-preview crawlers.

    Share pages rarely carry a price, so an unknown (zero) price is
    accepted here.
    """

    name = "open_graph"
    allow_unknown_price = True
    user_agent = (
        "facebookexternalhit/1.1 "
        "(+http://www.facebook.com/externalhit_uatext.php)"
    )

    def endpoints(self, product_id: str) -> list[str]:
        base = self.settings.CATALOG_BASE_URL
        return [
            f"{base}/share/dp/{product_id}",
            f"{base}/dp/{product_id}",
        ]

    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        return self._parse_html(body, product_id, profile="open_graph")
