# src/scrapers/review_page_strategy.py

"""Last-resort title confirmation from the review pages."""

from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy


class ReviewPageStrategy(BaseStrategy):
    """Review pages link back to the product by its full title.

    They never show the current price; snapshots from here always
    carry price 0.
    """

    name = "reviews"
    allow_unknown_price = True

    def endpoints(self, product_id: str) -> list[str]:
        base = self.settings.CATALOG_BASE_URL
        return [
            f"{base}/product-reviews/{product_id}/"
            "ref=cm_cr_dp_see_all_btm?ie=UTF8&sortBy=recent",
            f"{base}/hz/reviews-render/ajax/reviews-filter?asin={product_id}"
            "&filterBy=recent&pageNumber=1",
        ]

    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        return self._parse_html(body, product_id, profile="reviews")
