# src/scrapers/rapidapi_strategy.py

"""Structured product data from the RapidAPI real-time catalog API."""

import json
from typing import Any
from urllib.parse import quote

from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy
from src.scrapers.page_parser import parse_json_product


class RapidApiStrategy(BaseStrategy):
    """Product-details endpoint first, then a search by identifier."""

    name = "rapidapi"
    accept = "application/json"

    def is_enabled(self) -> bool:
        """Only usable with an API key configured."""
        return bool(self.settings.RAPIDAPI_KEY)

    def _get_homepage(self) -> str:
        return f"https://{self.settings.RAPIDAPI_HOST}/"

    def headers(self) -> dict[str, str]:
        return {
            "Accept": self.accept,
            "X-RapidAPI-Key": self.settings.RAPIDAPI_KEY,
            "X-RapidAPI-Host": self.settings.RAPIDAPI_HOST,
        }

    def endpoints(self, product_id: str) -> list[str]:
        base = f"https://{self.settings.RAPIDAPI_HOST}"
        country = quote(self.settings.RAPIDAPI_COUNTRY)
        return [
            f"{base}/product-details?asin={product_id}&country={country}",
            f"{base}/search?query={product_id}&country={country}"
            "&category_id=aps",
        ]

    def parse(
        self, body: str, product_id: str,
    ) -> ProductSnapshot | None:
        try:
            data: Any = json.loads(body)
        except ValueError:
            self.logger.debug(
                "[rapidapi] Non-JSON response for %s", product_id
            )
            return None
        if not isinstance(data, dict):
            return None

        status = str(data.get("status", "")).lower()
        if status == "success":
            # Flat product-details payload
            return parse_json_product(
                {"product": data}, product_id, source=self.name
            )
        if status == "ok":
            return parse_json_product(
                data, product_id, source=self.name
            )
        return None
