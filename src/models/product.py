# src/models/product.py

"""Extraction snapshot model for inter-module data flow."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class ProductSnapshot:
    """Best-effort current view of a catalog product."""

    product_id: str
    title: str
    price: Decimal
    image_url: str | None = None
    availability: bool = True
    url: str = ""
    source: str = ""
    needs_manual_entry: bool = False

    @property
    def has_price(self) -> bool:
        """True when the source reported a non-zero price."""
        return self.price > 0
