# src/models/price_history.py

"""Append-only price observation for price history tracking."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class PriceHistoryEntry:
    """A single price observation for a tracked product."""

    id: int
    product_ref: int
    price: Decimal
    recorded_at: datetime
