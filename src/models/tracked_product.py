# src/models/tracked_product.py

"""Tracked product model owned by the repository."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass
class TrackedProduct:
    """A catalog product a user is watching for a target price."""

    id: int
    product_id: str
    title: str
    current_price: Decimal
    target_price: Decimal
    url: str
    user_email: str
    image_url: str | None = None
    original_price: Decimal | None = None
    is_active: bool = True
    last_checked: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def below_target(self) -> bool:
        """True when the current price is under the target."""
        return self.current_price < self.target_price

    @property
    def potential_savings(self) -> Decimal:
        """Target minus current price, floored at zero."""
        return max(self.target_price - self.current_price, Decimal("0.00"))


# Fields a caller may change through ``Repository.update``.
UPDATABLE_FIELDS: frozenset[str] = frozenset({
    "title",
    "current_price",
    "target_price",
    "original_price",
    "url",
    "image_url",
    "is_active",
    "last_checked",
})
