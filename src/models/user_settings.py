# src/models/user_settings.py

"""Per-email notification preferences."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass
class UserSettings:
    """Notification preferences keyed by the owning email."""

    user_email: str
    email_price_drops: bool = True
    email_weekly_summary: bool = False
    check_frequency: int = 24
    price_threshold: Decimal = Decimal("1.00")
    id: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
