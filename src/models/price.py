# src/models/price.py

"""Fixed two-decimal price values."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_price(value: object) -> Decimal:
    """Convert *value* to a non-negative Decimal with 2dp precision.

    Floats go through ``str`` first so ``19.99`` stays ``19.99``.
    Raises ``ValidationError`` for negative or unparseable input.
    """
    if isinstance(value, Decimal):
        raw = value
    else:
        try:
            raw = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid price: {value!r}") from exc
    if not raw.is_finite():
        raise ValidationError(f"Invalid price: {value!r}")
    price = raw.quantize(CENT, rounding=ROUND_HALF_UP)
    if price < 0:
        raise ValidationError(f"Price must not be negative: {value!r}")
    return price


def format_price(value: Decimal) -> str:
    """Render a price for display, e.g. ``$1,299.00``."""
    return f"${value:,.2f}"
