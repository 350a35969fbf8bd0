# src/errors.py

"""Exception taxonomy shared by the tracker services."""


class PriceTrackerError(Exception):
    """Base class for all price_tracker errors."""


class ValidationError(PriceTrackerError):
    """Malformed input (bad identifier, URL, email or price)."""


class ExtractionFailed(PriceTrackerError):
    """Every extraction strategy was exhausted for a product."""

    def __init__(self, product_id: str) -> None:
        super().__init__(
            f"Unable to fetch product data for {product_id}. "
            "Please enter product details manually."
        )
        self.product_id = product_id


class NotFound(PriceTrackerError):
    """A referenced entity does not exist in the repository."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class DuplicateTracking(PriceTrackerError):
    """The identifier is already actively tracked for this email."""

    def __init__(self, product_id: str, email: str) -> None:
        super().__init__(
            f"Product {product_id} is already being tracked for {email}"
        )
        self.product_id = product_id
        self.email = email


class DeliveryFailed(PriceTrackerError):
    """The mailer did not accept a notification for delivery."""

    def __init__(self, notification_id: int, reason: str) -> None:
        super().__init__(
            f"Delivery failed for notification {notification_id}: {reason}"
        )
        self.notification_id = notification_id
        self.reason = reason
