# src/services/change_classifier.py

"""Decides whether a price movement is worth a notification."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from src.config.settings import Settings
from src.models.notification import NotificationKind
from src.models.price import to_price


class ChangeKind(str, Enum):
    """Outcome of comparing an old and a new price."""

    NONE = "none"
    DROP = "drop"                   # History only
    DROP_NOTABLE = "drop_notable"
    INCREASE_NOTABLE = "increase_notable"


@dataclass(frozen=True)
class ChangeDecision:
    """Classification result plus the raw ``new - old`` delta."""

    kind: ChangeKind
    delta: Decimal
    should_notify: bool

    @property
    def is_change(self) -> bool:
        return self.kind is not ChangeKind.NONE


def classify(
    old_price: Decimal | str | float,
    new_price: Decimal | str | float,
    target_price: Decimal | str | float,
    min_change: Decimal | None = None,
    notify_threshold: Decimal | None = None,
    notify_on_increase: bool | None = None,
) -> ChangeDecision:
    """Classify a price change.

    Rules, in order:

    * ``|new - old| < min_change`` is no change.
    * A drop notifies when the new price reaches the target or the
      drop is at least ``notify_threshold``; otherwise it is recorded
      in history only.
    * An increase is notable; it notifies only when
      ``notify_on_increase`` is set.

    All comparisons are on 2dp Decimals.
    """
    old = to_price(old_price)
    new = to_price(new_price)
    target = to_price(target_price)
    min_change = to_price(
        Settings.MIN_CHANGE_THRESHOLD if min_change is None else min_change
    )
    notify_threshold = to_price(
        Settings.NOTIFY_THRESHOLD
        if notify_threshold is None
        else notify_threshold
    )
    if notify_on_increase is None:
        notify_on_increase = Settings.NOTIFY_ON_INCREASE

    delta = new - old
    if abs(delta) < min_change:
        return ChangeDecision(ChangeKind.NONE, delta, False)

    if new < old:
        if new <= target or (old - new) >= notify_threshold:
            return ChangeDecision(ChangeKind.DROP_NOTABLE, delta, True)
        return ChangeDecision(ChangeKind.DROP, delta, False)

    return ChangeDecision(
        ChangeKind.INCREASE_NOTABLE, delta, notify_on_increase
    )


def notification_kind(decision: ChangeDecision) -> NotificationKind | None:
    """Map a notify-worthy decision onto a ledger notification kind."""
    if not decision.should_notify:
        return None
    if decision.kind is ChangeKind.DROP_NOTABLE:
        return NotificationKind.PRICE_DROP
    if decision.kind is ChangeKind.INCREASE_NOTABLE:
        return NotificationKind.PRICE_INCREASE
    return None
