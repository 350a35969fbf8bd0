# src/services/price_extractor.py

"""Runs the extraction strategies in priority order."""

import importlib
import logging
from typing import Any

from src.config.settings import Settings
from src.errors import ExtractionFailed
from src.filters.identifier_parser import (
    canonical_url,
    parse_product_identifier,
)
from src.filters.snapshot_validator import SnapshotValidator
from src.models.price import ZERO
from src.models.product import ProductSnapshot
from src.scrapers.base_strategy import BaseStrategy
from src.scrapers.page_parser import fallback_image_url

logger = logging.getLogger("price_tracker.extractor")


def _load_strategy_class(dotted_path: str) -> type[Any]:
    """Dynamically import a strategy class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def load_strategies(
    registry: list[dict[str, str]] | None = None,
) -> list[BaseStrategy]:
    """Instantiate every registered strategy, in registry order."""
    entries = registry if registry is not None else (
        Settings.EXTRACTION_STRATEGIES
    )
    strategies: list[BaseStrategy] = []
    for entry in entries:
        strategy_cls = _load_strategy_class(entry["strategy"])
        strategies.append(strategy_cls())
    return strategies


class PriceExtractor:
    """Best-effort product snapshot from the first strategy that works.

    Strategies are instantiated once and reused so their circuit
    breakers carry over between products within a process.
    """

    def __init__(
        self, strategies: list[BaseStrategy] | None = None,
    ) -> None:
        self.strategies = (
            strategies if strategies is not None else load_strategies()
        )

    def extract(self, product_id: str) -> ProductSnapshot:
        """Return the first valid snapshot or raise ``ExtractionFailed``."""
        for strategy in self.strategies:
            logger.debug("Trying %s for %s", strategy.name, product_id)
            snapshot = strategy.attempt(product_id)
            # Re-check here: a strategy may be swapped out in tests
            if snapshot is not None and SnapshotValidator.is_valid(
                snapshot, strategy.allow_unknown_price
            ):
                logger.info(
                    "Extracted %s via %s: %r at %s",
                    product_id,
                    strategy.name,
                    snapshot.title,
                    snapshot.price,
                )
                return snapshot
        logger.warning(
            "All %d strategies failed for %s",
            len(self.strategies),
            product_id,
        )
        raise ExtractionFailed(product_id)

    def lookup(self, raw_input: str) -> ProductSnapshot:
        """Parse a raw id or URL and extract, falling back to a placeholder.

        ``ValidationError`` from the identifier parser propagates; an
        exhausted strategy chain does not.
        """
        product_id = parse_product_identifier(raw_input)
        try:
            return self.extract(product_id)
        except ExtractionFailed:
            logger.info(
                "Returning placeholder snapshot for %s", product_id
            )
            return placeholder_snapshot(product_id)


def placeholder_snapshot(product_id: str) -> ProductSnapshot:
    """Deterministic stand-in flagged for manual correction."""
    return ProductSnapshot(
        product_id=product_id,
        title=f"Product {product_id} - Please update title manually",
        price=ZERO,
        image_url=fallback_image_url(product_id),
        availability=True,
        url=canonical_url(product_id),
        source="placeholder",
        needs_manual_entry=True,
    )
