# src/services/health_checker.py

"""Extraction strategy connectivity health checker."""

import asyncio
import logging
import time
from dataclasses import dataclass

from src.config.settings import Settings
from src.services.price_extractor import _load_strategy_class

logger = logging.getLogger("price_tracker.health")

_HEALTH_TIMEOUT = 10  # seconds per strategy
_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single strategy health check."""

    strategy_id: str
    status: str  # "ok", "slow", "down", "disabled"
    latency_ms: float
    message: str


def probe_strategy(entry: dict[str, str]) -> HealthResult:
    """Probe the host behind one registered strategy."""
    strategy_id = entry["id"]

    try:
        strategy = _load_strategy_class(entry["strategy"])()
    except Exception as exc:
        return HealthResult(
            strategy_id=strategy_id,
            status="down",
            latency_ms=0.0,
            message=f"Failed to load strategy: {exc}",
        )

    if not strategy.is_enabled():
        return HealthResult(
            strategy_id=strategy_id,
            status="disabled",
            latency_ms=0.0,
            message="Not configured",
        )

    start = time.monotonic()
    try:
        homepage = strategy._get_homepage()
        resp = strategy.session.get(
            homepage,
            headers=strategy.headers(),
            timeout=_HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000
    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            strategy_id=strategy_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )

    # RapidAPI answers its bare host with 404; any HTTP reply means reachable
    if resp.status_code >= 500:
        status, message = "down", f"HTTP {resp.status_code}"
    elif elapsed_ms > _SLOW_MS:
        status, message = "slow", "High latency"
    else:
        status, message = "ok", ""
        if resp.status_code != 200:
            message = f"HTTP {resp.status_code}"
    return HealthResult(
        strategy_id=strategy_id,
        status=status,
        latency_ms=elapsed_ms,
        message=message,
    )


class HealthChecker:
    """Runs concurrent health probes against all strategies."""

    def __init__(
        self, strategies: list[dict[str, str]] | None = None,
    ) -> None:
        self.strategies = (
            strategies if strategies is not None
            else Settings.EXTRACTION_STRATEGIES
        )

    async def check_all(self) -> list[HealthResult]:
        """Probe every registered strategy concurrently."""
        tasks = [
            asyncio.to_thread(probe_strategy, entry)
            for entry in self.strategies
        ]
        results: list[HealthResult] = list(
            await asyncio.gather(*tasks)
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.strategy_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
