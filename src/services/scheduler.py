# src/services/scheduler.py

"""Background scheduler for sweeps, delivery and weekly summaries."""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from src.config.settings import Settings
from src.services.notification_delivery import NotificationDelivery
from src.services.price_checker import CheckStatus, PriceChecker

logger = logging.getLogger("price_tracker.scheduler")


class SweepState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SweepReport:
    """Tally of one catalog sweep."""

    started_at: datetime
    finished_at: datetime | None = None
    forced: bool = False
    due: int = 0
    updated: int = 0
    no_price: int = 0
    failed: int = 0
    skipped: int = 0
    notifications: int = 0
    cancelled: bool = False
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def attempted(self) -> int:
        return self.updated + self.no_price + self.failed + self.skipped


def next_weekly_run(
    now: datetime,
    weekday: int | None = None,
    hour: int | None = None,
) -> datetime:
    """Next occurrence of ``weekday`` at ``hour``:00 strictly after *now*."""
    weekday = Settings.WEEKLY_SUMMARY_WEEKDAY if weekday is None else weekday
    hour = Settings.WEEKLY_SUMMARY_HOUR if hour is None else hour
    candidate = now.replace(
        hour=hour, minute=0, second=0, microsecond=0
    ) + timedelta(days=(weekday - now.weekday()) % 7)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


class PriceCheckScheduler:
    """Drives sweeps, the delivery consumer and weekly summaries.

    At most one sweep runs at a time.  A timer tick or manual trigger
    arriving while a sweep is running is skipped, not queued.  Products
    are checked one after another in worker threads with a fixed delay
    in between; ``stop()`` lets the current product finish and then
    abandons the rest of the sweep.
    """

    def __init__(
        self,
        checker: PriceChecker,
        delivery: NotificationDelivery | None = None,
        inter_item_delay: float | None = None,
        sweep_interval: float | None = None,
        delivery_interval: float | None = None,
    ) -> None:
        self.checker = checker
        self.delivery = delivery
        self.inter_item_delay = (
            Settings.INTER_ITEM_DELAY
            if inter_item_delay is None else inter_item_delay
        )
        self.sweep_interval = (
            Settings.SWEEP_TICK_SECONDS
            if sweep_interval is None else sweep_interval
        )
        self.delivery_interval = (
            Settings.DELIVERY_POLL_SECONDS
            if delivery_interval is None else delivery_interval
        )
        # Single slot: whoever holds it owns the running sweep
        self._sweep_slot = threading.Lock()
        self._state = SweepState.IDLE
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []
        self._last_sweep: SweepReport | None = None
        self._last_summary_at: datetime | None = None
        self._stats: dict[str, int] = {
            "sweeps_total": 0,
            "sweeps_skipped": 0,
            "checks_total": 0,
            "checks_updated": 0,
            "checks_failed": 0,
            "notifications_created": 0,
            "emails_sent": 0,
            "summaries_sent": 0,
        }

    @property
    def state(self) -> SweepState:
        return self._state

    @property
    def is_started(self) -> bool:
        return bool(self._tasks)

    # ── Sweeps ───────────────────────────────────────────

    async def run_sweep(self, force: bool = False) -> SweepReport | None:
        """Run one sweep, or return ``None`` if one is already running."""
        if not self._sweep_slot.acquire(blocking=False):
            self._stats["sweeps_skipped"] += 1
            logger.info("Sweep already running; skipping this trigger")
            return None
        self._state = SweepState.RUNNING
        try:
            report = await self._sweep(force)
        finally:
            self._state = SweepState.IDLE
            self._sweep_slot.release()
        self._last_sweep = report
        self._stats["sweeps_total"] += 1
        return report

    async def trigger_manual_check(self) -> SweepReport | None:
        """Check every active product now, due or not."""
        logger.info("Manual price check requested")
        return await self.run_sweep(force=True)

    async def _sweep(self, force: bool) -> SweepReport:
        report = SweepReport(started_at=datetime.now(), forced=force)
        products = await asyncio.to_thread(
            self.checker.due_products, report.started_at, force
        )
        report.due = len(products)
        if products:
            logger.info("Sweep started: %d products due", len(products))

        for index, product in enumerate(products):
            if self._stop_event.is_set():
                report.cancelled = True
                break
            if index and await self._wait(self.inter_item_delay):
                report.cancelled = True
                break

            self._stats["checks_total"] += 1
            try:
                outcome = await asyncio.to_thread(
                    self.checker.check_product, product.id
                )
            except Exception as exc:
                report.failed += 1
                report.errors.append(f"{product.id}: {exc}")
                self._stats["checks_failed"] += 1
                logger.error(
                    "Error checking price for product %d: %s",
                    product.id,
                    exc,
                    exc_info=True,
                )
                continue

            if outcome.status is CheckStatus.UPDATED:
                report.updated += 1
                self._stats["checks_updated"] += 1
            elif outcome.status is CheckStatus.NO_PRICE:
                report.no_price += 1
            elif outcome.status is CheckStatus.FAILED:
                report.failed += 1
                self._stats["checks_failed"] += 1
            else:
                report.skipped += 1
            if outcome.notification is not None:
                report.notifications += 1
                self._stats["notifications_created"] += 1

        report.finished_at = datetime.now()
        if report.due or report.cancelled:
            logger.info(
                "Sweep finished: %d updated, %d without price, %d failed, "
                "%d skipped, %d notifications%s",
                report.updated,
                report.no_price,
                report.failed,
                report.skipped,
                report.notifications,
                " (cancelled)" if report.cancelled else "",
            )
        return report

    # ── Delivery and summaries ───────────────────────────

    async def deliver_once(self) -> None:
        if self.delivery is None:
            return
        report = await asyncio.to_thread(self.delivery.deliver_pending)
        self._stats["emails_sent"] += report.sent

    async def send_weekly_summaries(self) -> int:
        if self.delivery is None:
            return 0
        sent = await asyncio.to_thread(self.delivery.send_weekly_summaries)
        self._last_summary_at = datetime.now()
        self._stats["summaries_sent"] += sent
        return sent

    # ── Lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        """Start the background loops."""
        if self._tasks:
            logger.warning("Scheduler already running")
            return
        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(self._sweep_loop(), name="sweep"),
            asyncio.create_task(self._delivery_loop(), name="delivery"),
            asyncio.create_task(self._weekly_loop(), name="weekly"),
        ]
        logger.info(
            "Price check scheduler started (sweep every %.0fs, "
            "delivery every %.0fs)",
            self.sweep_interval,
            self.delivery_interval,
        )

    async def stop(self) -> None:
        """Signal every loop to finish and wait for them to drain."""
        self._stop_event.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Price check scheduler stopped")

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; True if a stop was requested."""
        if self._stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(
                self._stop_event.wait(), timeout=max(seconds, 0.0)
            )
        except asyncio.TimeoutError:
            return False
        return True

    async def _sweep_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_sweep()
            except Exception as exc:
                logger.error("Scheduler error: %s", exc, exc_info=True)
            if await self._wait(self.sweep_interval):
                break

    async def _delivery_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.deliver_once()
            except Exception as exc:
                logger.error("Delivery error: %s", exc, exc_info=True)
            if await self._wait(self.delivery_interval):
                break

    async def _weekly_loop(self) -> None:
        while not self._stop_event.is_set():
            now = datetime.now()
            due_at = next_weekly_run(now)
            logger.debug("Next weekly summary at %s", due_at.isoformat())
            if await self._wait((due_at - now).total_seconds()):
                break
            try:
                await self.send_weekly_summaries()
            except Exception as exc:
                logger.error(
                    "Weekly summary error: %s", exc, exc_info=True
                )

    def get_status(self) -> dict[str, Any]:
        """Scheduler state and counters."""
        last = self._last_sweep
        return {
            "state": self._state.value,
            "started": self.is_started,
            "last_sweep": (
                last.finished_at.isoformat()
                if last and last.finished_at else None
            ),
            "last_summary": (
                self._last_summary_at.isoformat()
                if self._last_summary_at else None
            ),
            "stats": dict(self._stats),
        }
