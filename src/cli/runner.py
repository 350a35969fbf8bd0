# src/cli/runner.py

"""Headless CLI commands over the tracking services."""

import asyncio
import json
import logging
import signal
import sys
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from src.errors import PriceTrackerError, ValidationError
from src.models.price import format_price
from src.models.product import ProductSnapshot
from src.models.tracked_product import TrackedProduct
from src.services.health_checker import HealthChecker
from src.services.mailer import ResendMailer
from src.services.notification_delivery import NotificationDelivery
from src.services.price_checker import CheckStatus, PriceChecker
from src.services.price_extractor import PriceExtractor
from src.services.scheduler import PriceCheckScheduler, SweepReport
from src.services.tracking_service import TrackingService
from src.storage.repository import Repository
from src.storage.tracker_db import TrackerDB

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


@dataclass
class Services:
    """Everything a command needs, wired to one repository."""

    repository: Repository
    extractor: PriceExtractor
    tracking: TrackingService
    checker: PriceChecker
    delivery: NotificationDelivery

    def scheduler(self) -> PriceCheckScheduler:
        return PriceCheckScheduler(self.checker, self.delivery)


def build_services(db_path: str | None = None) -> Services:
    repository = TrackerDB(Path(db_path) if db_path else None)
    extractor = PriceExtractor()
    mailer = ResendMailer()
    return Services(
        repository=repository,
        extractor=extractor,
        tracking=TrackingService(repository, extractor, mailer),
        checker=PriceChecker(repository, extractor),
        delivery=NotificationDelivery(repository, mailer),
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    raise TypeError(f"Not serialisable: {type(value).__name__}")


def _dump_json(data: Any) -> None:
    json.dump(data, sys.stdout, default=_json_default, indent=2)
    sys.stdout.write("\n")


def _product_to_dict(p: TrackedProduct) -> dict[str, object]:
    return {
        "id": p.id,
        "product_id": p.product_id,
        "title": p.title,
        "current_price": p.current_price,
        "target_price": p.target_price,
        "original_price": p.original_price,
        "url": p.url,
        "image_url": p.image_url,
        "user_email": p.user_email,
        "last_checked": p.last_checked,
    }


def _snapshot_to_dict(s: ProductSnapshot) -> dict[str, object]:
    return {
        "product_id": s.product_id,
        "title": s.title,
        "price": s.price,
        "image_url": s.image_url,
        "availability": s.availability,
        "url": s.url,
        "source": s.source,
        "needs_manual_entry": s.needs_manual_entry,
    }


def _print_products(products: list[TrackedProduct]) -> None:
    """Render a Rich table of tracked products to stdout."""
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("ASIN", style="magenta")
    table.add_column("Title", max_width=50)
    table.add_column("Current", justify="right", style="green")
    table.add_column("Target", justify="right")
    table.add_column("Owner")
    table.add_column("Last checked", style="dim")

    for p in products:
        current = format_price(p.current_price)
        if p.below_target:
            current = f"[bold green]{current} ↓[/bold green]"
        table.add_row(
            str(p.id),
            p.product_id,
            p.title[:50],
            current,
            format_price(p.target_price),
            p.user_email,
            p.last_checked.strftime("%Y-%m-%d %H:%M")
            if p.last_checked else "—",
        )
    Console().print(table)


def _print_sweep(report: SweepReport | None) -> int:
    if report is None:
        _err.print("[yellow]A sweep is already running; skipped.[/yellow]")
        return 1
    _err.print(
        f"[green]✓ Checked {report.attempted} of {report.due}: "
        f"{report.updated} updated, {report.no_price} without price, "
        f"{report.failed} failed, {report.notifications} notifications"
        "[/green]"
    )
    for error_msg in report.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    return 0 if not report.failed else 1


# ── Commands ─────────────────────────────────────────────


def run_lookup(services: Services, raw_input: str, output_format: str) -> int:
    snapshot = services.extractor.lookup(raw_input)
    if snapshot.needs_manual_entry:
        _err.print(
            "[yellow]Could not fetch product details; "
            "manual entry needed.[/yellow]"
        )
    if output_format == "json":
        _dump_json(_snapshot_to_dict(snapshot))
        return 0

    table = Table(title=snapshot.product_id, title_style="bold cyan")
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    for key, value in _snapshot_to_dict(snapshot).items():
        if key == "price":
            value = format_price(snapshot.price) if snapshot.has_price else "N/A"
        table.add_row(key, str(value) if value is not None else "—")
    Console().print(table)
    return 0


def run_add(services: Services, args: Any) -> int:
    if args.title and args.price is not None:
        product = services.tracking.add_product(
            args.product, args.email, args.title, args.price, args.target,
        )
    else:
        product = services.tracking.add_from_lookup(
            args.product,
            args.email,
            args.target,
            title=args.title,
            current_price=args.price,
        )
    _err.print(
        f"[green]✓ Tracking #{product.id} {product.title} at "
        f"{format_price(product.current_price)} "
        f"(target {format_price(product.target_price)})[/green]"
    )
    return 0


def run_list(services: Services, email: str | None, output_format: str) -> int:
    products = services.tracking.list_products(email)
    if output_format == "json":
        _dump_json([_product_to_dict(p) for p in products])
        return 0
    if not products:
        _err.print("[yellow]No tracked products.[/yellow]")
        return 0
    _print_products(products)
    return 0


def run_remove(services: Services, product_ref: int) -> int:
    services.tracking.remove_product(product_ref)
    _err.print(f"[green]✓ Stopped tracking #{product_ref}[/green]")
    return 0


def run_edit(services: Services, args: Any) -> int:
    changes = {
        "title": args.title,
        "current_price": args.price,
        "target_price": args.target,
        "original_price": args.original,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise ValidationError(
            "Nothing to change; pass --title, --price, --target or --original"
        )
    product = services.tracking.update_product(args.id, **changes)
    _err.print(
        f"[green]✓ Updated #{product.id} {product.title}: "
        f"{format_price(product.current_price)} "
        f"(target {format_price(product.target_price)})[/green]"
    )
    return 0


def run_simulate(services: Services, product_ref: int, price: str) -> int:
    outcome = services.tracking.simulate_price_change(product_ref, price)
    if outcome.status is not CheckStatus.UPDATED:
        _err.print(f"[yellow]#{product_ref} was not updated.[/yellow]")
        return 1
    kind = outcome.decision.kind.value if outcome.decision else "unchanged"
    _err.print(
        f"[green]✓ #{product_ref}: {format_price(outcome.old_price)} -> "
        f"{format_price(outcome.new_price)} ({kind})[/green]"
    )
    if outcome.notification is not None:
        _err.print(
            f"[bold]Queued {outcome.notification.kind.value} "
            f"notification #{outcome.notification.id}[/bold]"
        )
    return 0


def run_history(
    services: Services, product_ref: int, output_format: str,
) -> int:
    entries = services.tracking.price_history(product_ref)
    if output_format == "json":
        _dump_json([
            {"price": e.price, "recorded_at": e.recorded_at}
            for e in entries
        ])
        return 0
    table = Table(
        title=f"Price history for #{product_ref}",
        title_style="bold cyan",
    )
    table.add_column("Recorded", style="dim")
    table.add_column("Price", justify="right", style="green")
    for e in entries:
        table.add_row(
            e.recorded_at.strftime("%Y-%m-%d %H:%M"), format_price(e.price)
        )
    Console().print(table)
    return 0


async def run_check(services: Services) -> int:
    _err.print("[bold]Checking all tracked products...[/bold]")
    report = await services.scheduler().trigger_manual_check()
    return _print_sweep(report)


def run_deliver(services: Services, weekly: bool) -> int:
    report = services.delivery.deliver_pending()
    _err.print(
        f"[green]✓ {report.sent} sent, {report.acknowledged} acknowledged, "
        f"{report.failed} failed, {report.suppressed} suppressed[/green]"
    )
    for error_msg in report.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    if weekly:
        sent = services.delivery.send_weekly_summaries()
        _err.print(f"[green]✓ {sent} weekly summaries sent[/green]")
    return 0 if not report.failed else 1


def run_settings(services: Services, args: Any) -> int:
    changes = {
        "email_price_drops": args.price_drops,
        "email_weekly_summary": args.weekly_summary,
        "check_frequency": args.frequency,
        "price_threshold": args.threshold,
    }
    if any(v is not None for v in changes.values()):
        settings = services.tracking.save_settings(args.email, **changes)
    else:
        settings = services.tracking.get_settings(args.email)
    _dump_json({
        "user_email": settings.user_email,
        "email_price_drops": settings.email_price_drops,
        "email_weekly_summary": settings.email_weekly_summary,
        "check_frequency": settings.check_frequency,
        "price_threshold": settings.price_threshold,
    })
    return 0


def run_stats(services: Services, email: str | None) -> int:
    stats = services.tracking.stats(email)
    table = Table(title="Tracking Stats", title_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Tracked products", str(stats.tracked_count))
    table.add_row("Below target", str(stats.price_drops))
    table.add_row("Potential savings", format_price(stats.total_savings))
    table.add_row(
        "Last check",
        stats.last_check.strftime("%Y-%m-%d %H:%M")
        if stats.last_check else "—",
    )
    Console().print(table)
    return 0


def run_test_email(services: Services, email: str) -> int:
    if services.tracking.send_test_notification(email):
        _err.print(f"[green]✓ Test notification sent to {email}[/green]")
        return 0
    _err.print("[red]Failed to send test notification[/red]")
    return 1


async def run_scheduler(services: Services) -> int:
    """Run the background loops in the foreground until interrupted."""
    scheduler = services.scheduler()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows: KeyboardInterrupt ends asyncio.run instead

    await scheduler.start()
    _err.print("[bold]Scheduler running. Press Ctrl-C to stop.[/bold]")
    try:
        await stop.wait()
    finally:
        _err.print("[dim]Stopping, finishing current product...[/dim]")
        await scheduler.stop()
    status = scheduler.get_status()
    _err.print(f"[dim]{status['stats']}[/dim]")
    return 0


async def run_health_check() -> int:
    """Run connectivity health check on all strategies."""
    _err.print("[bold]Running extraction health check...[/bold]")
    checker = HealthChecker()
    results = await checker.check_all()

    table = Table(
        title="Strategy Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Strategy", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        elif r.status == "disabled":
            status = "[dim]⏸  OFF[/dim]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(
            r.strategy_id, status, latency, r.message,
        )

    Console().print(table)
    return 1 if any_down else 0


def dispatch(args: Any) -> int:
    """Run the selected subcommand; maps domain errors to exit code 2."""
    if args.command == "health":
        return asyncio.run(run_health_check())

    services = build_services(args.db)
    try:
        if args.command == "lookup":
            return run_lookup(services, args.product, args.output_format)
        if args.command == "add":
            return run_add(services, args)
        if args.command == "list":
            return run_list(services, args.email, args.output_format)
        if args.command == "remove":
            return run_remove(services, args.id)
        if args.command == "edit":
            return run_edit(services, args)
        if args.command == "simulate":
            return run_simulate(services, args.id, args.price)
        if args.command == "history":
            return run_history(services, args.id, args.output_format)
        if args.command == "check":
            return asyncio.run(run_check(services))
        if args.command == "deliver":
            return run_deliver(services, args.weekly)
        if args.command == "settings":
            return run_settings(services, args)
        if args.command == "stats":
            return run_stats(services, args.email)
        if args.command == "test-email":
            return run_test_email(services, args.email)
        if args.command == "run":
            return asyncio.run(run_scheduler(services))
    except PriceTrackerError as exc:
        logger.warning("Command %s failed: %s", args.command, exc)
        _err.print(f"[red]{exc}[/red]")
        return 2
    finally:
        if isinstance(services.repository, TrackerDB):
            services.repository.close()
    _err.print(f"[red]Unknown command: {args.command}[/red]")
    return 2
