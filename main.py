# main.py

"""Entry point for the price_tracker command line."""

import argparse
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _bool_flag(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected true/false, got {value!r}")


def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    strategy_ids = ", ".join(s["id"] for s in Settings.EXTRACTION_STRATEGIES)

    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description="Track catalog prices and email on drops.",
        epilog=f"Extraction strategies, in order: {strategy_ids}",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: data/tracker.db).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Echo INFO logs to the console.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    lookup = sub.add_parser("lookup", help="Fetch product details.")
    lookup.add_argument("product", help="ASIN or product URL.")
    _add_format(lookup)

    add = sub.add_parser("add", help="Start tracking a product.")
    add.add_argument("product", help="ASIN or product URL.")
    add.add_argument("--email", required=True)
    add.add_argument("--target", required=True, help="Target price.")
    add.add_argument("--title", default=None, help="Manual title.")
    add.add_argument("--price", default=None, help="Manual current price.")

    listing = sub.add_parser("list", help="List tracked products.")
    listing.add_argument("--email", default=None)
    _add_format(listing)

    remove = sub.add_parser("remove", help="Stop tracking a product.")
    remove.add_argument("id", type=int)

    edit = sub.add_parser("edit", help="Edit a tracked product by hand.")
    edit.add_argument("id", type=int)
    edit.add_argument("--title", default=None)
    edit.add_argument("--price", default=None, help="Current price.")
    edit.add_argument("--target", default=None, help="Target price.")
    edit.add_argument(
        "--original", default=None, help="Original (list) price."
    )

    simulate = sub.add_parser(
        "simulate", help="Feed a made-up price through the check path."
    )
    simulate.add_argument("id", type=int)
    simulate.add_argument("price", help="New observed price.")

    history = sub.add_parser("history", help="Show price history.")
    history.add_argument("id", type=int)
    _add_format(history)

    sub.add_parser("check", help="Check every product now.")

    deliver = sub.add_parser("deliver", help="Send pending notifications.")
    deliver.add_argument(
        "--weekly",
        action="store_true",
        default=False,
        help="Also send weekly summaries now.",
    )

    settings = sub.add_parser("settings", help="Show or change settings.")
    settings.add_argument("email")
    settings.add_argument("--price-drops", type=_bool_flag, default=None)
    settings.add_argument("--weekly-summary", type=_bool_flag, default=None)
    settings.add_argument(
        "--frequency",
        type=int,
        choices=Settings.ALLOWED_CHECK_FREQUENCIES,
        default=None,
        help="Check frequency in hours.",
    )
    settings.add_argument(
        "--threshold", default=None, help="Minimum price change."
    )

    stats = sub.add_parser("stats", help="Show tracking statistics.")
    stats.add_argument("--email", default=None)

    test_email = sub.add_parser(
        "test-email", help="Send a sample price drop alert."
    )
    test_email.add_argument("email")

    sub.add_parser("run", help="Run the scheduler until interrupted.")
    sub.add_parser("health", help="Probe every extraction strategy.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run the chosen command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = setup_logging(verbose=args.verbose)
    logger.info("price_tracker %s starting, log file: %s", args.command, log_file)

    from src.cli.runner import dispatch

    try:
        exit_code = dispatch(args)
    except Exception:
        logger.critical("Fatal error during %s", args.command, exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
