# main.py

"""Entry point for the price_agent command-line interface."""

import argparse
import asyncio
import logging
import sys

from price_agent.config.logging_config import setup_logging
from price_agent.config.settings import Settings
from price_agent.models.price_tier import DeliveryClass

logger = logging.getLogger("price_agent.main")


def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    delivery_ids = ", ".join(dc.value for dc in DeliveryClass)

    parser = argparse.ArgumentParser(
        prog="price-agent",
        description="Corporate gifts pricing engine.",
        epilog=f"Delivery classes: {delivery_ids}",
    )
    parser.add_argument(
        "--db",
        default=None,
        help=f"Catalog database path (default: {Settings.CATALOG_DB_PATH}).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Log progress to the console.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    quote = sub.add_parser(
        "quote", help="Quote a natural-language request.",
    )
    quote.add_argument("text", help='e.g. "200 canvas tote bags 1c x 0c"')
    _add_format(quote)

    lookup = sub.add_parser(
        "lookup", help="Quote an exact product name.",
    )
    lookup.add_argument("--product", required=True)
    lookup.add_argument("--print", default=None, dest="print_option")
    lookup.add_argument("--delivery", default=None)
    lookup.add_argument("--qty", type=int, default=None, dest="quantity")
    _add_format(lookup)

    products = sub.add_parser("products", help="List catalog products.")
    products.add_argument("--category", default=None)
    products.add_argument(
        "--limit", type=int, default=Settings.PRODUCT_PAGE_SIZE,
    )
    products.add_argument("--offset", type=int, default=0)
    _add_format(products)

    tiers = sub.add_parser(
        "tiers", help="Show every price tier of one variant.",
    )
    tiers.add_argument("--product", required=True)
    tiers.add_argument("--print", default=None, dest="print_option")
    tiers.add_argument("--delivery", default=None)
    _add_format(tiers)

    moq = sub.add_parser(
        "moq", help="Show minimum order quantities of a product.",
    )
    moq.add_argument("--product", required=True)
    _add_format(moq)

    imp = sub.add_parser(
        "import", help="Replace the catalog from a pricing CSV.",
    )
    imp.add_argument("csv_path")

    sub.add_parser(
        "health", help="Check the catalog and the query parser.",
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Run the selected command and return its exit code."""
    from price_agent.cli import runner

    if args.command == "quote":
        return asyncio.run(
            runner.cli_quote(args.text, args.output_format, args.db)
        )
    if args.command == "lookup":
        return asyncio.run(
            runner.cli_lookup(
                product=args.product,
                print_option=args.print_option,
                delivery=args.delivery,
                quantity=args.quantity,
                output_format=args.output_format,
                db_path=args.db,
            )
        )
    if args.command == "products":
        return asyncio.run(
            runner.cli_products(
                args.category,
                args.limit,
                args.offset,
                args.output_format,
                args.db,
            )
        )
    if args.command == "tiers":
        return asyncio.run(
            runner.cli_tiers(
                args.product,
                args.print_option,
                args.delivery,
                args.output_format,
                args.db,
            )
        )
    if args.command == "moq":
        return asyncio.run(
            runner.cli_moq(args.product, args.output_format, args.db)
        )
    if args.command == "import":
        return runner.run_import(args.csv_path, args.db)
    return asyncio.run(runner.run_health_check(args.db))


def main() -> None:
    """Parse arguments, set up logging and run one command."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(verbose=args.verbose)
    logger.info("price_agent starting, log file: %s", log_file)

    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error in %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("price_agent %s finished", args.command)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
