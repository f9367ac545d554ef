# price_agent/cli/runner.py

"""Headless CLI commands: each opens the catalog, runs one engine call
and renders the result as JSON or a Rich table."""

import json
import logging
import sys
from collections.abc import Awaitable, Callable
from decimal import Decimal
from pathlib import Path

from rich.console import Console
from rich.table import Table

from price_agent.errors import (
    CollaboratorUnavailable,
    InvalidInput,
    ParseFailure,
    StoreUnavailable,
)
from price_agent.models.catalog import MoqSummary, ProductListing, VariantTiers
from price_agent.models.quote import QuoteResponse, StructuredQuery
from price_agent.services.health_checker import HealthChecker
from price_agent.services.pricing_orchestrator import PricingOrchestrator
from price_agent.services.query_parser_client import QueryParserClient
from price_agent.storage.catalog_loader import import_catalog
from price_agent.storage.sqlite_store import SQLiteCatalogStore

logger = logging.getLogger("price_agent.cli")

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_CLIENT_ERROR = 2
EXIT_INFRA_ERROR = 3

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _money(amount: Decimal | None, currency: str = "") -> str:
    if amount is None:
        return "—"
    return f"{currency} {amount:,.2f}".strip()


def _dump_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


async def _guarded(
    db_path: str | None,
    command: Callable[[PricingOrchestrator], Awaitable[int]],
    parser: QueryParserClient | None = None,
) -> int:
    """Open the catalog, run ``command`` and map failures to exit codes."""
    store: SQLiteCatalogStore | None = None
    try:
        store = SQLiteCatalogStore(Path(db_path) if db_path else None)
        return await command(PricingOrchestrator(store, parser))
    except (ParseFailure, InvalidInput) as exc:
        logger.warning("Request rejected: %s", exc)
        _err.print(f"[red]{exc}[/red]")
        return EXIT_CLIENT_ERROR
    except (StoreUnavailable, CollaboratorUnavailable) as exc:
        logger.error("Infrastructure failure: %s", exc, exc_info=True)
        _err.print(f"[red]Service unavailable: {exc}[/red]")
        return EXIT_INFRA_ERROR
    finally:
        if store is not None:
            store.close()


# ── Quote rendering ──────────────────────────────────────


def _print_quote_table(response: QuoteResponse) -> None:
    """Render results and alternatives as Rich tables to stdout."""
    console = Console()
    table = Table(
        title="Price Quote",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Product", max_width=40)
    table.add_column("Print option")
    table.add_column("Delivery", style="magenta")
    table.add_column("Tier", justify="right")
    table.add_column("Unit", justify="right", style="green")
    table.add_column("Total", justify="right", style="bold green")
    table.add_column("Note", style="yellow")

    for idx, priced in enumerate(response.results, 1):
        quote = priced.quote
        delivery = quote.delivery_class.value
        if priced.delivery_fallback_used:
            delivery += f" (asked {priced.requested_delivery_class.value})"
        table.add_row(
            str(idx),
            priced.product.name,
            quote.print_option,
            f"{delivery}\n{quote.days_min}-{quote.days_max} days",
            str(quote.tier_quantity) if quote.tier_quantity else "—",
            _money(quote.unit_price, quote.currency),
            _money(quote.total_price, quote.currency),
            quote.note or "",
        )
    console.print(table)

    if response.alternatives:
        alt_table = Table(
            title="Alternatives",
            title_style="bold cyan",
        )
        alt_table.add_column("Product", max_width=40)
        alt_table.add_column("Print option")
        alt_table.add_column("Tier", justify="right")
        alt_table.add_column("Unit", justify="right", style="green")
        for alt in response.alternatives:
            tier = str(alt.tier_quantity)
            if alt.below_moq:
                tier += " (MOQ)"
            alt_table.add_row(
                alt.product_name,
                alt.print_option,
                tier,
                _money(alt.unit_price, alt.currency),
            )
        console.print(alt_table)


def _report(response: QuoteResponse, output_format: str) -> int:
    """Print a quote response and return its exit code."""
    if response.message:
        colour = "green" if response.found else "yellow"
        _err.print(f"[{colour}]{response.message}[/{colour}]")
    if response.suggestions:
        _err.print(
            f"[dim]Did you mean: {', '.join(response.suggestions)}[/dim]"
        )

    if output_format == "table":
        if response.results or response.alternatives:
            _print_quote_table(response)
    else:
        _dump_json(response.to_dict())

    if response.found:
        _err.print(
            f"[green]✓ {len(response.results)} product(s) priced[/green]"
        )
        return EXIT_OK
    return EXIT_NOT_FOUND


async def cli_quote(
    text: str, output_format: str, db_path: str | None = None,
) -> int:
    """Quote a natural-language request via the text-understanding service."""
    _err.print(f"[bold]Quoting:[/bold] {text}")

    async def command(engine: PricingOrchestrator) -> int:
        return _report(await engine.quote_text(text), output_format)

    return await _guarded(db_path, command, parser=QueryParserClient())


async def cli_lookup(
    product: str,
    print_option: str | None,
    delivery: str | None,
    quantity: int | None,
    output_format: str,
    db_path: str | None = None,
) -> int:
    """Quote an exact product name."""
    query = StructuredQuery(
        product_name=product,
        print_option=print_option,
        delivery_class=delivery,
        quantity=quantity,
    )

    async def command(engine: PricingOrchestrator) -> int:
        return _report(
            await engine.resolve_structured(query), output_format,
        )

    return await _guarded(db_path, command)


# ── Catalog browsing ─────────────────────────────────────


def _print_products_table(listing: ProductListing) -> None:
    table = Table(
        title=(
            f"Products {listing.offset + 1}-"
            f"{listing.offset + len(listing.products)} of {listing.total}"
        ),
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Product", max_width=40)
    table.add_column("Category", style="magenta")
    table.add_column("Dimensions", style="dim")
    table.add_column("Print options", max_width=40)
    table.add_column("MOQ", justify="right")
    table.add_column("From", justify="right", style="green")
    for summary in listing.products:
        table.add_row(
            summary.product.name,
            summary.product.category or "—",
            summary.product.dimensions or "—",
            "\n".join(summary.print_options) or "—",
            str(summary.moq) if summary.moq else "—",
            _money(summary.starting_price),
        )
    Console().print(table)


async def cli_products(
    category: str | None,
    limit: int,
    offset: int,
    output_format: str,
    db_path: str | None = None,
) -> int:
    """List catalog products with print options and starting prices."""

    async def command(engine: PricingOrchestrator) -> int:
        listing = await engine.list_products(category, limit, offset)
        if output_format == "table":
            _print_products_table(listing)
        else:
            _dump_json(listing.to_dict())
        return EXIT_OK if listing.products else EXIT_NOT_FOUND

    return await _guarded(db_path, command)


def _print_tiers_table(variant: VariantTiers) -> None:
    table = Table(
        title=(
            f"{variant.product_name} / {variant.print_option} / "
            f"{variant.delivery_class.value} "
            f"({variant.days_min}-{variant.days_max} days)"
        ),
        title_style="bold cyan",
    )
    table.add_column("Quantity", justify="right")
    table.add_column("Unit price", justify="right", style="green")
    table.add_column("MOQ", justify="center")
    for tier in variant.tiers:
        table.add_row(
            f"{tier.quantity:,}",
            _money(tier.unit_price, tier.currency),
            "✓" if tier.is_moq else "",
        )
    Console().print(table)


async def cli_tiers(
    product: str,
    print_option: str | None,
    delivery: str | None,
    output_format: str,
    db_path: str | None = None,
) -> int:
    """Show the full price curve of one variant."""

    async def command(engine: PricingOrchestrator) -> int:
        variant = await engine.variant_tiers(product, print_option, delivery)
        if variant is None:
            _err.print(
                f"[yellow]No pricing for {product} "
                f"(print={print_option or 'any'})[/yellow]"
            )
            return EXIT_NOT_FOUND
        if output_format == "table":
            _print_tiers_table(variant)
        else:
            _dump_json(variant.to_dict())
        return EXIT_OK

    return await _guarded(db_path, command)


def _print_moq_table(summary: MoqSummary) -> None:
    table = Table(
        title=f"Minimum order quantities: {summary.product_name}",
        title_style="bold cyan",
    )
    table.add_column("Print option")
    table.add_column("Delivery", style="magenta")
    table.add_column("MOQ", justify="right")
    table.add_column("Unit price", justify="right", style="green")
    for v in summary.variants:
        style = "bold" if v == summary.lowest else ""
        table.add_row(
            v.print_option,
            v.delivery_class.value,
            f"{v.quantity:,}",
            _money(v.unit_price),
            style=style,
        )
    Console().print(table)


async def cli_moq(
    product: str, output_format: str, db_path: str | None = None,
) -> int:
    """Show the minimum order quantity of every variant of a product."""

    async def command(engine: PricingOrchestrator) -> int:
        summary = await engine.moq_summary(product)
        if summary is None:
            _err.print(f"[yellow]No pricing found for {product}[/yellow]")
            return EXIT_NOT_FOUND
        if output_format == "table":
            _print_moq_table(summary)
        else:
            _dump_json(summary.to_dict())
        return EXIT_OK

    return await _guarded(db_path, command)


# ── Maintenance ──────────────────────────────────────────


def run_import(csv_path: str, db_path: str | None = None) -> int:
    """Replace the catalog with the contents of a pricing CSV."""
    path = Path(csv_path)
    if not path.is_file():
        _err.print(f"[red]File not found: {path}[/red]")
        return EXIT_CLIENT_ERROR

    _err.print(f"[bold]Importing catalog from {path}...[/bold]")
    store: SQLiteCatalogStore | None = None
    try:
        store = SQLiteCatalogStore(Path(db_path) if db_path else None)
        loaded = import_catalog(store, path)
    except InvalidInput as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_CLIENT_ERROR
    except StoreUnavailable as exc:
        logger.error("Import failed: %s", exc, exc_info=True)
        _err.print(f"[red]Import failed: {exc}[/red]")
        return EXIT_INFRA_ERROR
    finally:
        if store is not None:
            store.close()

    skipped = loaded.dropped + loaded.duplicates
    detail = f" ({skipped} rows skipped)" if skipped else ""
    _err.print(
        f"[green]✓ Imported {len(loaded.products):,} products"
        f" and {len(loaded.tiers):,} price tiers{detail}[/green]"
    )
    return EXIT_OK


async def run_health_check(db_path: str | None = None) -> int:
    """Probe the catalog store and the query parser."""
    _err.print("[bold]Running health check...[/bold]")
    store: SQLiteCatalogStore | None = None
    try:
        store = SQLiteCatalogStore(Path(db_path) if db_path else None)
        results = await HealthChecker(
            store, QueryParserClient(),
        ).check_all()
    except StoreUnavailable as exc:
        _err.print(f"[red]Catalog unavailable: {exc}[/red]")
        return EXIT_INFRA_ERROR
    finally:
        if store is not None:
            store.close()

    table = Table(
        title="Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Component", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(r.component, status, latency, r.message)

    Console().print(table)
    return EXIT_INFRA_ERROR if any_down else EXIT_OK
