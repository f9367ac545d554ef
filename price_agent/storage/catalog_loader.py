# price_agent/storage/catalog_loader.py

"""Flat CSV catalog import: validate rows, derive categories, flag MOQs."""

import csv
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path

from price_agent.config.settings import Settings
from price_agent.errors import InvalidInput
from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.product import Product
from price_agent.storage.catalog_store import CatalogStore

logger = logging.getLogger("price_agent.import")

REQUIRED_COLUMNS: tuple[str, ...] = (
    "product_name",
    "print_option",
    "delivery_class",
    "quantity",
    "unit_price",
)

# First matching rule wins
_CATEGORY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("tote bag",), "Tote Bags"),
    (("tumbler", "mug", "bottle"), "Drinkware"),
    (("notebook", "notepad", "pen"), "Stationery"),
    (("lanyard", "umbrella"), "Accessories"),
    (("cap", "hat", "t-shirt", "polo"), "Apparel"),
)

_DEFAULT_CATEGORY = "Corporate Gifts"


@dataclass
class CatalogImport:
    """Products and tiers parsed from a CSV, with rejection counts."""

    products: list[Product] = field(
        default_factory=lambda: list[Product]()
    )
    tiers: list[PriceTier] = field(
        default_factory=lambda: list[PriceTier]()
    )
    dropped: int = 0
    duplicates: int = 0


def derive_category(product_name: str) -> str:
    """Guess a catalog category from words in the product name."""
    name = product_name.lower()
    for phrases, category in _CATEGORY_RULES:
        if any(phrase in name for phrase in phrases):
            return category
    return _DEFAULT_CATEGORY


def _cell(row: dict[str, str | None], key: str) -> str:
    return (row.get(key) or "").strip()


def _parse_row(
    row: dict[str, str | None], line: int,
) -> tuple[Product, PriceTier] | None:
    """Turn one CSV row into a product and a tier, or ``None`` if invalid."""
    name = _cell(row, "product_name")
    if not name:
        logger.debug("Dropped row %d: empty product name", line)
        return None

    print_option = _cell(row, "print_option")
    if not print_option:
        logger.debug(
            "Dropped row %d: empty print option (product=%s)",
            line, name,
        )
        return None

    try:
        delivery_class = DeliveryClass.parse(
            _cell(row, "delivery_class") or DeliveryClass.LOCAL.value
        )
    except ValueError:
        logger.debug(
            "Dropped row %d: unknown delivery class %r (product=%s)",
            line, _cell(row, "delivery_class"), name,
        )
        return None

    try:
        quantity = int(_cell(row, "quantity"))
        unit_price = Decimal(_cell(row, "unit_price"))
    except (ValueError, InvalidOperation):
        logger.debug(
            "Dropped row %d: unreadable quantity/price (product=%s)",
            line, name,
        )
        return None

    if quantity <= 0 or not unit_price.is_finite() or unit_price <= 0:
        logger.debug(
            "Dropped row %d: non-positive quantity/price "
            "(product=%s, qty=%d, price=%s)",
            line, name, quantity, unit_price,
        )
        return None

    product = Product(
        name=name,
        category=_cell(row, "category") or derive_category(name),
        dimensions=_cell(row, "dimensions"),
        material=_cell(row, "material"),
        color=_cell(row, "color"),
    )
    tier = PriceTier(
        product_name=name,
        print_option=print_option,
        delivery_class=delivery_class,
        quantity=quantity,
        unit_price=unit_price,
        currency=_cell(row, "currency") or Settings.DEFAULT_CURRENCY,
        delivery_days_min=delivery_class.days_min,
        delivery_days_max=delivery_class.days_max,
    )
    return product, tier


def _flag_moq(tiers: list[PriceTier]) -> list[PriceTier]:
    """Mark the smallest quantity of every variant as its MOQ tier."""
    smallest: dict[tuple[str, str, DeliveryClass], int] = {}
    for tier in tiers:
        current = smallest.get(tier.variant_key)
        if current is None or tier.quantity < current:
            smallest[tier.variant_key] = tier.quantity
    return [
        replace(t, is_moq=t.quantity == smallest[t.variant_key])
        for t in tiers
    ]


def load_catalog_csv(path: Path) -> CatalogImport:
    """Read a flat pricing CSV into products and MOQ-flagged tiers.

    The first row seen for a product supplies its attributes.  A
    repeated (variant, quantity) keeps the first price.

    Raises:
        InvalidInput: the header lacks a required column.
    """
    result = CatalogImport()
    products: dict[str, Product] = {}
    seen: set[tuple[str, str, DeliveryClass, int]] = set()
    tiers: list[PriceTier] = []

    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        missing = [
            c for c in REQUIRED_COLUMNS
            if c not in (reader.fieldnames or [])
        ]
        if missing:
            raise InvalidInput(
                f"{path} is missing columns: {', '.join(missing)}"
            )

        # Line 1 is the header
        for line, row in enumerate(reader, start=2):
            parsed = _parse_row(row, line)
            if parsed is None:
                result.dropped += 1
                continue
            product, tier = parsed
            key = (*tier.variant_key, tier.quantity)
            if key in seen:
                logger.debug(
                    "Dropped row %d: duplicate quantity %d for %s",
                    line, tier.quantity, tier.variant_key,
                )
                result.duplicates += 1
                continue
            seen.add(key)
            products.setdefault(product.name, product)
            tiers.append(tier)

    result.products = list(products.values())
    result.tiers = _flag_moq(tiers)

    if result.dropped or result.duplicates:
        logger.info(
            "Import dropped %d invalid and %d duplicate rows",
            result.dropped,
            result.duplicates,
        )
    logger.info(
        "Parsed %s: %d products, %d tiers",
        path, len(result.products), len(result.tiers),
    )
    return result


def import_catalog(store: CatalogStore, path: Path) -> CatalogImport:
    """Load ``path`` and replace the store's catalog with it."""
    loaded = load_catalog_csv(path)
    store.replace_catalog(loaded.products, loaded.tiers)
    return loaded
