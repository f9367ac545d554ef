# price_agent/storage/catalog_store.py

"""Catalog store interface and the in-memory implementation.

Every engine component receives a :class:`CatalogStore` explicitly;
nothing reaches for a shared global client.  The SQLite store is the
production access layer, :class:`InMemoryCatalogStore` is its
drop-in substitute for fixtures and tests.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.product import Product

logger = logging.getLogger("price_agent.store")


class TierOrder(str, Enum):
    """Sort key for price tier reads."""

    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"


@dataclass(frozen=True)
class TierQuery:
    """Filter and ordering for a price tier read.

    ``None`` filters are not applied.  ``max_quantity`` is inclusive.
    """

    product_name: str
    print_option: str | None = None
    delivery_class: DeliveryClass | None = None
    max_quantity: int | None = None
    is_moq: bool | None = None
    order_by: TierOrder = TierOrder.QUANTITY
    descending: bool = False
    limit: int | None = None


def name_overlaps(name: str, term: str) -> bool:
    """True when the casefolded name contains the term or vice versa."""
    folded = name.casefold()
    return term in folded or folded in term


class CatalogStore(ABC):
    """Read queries the pricing engine needs from the catalog."""

    @abstractmethod
    def get_product(self, name: str) -> Product | None:
        """Return the product with exactly this name."""
        ...

    @abstractmethod
    def find_products_by_name(
        self,
        name: str,
        *,
        case_sensitive: bool = True,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[Product]:
        """Whole-name equality lookup, optionally ignoring case."""
        ...

    @abstractmethod
    def search_products(
        self,
        terms: Sequence[str],
        *,
        match_all: bool = True,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[Product]:
        """Products whose name overlaps the casefolded terms.

        With ``match_all`` every term must overlap, otherwise any.
        Results are in catalog order.
        """
        ...

    @abstractmethod
    def list_products(
        self,
        *,
        category: str | None = None,
        exclude_name: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by_name: bool = False,
    ) -> list[Product]:
        """Products in catalog order (or by name), optionally filtered."""
        ...

    @abstractmethod
    def count_products(self, category: str | None = None) -> int:
        """Number of products, optionally within one category."""
        ...

    @abstractmethod
    def list_print_options(
        self,
        product_name: str,
        delivery_class: DeliveryClass | None = None,
    ) -> list[str]:
        """Distinct print options recorded for a product, catalog order."""
        ...

    @abstractmethod
    def get_price_tiers(self, query: TierQuery) -> list[PriceTier]:
        """Price tiers matching ``query``."""
        ...

    @abstractmethod
    def replace_catalog(
        self,
        products: Iterable[Product],
        tiers: Iterable[PriceTier],
    ) -> tuple[int, int]:
        """Swap the whole catalog (import path only).

        Returns the (product, tier) counts written.
        """
        ...

    def close(self) -> None:
        """Release any underlying resources."""


class InMemoryCatalogStore(CatalogStore):
    """List-backed catalog; list order is catalog order."""

    def __init__(
        self,
        products: Iterable[Product] = (),
        tiers: Iterable[PriceTier] = (),
    ) -> None:
        self._products: list[Product] = []
        self._tiers: list[PriceTier] = []
        self.replace_catalog(products, tiers)

    # ── Products ─────────────────────────────────────────

    @staticmethod
    def _page(
        items: list[Product], limit: int | None, offset: int = 0,
    ) -> list[Product]:
        end = None if limit is None else offset + limit
        return items[offset:end]

    def get_product(self, name: str) -> Product | None:
        for product in self._products:
            if product.name == name:
                return product
        return None

    def find_products_by_name(
        self,
        name: str,
        *,
        case_sensitive: bool = True,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[Product]:
        wanted = name if case_sensitive else name.casefold()
        found = [
            p
            for p in self._products
            if (p.name if case_sensitive else p.name.casefold()) == wanted
            and (category is None or p.category == category)
        ]
        return self._page(found, limit)

    def search_products(
        self,
        terms: Sequence[str],
        *,
        match_all: bool = True,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[Product]:
        if not terms:
            return []
        folded = [t.casefold() for t in terms]
        combine = all if match_all else any
        found = [
            p
            for p in self._products
            if combine(name_overlaps(p.name, t) for t in folded)
            and (category is None or p.category == category)
        ]
        return self._page(found, limit)

    def list_products(
        self,
        *,
        category: str | None = None,
        exclude_name: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by_name: bool = False,
    ) -> list[Product]:
        found = [
            p
            for p in self._products
            if (category is None or p.category == category)
            and p.name != exclude_name
        ]
        if order_by_name:
            found.sort(key=lambda p: p.name)
        return self._page(found, limit, offset)

    def count_products(self, category: str | None = None) -> int:
        return len(self.list_products(category=category))

    # ── Price tiers ──────────────────────────────────────

    def list_print_options(
        self,
        product_name: str,
        delivery_class: DeliveryClass | None = None,
    ) -> list[str]:
        options: list[str] = []
        for tier in self._tiers:
            if tier.product_name != product_name:
                continue
            if delivery_class is not None and tier.delivery_class is not delivery_class:
                continue
            if tier.print_option not in options:
                options.append(tier.print_option)
        return options

    def get_price_tiers(self, query: TierQuery) -> list[PriceTier]:
        found = [
            t
            for t in self._tiers
            if t.product_name == query.product_name
            and (query.print_option is None or t.print_option == query.print_option)
            and (query.delivery_class is None or t.delivery_class is query.delivery_class)
            and (query.max_quantity is None or t.quantity <= query.max_quantity)
            and (query.is_moq is None or t.is_moq == query.is_moq)
        ]
        if query.order_by is TierOrder.UNIT_PRICE:
            found.sort(
                key=lambda t: (t.unit_price, t.quantity),
                reverse=query.descending,
            )
        else:
            found.sort(key=lambda t: t.quantity, reverse=query.descending)
        if query.limit is not None:
            found = found[: query.limit]
        return found

    # ── Import ───────────────────────────────────────────

    def replace_catalog(
        self,
        products: Iterable[Product],
        tiers: Iterable[PriceTier],
    ) -> tuple[int, int]:
        self._products = list(products)
        self._tiers = list(tiers)
        logger.debug(
            "In-memory catalog loaded: %d products, %d tiers",
            len(self._products),
            len(self._tiers),
        )
        return len(self._products), len(self._tiers)
