# price_agent/storage/sqlite_store.py

"""SQLite-backed catalog store."""

import logging
import sqlite3
import threading
from collections.abc import Iterable, Sequence
from decimal import Decimal
from pathlib import Path
from typing import Any

from price_agent.config.settings import Settings
from price_agent.errors import StoreUnavailable
from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.product import Product
from price_agent.storage.catalog_store import (
    CatalogStore,
    TierOrder,
    TierQuery,
    name_overlaps,
)

logger = logging.getLogger("price_agent.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT    NOT NULL UNIQUE,
    category   TEXT    NOT NULL DEFAULT '',
    dimensions TEXT    NOT NULL DEFAULT '',
    material   TEXT    NOT NULL DEFAULT '',
    color      TEXT    NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS price_tiers (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    product_name      TEXT    NOT NULL
                      REFERENCES products(name) ON DELETE CASCADE,
    print_option      TEXT    NOT NULL,
    delivery_class    TEXT    NOT NULL,
    delivery_days_min INTEGER,
    delivery_days_max INTEGER,
    quantity          INTEGER NOT NULL,
    unit_price        TEXT    NOT NULL,
    currency          TEXT    NOT NULL DEFAULT 'SGD',
    is_moq            INTEGER NOT NULL DEFAULT 0,
    UNIQUE (product_name, print_option, delivery_class, quantity)
);

CREATE INDEX IF NOT EXISTS idx_products_category
    ON products(category);

CREATE INDEX IF NOT EXISTS idx_tiers_variant
    ON price_tiers(product_name, delivery_class, print_option, quantity);
"""

_PRODUCT_COLUMNS = "name, category, dimensions, material, color"

_TIER_COLUMNS = (
    "product_name, print_option, delivery_class, "
    "delivery_days_min, delivery_days_max, quantity, "
    "unit_price, currency, is_moq"
)


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


def _overlaps(name: str | None, term: str | None) -> bool:
    if name is None or term is None:
        return False
    return name_overlaps(name, term)


def _row_to_product(row: Sequence[Any]) -> Product:
    return Product(
        name=row[0],
        category=row[1],
        dimensions=row[2],
        material=row[3],
        color=row[4],
    )


def _row_to_tier(row: Sequence[Any]) -> PriceTier:
    return PriceTier(
        product_name=row[0],
        print_option=row[1],
        delivery_class=DeliveryClass(row[2]),
        delivery_days_min=row[3],
        delivery_days_max=row[4],
        quantity=row[5],
        unit_price=Decimal(row[6]),
        currency=row[7],
        is_moq=bool(row[8]),
    )


class SQLiteCatalogStore(CatalogStore):
    """SQLite-backed catalog; ``id`` order is catalog order.

    A single connection is shared by the worker threads the engine
    fans out to, so every statement runs under ``_lock``.  Any
    ``sqlite3.Error`` surfaces as :class:`StoreUnavailable`.
    """

    def __init__(
        self, db_path: Path | str | None = None,
    ) -> None:
        path = db_path or Settings.CATALOG_DB_PATH
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.create_function(
                "casefold", 1, _casefold, deterministic=True,
            )
            self._conn.create_function(
                "overlaps", 2, _overlaps, deterministic=True,
            )
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            logger.error(
                "Cannot open catalog at %s: %s", path, exc,
                exc_info=True,
            )
            raise StoreUnavailable(
                f"Cannot open catalog at {path}: {exc}"
            ) from exc
        logger.debug("SQLiteCatalogStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _fetch(
        self, sql: str, params: Sequence[Any] = (),
    ) -> list[Any]:
        """Run a read under the connection lock."""
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            logger.error(
                "Catalog query failed: %s", exc, exc_info=True,
            )
            raise StoreUnavailable(
                f"Catalog query failed: {exc}"
            ) from exc

    @staticmethod
    def _limit_clause(
        limit: int | None, offset: int = 0,
    ) -> tuple[str, list[Any]]:
        if limit is None and not offset:
            return "", []
        return " LIMIT ? OFFSET ?", [
            -1 if limit is None else limit,
            offset,
        ]

    # ── Products ─────────────────────────────────────────

    def get_product(self, name: str) -> Product | None:
        rows = self._fetch(
            f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE name = ?",
            (name,),
        )
        return _row_to_product(rows[0]) if rows else None

    def find_products_by_name(
        self,
        name: str,
        *,
        case_sensitive: bool = True,
        category: str | None = None,
        limit: int | None = None,
    ) -> list[Product]:
        if case_sensitive:
            where = "name = ?"
            params: list[Any] = [name]
        else:
            where = "casefold(name) = ?"
            params = [name.casefold()]
        if category is not None:
            where += " AND category = ?"
            params.append(category)
        tail, tail_params = self._limit_clause(limit)
        rows = self._fetch(
            f"SELECT {_PRODUCT_COLUMNS} FROM products "
            f"WHERE {where} ORDER BY id{tail}",
            params + tail_params,
        )
        return [_row_to_product(r) for r in rows]

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
        joiner = " AND " if match_all else " OR "
        where = "(" + joiner.join(
            "overlaps(name, ?)" for _ in terms
        ) + ")"
        params: list[Any] = [t.casefold() for t in terms]
        if category is not None:
            where += " AND category = ?"
            params.append(category)
        tail, tail_params = self._limit_clause(limit)
        rows = self._fetch(
            f"SELECT {_PRODUCT_COLUMNS} FROM products "
            f"WHERE {where} ORDER BY id{tail}",
            params + tail_params,
        )
        return [_row_to_product(r) for r in rows]

    def list_products(
        self,
        *,
        category: str | None = None,
        exclude_name: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        order_by_name: bool = False,
    ) -> list[Product]:
        clauses: list[str] = []
        params: list[Any] = []
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if exclude_name is not None:
            clauses.append("name != ?")
            params.append(exclude_name)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "name" if order_by_name else "id"
        tail, tail_params = self._limit_clause(limit, offset)
        rows = self._fetch(
            f"SELECT {_PRODUCT_COLUMNS} FROM products"
            f"{where} ORDER BY {order}{tail}",
            params + tail_params,
        )
        return [_row_to_product(r) for r in rows]

    def count_products(self, category: str | None = None) -> int:
        if category is None:
            rows = self._fetch("SELECT COUNT(id) FROM products")
        else:
            rows = self._fetch(
                "SELECT COUNT(id) FROM products WHERE category = ?",
                (category,),
            )
        return int(rows[0][0])

    # ── Price tiers ──────────────────────────────────────

    def list_print_options(
        self,
        product_name: str,
        delivery_class: DeliveryClass | None = None,
    ) -> list[str]:
        where = "product_name = ?"
        params: list[Any] = [product_name]
        if delivery_class is not None:
            where += " AND delivery_class = ?"
            params.append(delivery_class.value)
        rows = self._fetch(
            "SELECT print_option, MIN(id) AS first_seen "
            f"FROM price_tiers WHERE {where} "
            "GROUP BY print_option ORDER BY first_seen",
            params,
        )
        return [r[0] for r in rows]

    def get_price_tiers(self, query: TierQuery) -> list[PriceTier]:
        clauses = ["product_name = ?"]
        params: list[Any] = [query.product_name]
        if query.print_option is not None:
            clauses.append("print_option = ?")
            params.append(query.print_option)
        if query.delivery_class is not None:
            clauses.append("delivery_class = ?")
            params.append(query.delivery_class.value)
        if query.max_quantity is not None:
            clauses.append("quantity <= ?")
            params.append(query.max_quantity)
        if query.is_moq is not None:
            clauses.append("is_moq = ?")
            params.append(1 if query.is_moq else 0)

        direction = "DESC" if query.descending else "ASC"
        if query.order_by is TierOrder.UNIT_PRICE:
            order = (
                f"CAST(unit_price AS REAL) {direction}, "
                f"quantity {direction}, id"
            )
        else:
            order = f"quantity {direction}, id"
        tail, tail_params = self._limit_clause(query.limit)

        rows = self._fetch(
            f"SELECT {_TIER_COLUMNS} FROM price_tiers "
            f"WHERE {' AND '.join(clauses)} ORDER BY {order}{tail}",
            params + tail_params,
        )
        return [_row_to_tier(r) for r in rows]

    # ── Import ───────────────────────────────────────────

    def replace_catalog(
        self,
        products: Iterable[Product],
        tiers: Iterable[PriceTier],
    ) -> tuple[int, int]:
        """Replace every product and tier in one transaction."""
        product_rows = [
            (p.name, p.category, p.dimensions, p.material, p.color)
            for p in products
        ]
        tier_rows = [
            (
                t.product_name,
                t.print_option,
                t.delivery_class.value,
                t.delivery_days_min,
                t.delivery_days_max,
                t.quantity,
                str(t.unit_price),
                t.currency,
                1 if t.is_moq else 0,
            )
            for t in tiers
        ]
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM price_tiers")
                self._conn.execute("DELETE FROM products")
                self._conn.executemany(
                    f"INSERT INTO products ({_PRODUCT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?)",
                    product_rows,
                )
                self._conn.executemany(
                    f"INSERT INTO price_tiers ({_TIER_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    tier_rows,
                )
        except sqlite3.Error as exc:
            logger.error(
                "Catalog import failed: %s", exc, exc_info=True,
            )
            raise StoreUnavailable(
                f"Catalog import failed: {exc}"
            ) from exc

        logger.info(
            "Catalog replaced: %d products, %d tiers",
            len(product_rows),
            len(tier_rows),
        )
        return len(product_rows), len(tier_rows)
