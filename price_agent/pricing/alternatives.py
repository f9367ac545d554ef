# price_agent/pricing/alternatives.py

"""Suggest sibling products from the same category."""

import logging

from price_agent.config.settings import Settings
from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.quote import Alternative
from price_agent.models.product import Product
from price_agent.storage.catalog_store import (
    CatalogStore,
    TierOrder,
    TierQuery,
)

logger = logging.getLogger("price_agent.pricing")


class AlternativesFinder:
    """Price up to ``limit`` same-category products at local delivery."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def _cheapest(
        self,
        name: str,
        max_quantity: int | None = None,
        is_moq: bool | None = None,
    ) -> PriceTier | None:
        tiers = self._store.get_price_tiers(
            TierQuery(
                product_name=name,
                delivery_class=DeliveryClass.LOCAL,
                max_quantity=max_quantity,
                is_moq=is_moq,
                order_by=TierOrder.UNIT_PRICE,
                limit=1,
            )
        )
        return tiers[0] if tiers else None

    def _price(self, product: Product, quantity: int) -> Alternative | None:
        tier = self._cheapest(product.name, max_quantity=quantity)
        below_moq = False
        if tier is None:
            # Nothing at or below the quantity: quote the MOQ point
            tier = self._cheapest(product.name, is_moq=True)
            if tier is None:
                smallest = self._store.get_price_tiers(
                    TierQuery(
                        product_name=product.name,
                        delivery_class=DeliveryClass.LOCAL,
                        limit=1,
                    )
                )
                tier = smallest[0] if smallest else None
            below_moq = tier is not None
        if tier is None:
            logger.debug(
                "Alternative %s has no local tiers, skipped", product.name,
            )
            return None
        return Alternative(
            product_name=product.name,
            dimensions=product.dimensions,
            print_option=tier.print_option,
            tier_quantity=tier.quantity,
            unit_price=tier.unit_price,
            currency=tier.currency,
            below_moq=below_moq,
        )

    def find(
        self,
        product_name: str,
        quantity: int,
        limit: int = Settings.ALTERNATIVES_LIMIT,
    ) -> list[Alternative]:
        product = self._store.get_product(product_name)
        if product is None or not product.category:
            return []
        siblings = self._store.list_products(
            category=product.category,
            exclude_name=product_name,
            limit=limit,
        )
        found = [
            alt
            for alt in (self._price(s, quantity) for s in siblings)
            if alt is not None
        ]
        logger.debug(
            "Alternatives for %s at qty %d: %d of %d siblings priced",
            product_name, quantity, len(found), len(siblings),
        )
        return found
