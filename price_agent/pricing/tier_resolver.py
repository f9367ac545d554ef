# price_agent/pricing/tier_resolver.py

"""Select the price tier that applies to a requested quantity."""

import logging

from price_agent.models.price_tier import DeliveryClass, PriceTier, round2
from price_agent.models.quote import MoqPoint, ResolvedQuote
from price_agent.storage.catalog_store import CatalogStore, TierQuery

logger = logging.getLogger("price_agent.pricing")


def moq_tier(tiers: list[PriceTier]) -> PriceTier | None:
    """The flagged MOQ tier, else the smallest quantity."""
    if not tiers:
        return None
    for tier in tiers:
        if tier.is_moq:
            return tier
    return min(tiers, key=lambda t: t.quantity)


def applicable_tier(
    tiers: list[PriceTier], quantity: int,
) -> PriceTier | None:
    """The largest tier quantity not above ``quantity``."""
    eligible = [t for t in tiers if t.quantity <= quantity]
    if not eligible:
        return None
    return max(eligible, key=lambda t: t.quantity)


class QuantityTierResolver:
    """Price one variant (product, print option, delivery class)."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def resolve(
        self,
        product_name: str,
        print_option: str,
        delivery_class: DeliveryClass,
        quantity: int | None = None,
    ) -> ResolvedQuote | None:
        """Return the quote for ``quantity``, or ``None`` if unpriced.

        Below the lowest tier the MOQ tier is quoted with ``below_moq``
        set and no total.  Without a quantity only the tier list and
        MOQ are filled in.
        """
        tiers = sorted(
            self._store.get_price_tiers(
                TierQuery(
                    product_name=product_name,
                    print_option=print_option,
                    delivery_class=delivery_class,
                )
            ),
            key=lambda t: t.quantity,
        )
        if not tiers:
            logger.debug(
                "No tiers for %s / %s / %s",
                product_name, print_option, delivery_class.value,
            )
            return None

        first = tiers[0]
        moq = moq_tier(tiers) or first
        quote = ResolvedQuote(
            product_name=product_name,
            print_option=print_option,
            delivery_class=delivery_class,
            requested_quantity=quantity,
            unit_price=None,
            total_price=None,
            currency=first.currency,
            moq=MoqPoint(quantity=moq.quantity, unit_price=moq.unit_price),
            all_tiers=tiers,
            days_min=(
                first.delivery_days_min
                if first.delivery_days_min is not None
                else delivery_class.days_min
            ),
            days_max=(
                first.delivery_days_max
                if first.delivery_days_max is not None
                else delivery_class.days_max
            ),
        )
        if quantity is None:
            return quote

        tier = applicable_tier(tiers, quantity)
        if tier is None:
            logger.debug(
                "Quantity %d below MOQ %d for %s / %s",
                quantity, moq.quantity, product_name, print_option,
            )
            quote.tier_quantity = moq.quantity
            quote.unit_price = moq.unit_price
            quote.below_moq = True
            quote.note = f"Minimum order quantity is {moq.quantity}"
            return quote

        quote.tier_quantity = tier.quantity
        quote.unit_price = tier.unit_price
        quote.total_price = round2(tier.unit_price * quantity)
        logger.debug(
            "Quantity %d priced at tier %d (%s each) for %s / %s",
            quantity, tier.quantity, tier.unit_price,
            product_name, print_option,
        )
        return quote
