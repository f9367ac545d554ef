# price_agent/pricing/delivery_cascade.py

"""Fall back to slower delivery classes when the preferred one is unpriced."""

import logging
import threading

from price_agent.matching.print_options import (
    PrintOptionResolver,
    honours_color_notation,
)
from price_agent.models.price_tier import DeliveryClass
from price_agent.models.quote import ResolvedQuote
from price_agent.pricing.fallback import first_resolved
from price_agent.pricing.tier_resolver import QuantityTierResolver
from price_agent.storage.catalog_store import CatalogStore

logger = logging.getLogger("price_agent.pricing")


class DeliveryFallbackCascade:
    """Try the preferred delivery class, then the rest in priority order.

    The returned quote carries the class that actually priced it.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._print_options = PrintOptionResolver(store)
        self._tiers = QuantityTierResolver(store)

    def resolve_for_class(
        self,
        product_name: str,
        print_text: str | None,
        delivery_class: DeliveryClass,
        quantity: int | None = None,
    ) -> ResolvedQuote | None:
        """Price one delivery class, or ``None`` when it has no match."""
        option = self._print_options.resolve(
            product_name, print_text, delivery_class,
        )
        if option is None:
            return None
        if not honours_color_notation(option, print_text):
            logger.debug(
                "Rejected %r for %s (%s): lacks requested notation in %r",
                option, product_name, delivery_class.value, print_text,
            )
            return None
        return self._tiers.resolve(
            product_name, option, delivery_class, quantity,
        )

    def resolve(
        self,
        product_name: str,
        print_text: str | None,
        delivery_class: DeliveryClass = DeliveryClass.LOCAL,
        quantity: int | None = None,
        stop: threading.Event | None = None,
    ) -> ResolvedQuote | None:
        """First priced class in cascade order.

        ``stop`` is checked before each class; once set, the remaining
        classes are skipped and ``None`` is returned.
        """

        def step(dc: DeliveryClass) -> ResolvedQuote | None:
            if stop is not None and stop.is_set():
                return None
            return self.resolve_for_class(
                product_name, print_text, dc, quantity,
            )

        quote = first_resolved(
            *(lambda dc=dc: step(dc) for dc in delivery_class.cascade())
        )
        if stop is not None and stop.is_set():
            logger.debug("Pricing of %s abandoned", product_name)
            return None
        if quote is None:
            logger.info(
                "No price for %s (print=%r) in any delivery class",
                product_name, print_text,
            )
        elif quote.delivery_class is not delivery_class:
            logger.info(
                "Delivery fallback for %s: %s requested, priced as %s",
                product_name,
                delivery_class.value,
                quote.delivery_class.value,
            )
        return quote
