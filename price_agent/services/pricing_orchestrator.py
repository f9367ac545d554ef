# price_agent/services/pricing_orchestrator.py

"""Entry points of the pricing engine: free-text and structured quotes."""

import asyncio
import logging
import threading

from price_agent.config.settings import Settings
from price_agent.errors import (
    CollaboratorUnavailable,
    InvalidInput,
    ParseFailure,
)
from price_agent.matching.print_options import (
    PrintOptionResolver,
    honours_color_notation,
)
from price_agent.matching.product_matcher import ProductMatcher
from price_agent.models.catalog import (
    MoqSummary,
    MoqVariant,
    ProductListing,
    ProductSummary,
    VariantTiers,
)
from price_agent.models.price_tier import (
    DeliveryClass,
    delivery_class_from_lead_time,
)
from price_agent.models.product import Product
from price_agent.models.quote import (
    ParsedQuery,
    PricedProduct,
    QuoteResponse,
    QuoteStatus,
    ResolvedQuote,
    StructuredQuery,
)
from price_agent.pricing.alternatives import AlternativesFinder
from price_agent.pricing.delivery_cascade import DeliveryFallbackCascade
from price_agent.services.query_parser_client import QueryParserClient
from price_agent.storage.catalog_store import (
    CatalogStore,
    TierOrder,
    TierQuery,
)

logger = logging.getLogger("price_agent.orchestrator")


def _parse_delivery(token: str | None) -> DeliveryClass:
    """Structured delivery token to a class; blank means local."""
    if token is None or not token.strip():
        return DeliveryClass.LOCAL
    try:
        return DeliveryClass.parse(token)
    except ValueError as exc:
        valid = ", ".join(dc.value for dc in DeliveryClass)
        raise InvalidInput(
            f"Unknown delivery class {token!r} (expected one of: {valid})"
        ) from exc


class PricingOrchestrator:
    """Coordinates matching, print resolution, pricing and alternatives.

    Holds no per-request state.  Blocking store reads run in worker
    threads; candidate products are priced concurrently and reported
    in match order.
    """

    def __init__(
        self,
        store: CatalogStore,
        parser: QueryParserClient | None = None,
    ) -> None:
        self._store = store
        self._parser = parser
        self.matcher = ProductMatcher(store)
        self.print_options = PrintOptionResolver(store)
        self.cascade = DeliveryFallbackCascade(store)
        self.alternatives = AlternativesFinder(store)

    # ── Private helpers ──────────────────────────────────

    async def _price_candidates(
        self,
        products: list[Product],
        print_text: str | None,
        delivery_class: DeliveryClass,
        quantity: int | None,
    ) -> list[PricedProduct]:
        """Price every candidate concurrently, dropping unpriced ones.

        If one candidate raises, or the caller is cancelled, the
        remaining candidates are cancelled and the error propagates.
        Worker threads already running see ``stop`` and skip their
        remaining delivery classes.
        """
        stop = threading.Event()
        tasks = [
            asyncio.create_task(
                asyncio.to_thread(
                    self.cascade.resolve,
                    product.name,
                    print_text,
                    delivery_class,
                    quantity,
                    stop,
                )
            )
            for product in products
        ]
        try:
            quotes: list[ResolvedQuote | None] = list(
                await asyncio.gather(*tasks)
            )
        except (Exception, asyncio.CancelledError):
            stop.set()
            for task in tasks:
                task.cancel()
            raise

        priced: list[PricedProduct] = []
        for product, quote in zip(products, quotes):
            if quote is None:
                logger.debug(
                    "Candidate %s dropped: no price for print=%r",
                    product.name, print_text,
                )
                continue
            priced.append(
                PricedProduct(
                    product=product,
                    quote=quote,
                    requested_delivery_class=delivery_class,
                )
            )
        return priced

    # ── Quotes ───────────────────────────────────────────

    async def resolve_free_text(self, parsed: ParsedQuery) -> QuoteResponse:
        """Quote an already-parsed free-text request.

        Raises:
            ParseFailure: the parsed query has no product.
            StoreUnavailable: the catalog could not be read.
        """
        if parsed.product is None or not parsed.product.strip():
            raise ParseFailure("Could not identify a product in the query")

        delivery_class = delivery_class_from_lead_time(parsed.lead_time)
        query_parsed = parsed.to_dict()

        matches = await asyncio.to_thread(
            self.matcher.match, parsed.product, Settings.MATCH_LIMIT,
        )
        if not matches:
            suggestions = await asyncio.to_thread(
                self.matcher.suggest, parsed.product,
            )
            logger.info(
                "No product match for %r (%d suggestions)",
                parsed.product, len(suggestions),
            )
            return QuoteResponse(
                status=QuoteStatus.NO_PRODUCT_MATCH,
                suggestions=suggestions,
                query_parsed=query_parsed,
                requested_delivery_class=delivery_class,
                message=f'No products found matching "{parsed.product}"',
            )

        matched = [m.product for m in matches]
        logger.info(
            "Matched %r to %d products (%s)",
            parsed.product, len(matched), matches[0].confidence.value,
        )
        results = await self._price_candidates(
            matched, parsed.print_option, delivery_class, parsed.quantity,
        )

        seed = results[0].product.name if results else matched[0].name
        alternatives = await asyncio.to_thread(
            self.alternatives.find,
            seed,
            parsed.quantity or Settings.DEFAULT_ALTERNATIVE_QUANTITY,
        )

        if not results:
            logger.info(
                "No price for %r with print=%r", parsed.product,
                parsed.print_option,
            )
            return QuoteResponse(
                status=QuoteStatus.NO_PRICE_FOR_VARIANT,
                alternatives=alternatives,
                matched_products=[p.name for p in matched],
                query_parsed=query_parsed,
                requested_delivery_class=delivery_class,
                message=(
                    f'No pricing for "{parsed.product}" with print '
                    f'option "{parsed.print_option or "any"}"'
                ),
            )

        return QuoteResponse(
            status=QuoteStatus.OK,
            results=results,
            alternatives=alternatives,
            matched_products=[p.name for p in matched],
            query_parsed=query_parsed,
            requested_delivery_class=delivery_class,
        )

    async def quote_text(self, text: str) -> QuoteResponse:
        """Parse ``text`` with the text-understanding service, then quote it."""
        if self._parser is None:
            raise CollaboratorUnavailable("No query parser configured")
        parsed = await asyncio.to_thread(self._parser.parse, text)
        return await self.resolve_free_text(parsed)

    async def resolve_structured(self, query: StructuredQuery) -> QuoteResponse:
        """Quote an exact product name, skipping matching and alternatives.

        Raises:
            InvalidInput: missing product name, quantity below 1, or an
                unknown delivery class.
            StoreUnavailable: the catalog could not be read.
        """
        name = (query.product_name or "").strip()
        if not name:
            raise InvalidInput("product_name is required")
        if query.quantity is not None and query.quantity < 1:
            raise InvalidInput(
                f"quantity must be a positive integer, got {query.quantity}"
            )
        delivery_class = _parse_delivery(query.delivery_class)
        query_parsed = query.to_dict()

        product = await asyncio.to_thread(self._store.get_product, name)
        if product is None:
            suggestions = await asyncio.to_thread(self.matcher.suggest, name)
            return QuoteResponse(
                status=QuoteStatus.NO_PRODUCT_MATCH,
                suggestions=suggestions,
                query_parsed=query_parsed,
                requested_delivery_class=delivery_class,
                message=f'Product "{name}" not found',
            )

        quote = await asyncio.to_thread(
            self.cascade.resolve,
            name,
            query.print_option,
            delivery_class,
            query.quantity,
        )
        if quote is None:
            return QuoteResponse(
                status=QuoteStatus.NO_PRICE_FOR_VARIANT,
                matched_products=[name],
                query_parsed=query_parsed,
                requested_delivery_class=delivery_class,
                message=(
                    f'No pricing for "{name}" with print option '
                    f'"{query.print_option or "any"}"'
                ),
            )

        return QuoteResponse(
            status=QuoteStatus.OK,
            results=[
                PricedProduct(
                    product=product,
                    quote=quote,
                    requested_delivery_class=delivery_class,
                )
            ],
            matched_products=[name],
            query_parsed=query_parsed,
            requested_delivery_class=delivery_class,
        )

    # ── Catalog browsing ─────────────────────────────────

    def _summarise(self, product: Product) -> ProductSummary:
        cheapest = self._store.get_price_tiers(
            TierQuery(
                product_name=product.name,
                is_moq=True,
                order_by=TierOrder.UNIT_PRICE,
                limit=1,
            )
        )
        return ProductSummary(
            product=product,
            print_options=self._store.list_print_options(product.name),
            moq=cheapest[0].quantity if cheapest else None,
            starting_price=cheapest[0].unit_price if cheapest else None,
        )

    def _list_products(
        self, category: str | None, limit: int, offset: int,
    ) -> ProductListing:
        products = self._store.list_products(
            category=category,
            limit=limit,
            offset=offset,
            order_by_name=True,
        )
        return ProductListing(
            products=[self._summarise(p) for p in products],
            total=self._store.count_products(category),
            limit=limit,
            offset=offset,
        )

    async def list_products(
        self,
        category: str | None = None,
        limit: int = Settings.PRODUCT_PAGE_SIZE,
        offset: int = 0,
    ) -> ProductListing:
        """One page of the catalog, ordered by name."""
        if limit < 1 or offset < 0:
            raise InvalidInput(
                f"Invalid page (limit={limit}, offset={offset})"
            )
        return await asyncio.to_thread(
            self._list_products, category, limit, offset,
        )

    def _variant_tiers(
        self,
        product_name: str,
        print_option: str | None,
        delivery_class: DeliveryClass,
    ) -> VariantTiers | None:
        option = self.print_options.resolve(
            product_name, print_option, delivery_class,
        )
        if option is None or not honours_color_notation(option, print_option):
            return None
        tiers = sorted(
            self._store.get_price_tiers(
                TierQuery(
                    product_name=product_name,
                    print_option=option,
                    delivery_class=delivery_class,
                )
            ),
            key=lambda t: t.quantity,
        )
        if not tiers:
            return None
        first = tiers[0]
        return VariantTiers(
            product_name=product_name,
            print_option=option,
            delivery_class=delivery_class,
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
            tiers=tiers,
        )

    async def variant_tiers(
        self,
        product_name: str,
        print_option: str | None = None,
        delivery_class: str | None = None,
    ) -> VariantTiers | None:
        """Full price curve of one variant; ``None`` when unpriced."""
        if not product_name or not product_name.strip():
            raise InvalidInput("product_name is required")
        return await asyncio.to_thread(
            self._variant_tiers,
            product_name.strip(),
            print_option,
            _parse_delivery(delivery_class),
        )

    def _moq_summary(self, product_name: str) -> MoqSummary | None:
        flagged = self._store.get_price_tiers(
            TierQuery(
                product_name=product_name,
                is_moq=True,
                order_by=TierOrder.UNIT_PRICE,
            )
        )
        if flagged:
            points = flagged
        else:
            # No flags recorded: the smallest quantity of each variant
            points = []
            seen: set[tuple[str, DeliveryClass]] = set()
            for tier in self._store.get_price_tiers(
                TierQuery(product_name=product_name)
            ):
                key = (tier.print_option, tier.delivery_class)
                if key not in seen:
                    seen.add(key)
                    points.append(tier)
        if not points:
            return None

        variants = [
            MoqVariant(
                print_option=t.print_option,
                delivery_class=t.delivery_class,
                quantity=t.quantity,
                unit_price=t.unit_price,
            )
            for t in points
        ]
        return MoqSummary(
            product_name=product_name,
            variants=variants,
            lowest=min(variants, key=lambda v: v.unit_price),
        )

    async def moq_summary(self, product_name: str) -> MoqSummary | None:
        """Minimum order quantities of every variant of a product."""
        if not product_name or not product_name.strip():
            raise InvalidInput("product_name is required")
        return await asyncio.to_thread(
            self._moq_summary, product_name.strip(),
        )
