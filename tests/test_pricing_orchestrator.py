# tests/test_pricing_orchestrator.py

"""Tests for the pricing orchestrator's quote and browsing entry points."""

import asyncio
import json
import threading
import unittest
from decimal import Decimal
from unittest.mock import MagicMock, patch

from catalog_fixtures import AIR, LOCAL, PRODUCTS, SEA, TIERS, build_store

from price_agent.errors import (
    CollaboratorUnavailable,
    InvalidInput,
    ParseFailure,
    StoreUnavailable,
)
from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.product import Product
from price_agent.models.quote import ParsedQuery, QuoteStatus, StructuredQuery
from price_agent.services.pricing_orchestrator import PricingOrchestrator
from price_agent.storage.catalog_store import InMemoryCatalogStore, TierQuery


class _HeldFirstStore(InMemoryCatalogStore):
    """Holds reads for one product until another has been priced."""

    def __init__(self, products, tiers, held: str, releaser: str) -> None:
        super().__init__(products, tiers)
        self._held = held
        self._releaser = releaser
        self._released = threading.Event()
        self.priced: list[str] = []

    def list_print_options(
        self,
        product_name: str,
        delivery_class: DeliveryClass | None = None,
    ) -> list[str]:
        if product_name == self._held:
            self._released.wait(timeout=5)
        return super().list_print_options(product_name, delivery_class)

    def get_price_tiers(self, query: TierQuery) -> list[PriceTier]:
        tiers = super().get_price_tiers(query)
        self.priced.append(query.product_name)
        if query.product_name == self._releaser:
            self._released.set()
        return tiers


class TestResolveFreeText(unittest.IsolatedAsyncioTestCase):
    """Free-text queries: matching, pricing, alternatives."""

    def setUp(self) -> None:
        self.store = build_store()
        self.orchestrator = PricingOrchestrator(self.store)

    async def test_single_match_priced_at_tier(self) -> None:
        """An exact-name query is priced at the tier below the quantity."""
        response = await self.orchestrator.resolve_free_text(
            ParsedQuery("canvas tote bag", 475, "silkscreen 1c x 0c")
        )
        self.assertIs(response.status, QuoteStatus.OK)
        self.assertEqual(response.matched_products, ["Canvas Tote Bag"])
        self.assertEqual(len(response.results), 1)

        quote = response.results[0].quote
        self.assertEqual(quote.print_option, "Silkscreen 1c x 0c")
        self.assertEqual(quote.tier_quantity, 100)
        self.assertEqual(quote.unit_price, Decimal("3.80"))
        self.assertEqual(quote.total_price, Decimal("1805.00"))
        self.assertFalse(response.results[0].delivery_fallback_used)

        self.assertEqual(
            [(a.product_name, a.unit_price) for a in response.alternatives],
            [
                ("Canvas Tote Bag Large", Decimal("6.20")),
                ("Non-Woven Tote Bag", Decimal("1.90")),
            ],
        )

    async def test_fuzzy_match_prices_every_candidate(self) -> None:
        """Results keep match order, including a sea-only fallback."""
        response = await self.orchestrator.resolve_free_text(
            ParsedQuery("tote bag", 200, "1 color")
        )
        self.assertIs(response.status, QuoteStatus.OK)
        self.assertEqual(
            [r.product.name for r in response.results],
            [
                "Canvas Tote Bag",
                "Canvas Tote Bag Large",
                "Non-Woven Tote Bag",
                "Jute Tote Bag",
            ],
        )
        self.assertTrue(
            all(r.quote.print_option == "Silkscreen 1c x 0c"
                for r in response.results)
        )
        jute = response.results[-1]
        self.assertIs(jute.quote.delivery_class, SEA)
        self.assertTrue(jute.delivery_fallback_used)
        self.assertTrue(jute.quote.below_moq)
        self.assertEqual(jute.quote.tier_quantity, 500)
        self.assertIsNone(jute.quote.total_price)

    async def test_no_product_match_offers_suggestions(self) -> None:
        """Unmatched words produce loose suggestions."""
        response = await self.orchestrator.resolve_free_text(
            ParsedQuery("bag hoodie", 100)
        )
        self.assertIs(response.status, QuoteStatus.NO_PRODUCT_MATCH)
        self.assertEqual(response.results, [])
        self.assertEqual(len(response.suggestions), 4)
        self.assertIn("Jute Tote Bag", response.suggestions)
        self.assertEqual(response.message, 'No products found matching "bag hoodie"')

    async def test_no_price_for_variant_keeps_alternatives(self) -> None:
        """An unrecorded colour notation still lists alternatives."""
        response = await self.orchestrator.resolve_free_text(
            ParsedQuery("Non-Woven Tote Bag", 100, "2c x 1c")
        )
        self.assertIs(response.status, QuoteStatus.NO_PRICE_FOR_VARIANT)
        self.assertEqual(response.results, [])
        self.assertEqual(response.matched_products, ["Non-Woven Tote Bag"])
        self.assertEqual(
            [(a.product_name, a.print_option, a.unit_price)
             for a in response.alternatives],
            [
                ("Canvas Tote Bag", "No Print", Decimal("2.20")),
                ("Canvas Tote Bag Large", "Silkscreen 1c x 0c",
                 Decimal("6.20")),
            ],
        )

    async def test_blank_product_is_parse_failure(self) -> None:
        """A parsed query without a product is rejected."""
        with self.assertRaises(ParseFailure):
            await self.orchestrator.resolve_free_text(ParsedQuery(None, 10))

    async def test_overseas_lead_time_falls_back_to_local(self) -> None:
        """A sea preference for a local-only product is flagged."""
        response = await self.orchestrator.resolve_free_text(
            ParsedQuery("Ceramic Mug", 72, None, "overseas")
        )
        self.assertIs(response.requested_delivery_class, SEA)
        priced = response.results[0]
        self.assertIs(priced.quote.delivery_class, LOCAL)
        self.assertTrue(priced.delivery_fallback_used)
        payload = priced.to_dict()
        self.assertEqual(payload["requested_delivery_class"], "overseas_sea")
        self.assertEqual(payload["delivery_class"], "local")
        self.assertTrue(payload["delivery_fallback"])

    async def test_results_keep_match_order_when_first_is_slow(self) -> None:
        """Candidates finishing out of order are reported in match order."""
        store = _HeldFirstStore(
            PRODUCTS, TIERS, held="Canvas Tote Bag", releaser="Jute Tote Bag",
        )
        response = await PricingOrchestrator(store).resolve_free_text(
            ParsedQuery("tote bag", 200, "1 color")
        )
        self.assertLess(
            store.priced.index("Jute Tote Bag"),
            store.priced.index("Canvas Tote Bag"),
        )
        self.assertEqual(
            [r.product.name for r in response.results],
            [
                "Canvas Tote Bag",
                "Canvas Tote Bag Large",
                "Non-Woven Tote Bag",
                "Jute Tote Bag",
            ],
        )

    async def test_failure_cancels_pending_candidates(self) -> None:
        """One failing candidate cancels the others and stops their threads."""
        real_to_thread = asyncio.to_thread
        cascade_resolve = self.orchestrator.cascade.resolve
        waiting: list[asyncio.Task] = []
        stops: list[threading.Event] = []
        others_waiting = asyncio.Event()
        never = asyncio.Event()

        async def fake_to_thread(func, *args, **kwargs):
            if func != cascade_resolve:
                return await real_to_thread(func, *args, **kwargs)
            stops.append(args[-1])
            if args[0] == "Canvas Tote Bag":
                await others_waiting.wait()
                raise StoreUnavailable("disk gone")
            task = asyncio.current_task()
            assert task is not None
            waiting.append(task)
            if len(waiting) == 3:
                others_waiting.set()
            await never.wait()

        with patch(
            "price_agent.services.pricing_orchestrator.asyncio.to_thread",
            new=fake_to_thread,
        ):
            with self.assertRaises(StoreUnavailable):
                await self.orchestrator.resolve_free_text(
                    ParsedQuery("tote bag", 200)
                )
            for _ in range(3):
                await asyncio.sleep(0)

        self.assertEqual(len(waiting), 3)
        self.assertTrue(all(task.cancelled() for task in waiting))
        self.assertEqual(len(stops), 4)
        self.assertTrue(all(stop.is_set() for stop in stops))

    async def test_store_failure_propagates(self) -> None:
        """A store outage is never reported as "not found"."""
        with patch.object(
            self.store,
            "list_print_options",
            side_effect=StoreUnavailable("disk gone"),
        ):
            with self.assertRaises(StoreUnavailable):
                await self.orchestrator.resolve_free_text(
                    ParsedQuery("tote bag", 100)
                )


class TestQuoteText(unittest.IsolatedAsyncioTestCase):
    """Parsing through the collaborator, then quoting."""

    async def test_quote_text_uses_parser(self) -> None:
        """The parser's output drives the quote."""
        parser = MagicMock()
        parser.parse.return_value = ParsedQuery("Ceramic Mug", 72)
        orchestrator = PricingOrchestrator(build_store(), parser=parser)

        response = await orchestrator.quote_text("72 ceramic mugs please")

        parser.parse.assert_called_once_with("72 ceramic mugs please")
        self.assertIs(response.status, QuoteStatus.OK)
        self.assertEqual(response.results[0].quote.unit_price, Decimal("5.20"))

    async def test_quote_text_without_parser(self) -> None:
        """No parser configured is a collaborator failure."""
        orchestrator = PricingOrchestrator(build_store())
        with self.assertRaises(CollaboratorUnavailable):
            await orchestrator.quote_text("72 ceramic mugs")


class TestResolveStructured(unittest.IsolatedAsyncioTestCase):
    """Exact-name structured lookups."""

    def setUp(self) -> None:
        self.orchestrator = PricingOrchestrator(build_store())

    async def test_exact_lookup(self) -> None:
        """A structured lookup quotes one product with no alternatives."""
        response = await self.orchestrator.resolve_structured(
            StructuredQuery("Canvas Tote Bag", "Silkscreen 1c x 0c", "local", 500)
        )
        self.assertIs(response.status, QuoteStatus.OK)
        self.assertEqual(len(response.results), 1)
        self.assertEqual(response.alternatives, [])
        quote = response.results[0].quote
        self.assertEqual(quote.unit_price, Decimal("3.20"))
        self.assertEqual(quote.total_price, Decimal("1600.00"))

    async def test_repeat_is_byte_identical(self) -> None:
        """The same request serialises to the same bytes."""
        query = StructuredQuery("Canvas Tote Bag", "heat transfer", "local", 40)
        first = await self.orchestrator.resolve_structured(query)
        second = await self.orchestrator.resolve_structured(query)
        self.assertEqual(
            json.dumps(first.to_dict(), sort_keys=True),
            json.dumps(second.to_dict(), sort_keys=True),
        )

    async def test_invalid_input(self) -> None:
        """Missing names, bad quantities and unknown classes are rejected."""
        bad = [
            StructuredQuery(None),
            StructuredQuery("   "),
            StructuredQuery("Ceramic Mug", quantity=0),
            StructuredQuery("Ceramic Mug", delivery_class="rocket"),
        ]
        for query in bad:
            with self.subTest(query=query):
                with self.assertRaises(InvalidInput):
                    await self.orchestrator.resolve_structured(query)

    async def test_name_is_exact(self) -> None:
        """Lowercase names do not match; suggestions are offered."""
        response = await self.orchestrator.resolve_structured(
            StructuredQuery("canvas tote bag")
        )
        self.assertIs(response.status, QuoteStatus.NO_PRODUCT_MATCH)
        self.assertIn("Canvas Tote Bag", response.suggestions)

    async def test_unknown_product_suggestions(self) -> None:
        """Suggestions come from any significant word."""
        response = await self.orchestrator.resolve_structured(
            StructuredQuery("Canvas Pouch")
        )
        self.assertEqual(
            response.suggestions,
            ["Canvas Tote Bag", "Canvas Tote Bag Large"],
        )
        self.assertEqual(response.message, 'Product "Canvas Pouch" not found')

    async def test_delivery_fallback(self) -> None:
        """A sea-only product requested locally reports the sea class."""
        response = await self.orchestrator.resolve_structured(
            StructuredQuery("Jute Tote Bag", quantity=1000)
        )
        priced = response.results[0]
        self.assertIs(priced.requested_delivery_class, LOCAL)
        self.assertIs(priced.quote.delivery_class, SEA)
        self.assertEqual(priced.quote.unit_price, Decimal("2.70"))

    async def test_requested_air(self) -> None:
        """An explicit air request is honoured."""
        response = await self.orchestrator.resolve_structured(
            StructuredQuery("Canvas Tote Bag", None, "overseas_air", 500)
        )
        quote = response.results[0].quote
        self.assertIs(quote.delivery_class, AIR)
        self.assertEqual(quote.unit_price, Decimal("2.40"))

    async def test_unpriced_notation(self) -> None:
        """A colour notation nobody offers is no price, not a guess."""
        response = await self.orchestrator.resolve_structured(
            StructuredQuery("Canvas Tote Bag", "2c x 2c", quantity=100)
        )
        self.assertIs(response.status, QuoteStatus.NO_PRICE_FOR_VARIANT)
        self.assertEqual(response.matched_products, ["Canvas Tote Bag"])


class TestCatalogBrowsing(unittest.IsolatedAsyncioTestCase):
    """Product listing, variant tiers and MOQ summaries."""

    def setUp(self) -> None:
        self.orchestrator = PricingOrchestrator(build_store())

    async def test_list_products_page(self) -> None:
        """Pages are ordered by name and carry the full total."""
        listing = await self.orchestrator.list_products(limit=3)
        self.assertEqual(
            [s.product.name for s in listing.products],
            ["A5 Notebook", "Canvas Tote Bag", "Canvas Tote Bag Large"],
        )
        self.assertEqual(listing.total, 7)
        tote = listing.products[1]
        self.assertEqual(tote.moq, 50)
        self.assertEqual(tote.starting_price, Decimal("2.50"))
        self.assertEqual(len(tote.print_options), 4)

    async def test_list_products_category(self) -> None:
        """A category filter narrows the listing and the total."""
        listing = await self.orchestrator.list_products(category="Drinkware")
        self.assertEqual(listing.total, 2)
        self.assertEqual(
            [s.product.name for s in listing.products],
            ["Ceramic Mug", "Stainless Steel Tumbler"],
        )

    async def test_list_products_invalid_page(self) -> None:
        """Non-positive limits and negative offsets are rejected."""
        with self.assertRaises(InvalidInput):
            await self.orchestrator.list_products(limit=0)
        with self.assertRaises(InvalidInput):
            await self.orchestrator.list_products(offset=-1)

    async def test_variant_tiers(self) -> None:
        """The default option's full curve, ascending."""
        variant = await self.orchestrator.variant_tiers("Canvas Tote Bag")
        self.assertIsNotNone(variant)
        assert variant is not None
        self.assertEqual(variant.print_option, "Silkscreen 1c x 0c")
        self.assertEqual(
            [t.quantity for t in variant.tiers],
            [30, 40, 50, 100, 500, 1000],
        )
        self.assertEqual((variant.days_min, variant.days_max), (5, 10))

    async def test_variant_tiers_by_class(self) -> None:
        """Tiers are per delivery class."""
        self.assertIsNone(
            await self.orchestrator.variant_tiers("Jute Tote Bag")
        )
        sea = await self.orchestrator.variant_tiers(
            "Jute Tote Bag", delivery_class="overseas_sea",
        )
        assert sea is not None
        self.assertEqual([t.quantity for t in sea.tiers], [500, 1000])
        with self.assertRaises(InvalidInput):
            await self.orchestrator.variant_tiers(
                "Jute Tote Bag", delivery_class="rocket",
            )

    async def test_variant_tiers_unrecorded_notation(self) -> None:
        """An unrecorded notation has no curve."""
        self.assertIsNone(
            await self.orchestrator.variant_tiers("Canvas Tote Bag", "2c x 2c")
        )

    async def test_moq_summary(self) -> None:
        """Every variant's MOQ, cheapest first, with the lowest picked."""
        summary = await self.orchestrator.moq_summary("Canvas Tote Bag")
        assert summary is not None
        self.assertEqual(len(summary.variants), 5)
        self.assertEqual(summary.lowest.print_option, "No Print")
        self.assertEqual(summary.lowest.quantity, 50)
        self.assertEqual(summary.lowest.unit_price, Decimal("2.50"))
        self.assertIsNone(await self.orchestrator.moq_summary("Gold Bar"))

    async def test_moq_summary_without_flags(self) -> None:
        """Unflagged tiers fall back to each variant's smallest quantity."""
        store = InMemoryCatalogStore(
            [Product("Pencil", "Stationery")],
            [
                PriceTier("Pencil", "Laser", LOCAL, 200, Decimal("0.55")),
                PriceTier("Pencil", "Laser", LOCAL, 500, Decimal("0.40")),
                PriceTier("Pencil", "No Print", LOCAL, 1000, Decimal("0.20")),
            ],
        )
        summary = await PricingOrchestrator(store).moq_summary("Pencil")
        assert summary is not None
        self.assertEqual(
            [(v.print_option, v.quantity) for v in summary.variants],
            [("Laser", 200), ("No Print", 1000)],
        )
        self.assertEqual(summary.lowest.print_option, "No Print")


if __name__ == "__main__":
    unittest.main()
