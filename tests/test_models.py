# tests/test_models.py

"""Tests for the data models and their JSON shapes."""

import json
import unittest
from decimal import Decimal

from price_agent.models.price_tier import (
    DeliveryClass,
    PriceTier,
    delivery_class_from_lead_time,
    round2,
)
from price_agent.models.product import Product
from price_agent.models.quote import (
    MoqPoint,
    ParsedQuery,
    PricedProduct,
    QuoteResponse,
    QuoteStatus,
    ResolvedQuote,
)


class TestDeliveryClass(unittest.TestCase):
    """DeliveryClass parsing, ordering and lead times."""

    def test_priority_order(self) -> None:
        """Members are declared local, air, sea."""
        self.assertEqual(
            [dc.value for dc in DeliveryClass],
            ["local", "overseas_air", "overseas_sea"],
        )

    def test_parse_tolerates_case_and_separators(self) -> None:
        """Hyphens, spaces and capitals normalise to the token."""
        self.assertIs(
            DeliveryClass.parse("Overseas-Air"), DeliveryClass.OVERSEAS_AIR
        )
        self.assertIs(
            DeliveryClass.parse(" overseas sea "), DeliveryClass.OVERSEAS_SEA
        )

    def test_parse_unknown_raises(self) -> None:
        """Unknown tokens raise ValueError."""
        with self.assertRaises(ValueError):
            DeliveryClass.parse("rocket")

    def test_cascade_starts_with_self(self) -> None:
        """The cascade tries the requested class first, then priority order."""
        self.assertEqual(
            DeliveryClass.OVERSEAS_SEA.cascade(),
            [
                DeliveryClass.OVERSEAS_SEA,
                DeliveryClass.LOCAL,
                DeliveryClass.OVERSEAS_AIR,
            ],
        )
        self.assertEqual(
            DeliveryClass.LOCAL.cascade(), list(DeliveryClass),
        )

    def test_lead_time_windows(self) -> None:
        """Each class carries its working-day window."""
        self.assertEqual(
            (DeliveryClass.LOCAL.days_min, DeliveryClass.LOCAL.days_max),
            (5, 10),
        )
        self.assertEqual(DeliveryClass.OVERSEAS_AIR.days_max, 15)
        self.assertEqual(DeliveryClass.OVERSEAS_SEA.days_min, 20)


class TestDeliveryClassFromLeadTime(unittest.TestCase):
    """Free-text delivery preference mapping."""

    def test_mapping(self) -> None:
        """Known phrasings map to the expected class."""
        cases = {
            None: DeliveryClass.LOCAL,
            "": DeliveryClass.LOCAL,
            "urgent": DeliveryClass.LOCAL,
            "standard": DeliveryClass.LOCAL,
            "local": DeliveryClass.LOCAL,
            "overseas": DeliveryClass.OVERSEAS_SEA,
            "sea freight": DeliveryClass.OVERSEAS_SEA,
            "overseas air": DeliveryClass.OVERSEAS_AIR,
            "by air": DeliveryClass.OVERSEAS_AIR,
            "overseas_air": DeliveryClass.OVERSEAS_AIR,
            "Overseas-Sea": DeliveryClass.OVERSEAS_SEA,
            "repair first": DeliveryClass.LOCAL,
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertIs(delivery_class_from_lead_time(text), expected)


class TestRound2(unittest.TestCase):
    """Currency rounding."""

    def test_half_up(self) -> None:
        """Halves round away from zero, unlike float banker's rounding."""
        self.assertEqual(round2(Decimal("3.335")), Decimal("3.34"))
        self.assertEqual(round2(Decimal("0.125")), Decimal("0.13"))

    def test_keeps_two_places(self) -> None:
        """Whole amounts gain two decimal places."""
        self.assertEqual(str(round2(Decimal("1805"))), "1805.00")


class TestParsedQuery(unittest.TestCase):
    """ParsedQuery.from_dict coercion of loosely typed JSON."""

    def test_trims_text_fields(self) -> None:
        """Whitespace is stripped and blanks become None."""
        parsed = ParsedQuery.from_dict(
            {"product": "  tote bag ", "print_option": "  ", "lead_time": None}
        )
        self.assertEqual(parsed.product, "tote bag")
        self.assertIsNone(parsed.print_option)
        self.assertIsNone(parsed.lead_time)

    def test_quantity_coercion(self) -> None:
        """Numeric strings parse, unusable values become None."""
        cases: list[tuple[object, int | None]] = [
            (200, 200),
            ("200", 200),
            ("1,000", 1000),
            (150.0, 150),
            (0, None),
            (-5, None),
            ("abc", None),
            ("inf", None),
            (True, None),
            (None, None),
        ]
        for raw, expected in cases:
            with self.subTest(raw=raw):
                self.assertEqual(
                    ParsedQuery.from_dict({"quantity": raw}).quantity,
                    expected,
                )

    def test_to_dict_keys(self) -> None:
        """to_dict exposes the four parsed fields."""
        self.assertEqual(
            set(ParsedQuery(product="mug").to_dict()),
            {"product", "quantity", "print_option", "lead_time"},
        )


class TestPriceTier(unittest.TestCase):
    """PriceTier helpers."""

    def test_variant_key(self) -> None:
        """The variant key groups by product, option and class."""
        tier = PriceTier(
            "Mug", "Heat Transfer", DeliveryClass.LOCAL, 36, Decimal("6.00"),
        )
        self.assertEqual(
            tier.variant_key, ("Mug", "Heat Transfer", DeliveryClass.LOCAL),
        )

    def test_to_dict_uses_float_price(self) -> None:
        """Unit prices are rendered as JSON numbers."""
        tier = PriceTier(
            "Mug", "Heat Transfer", DeliveryClass.LOCAL, 36,
            Decimal("6.00"), is_moq=True,
        )
        self.assertEqual(
            tier.to_dict(),
            {"quantity": 36, "unit_price": 6.0, "is_moq": True},
        )


def _quote(delivery: DeliveryClass) -> ResolvedQuote:
    return ResolvedQuote(
        product_name="Mug",
        print_option="Heat Transfer",
        delivery_class=delivery,
        requested_quantity=100,
        unit_price=Decimal("5.20"),
        total_price=Decimal("520.00"),
        currency="SGD",
        moq=MoqPoint(36, Decimal("6.00")),
        tier_quantity=72,
        days_min=delivery.days_min,
        days_max=delivery.days_max,
    )


class TestQuoteResponse(unittest.TestCase):
    """Transport shape of QuoteResponse."""

    def test_fallback_flag(self) -> None:
        """A quote priced in a slower class reports the fallback."""
        priced = PricedProduct(
            Product("Mug"),
            _quote(DeliveryClass.OVERSEAS_SEA),
            DeliveryClass.LOCAL,
        )
        data = priced.to_dict()
        self.assertTrue(data["delivery_fallback"])
        self.assertEqual(data["delivery_class"], "overseas_sea")
        self.assertEqual(data["requested_delivery_class"], "local")
        self.assertEqual(
            data["lead_time"],
            {"type": "overseas_sea", "days_min": 20, "days_max": 35},
        )

    def test_ok_payload(self) -> None:
        """An OK response is successful and JSON serialisable."""
        response = QuoteResponse(
            status=QuoteStatus.OK,
            results=[
                PricedProduct(
                    Product("Mug"),
                    _quote(DeliveryClass.LOCAL),
                    DeliveryClass.LOCAL,
                )
            ],
            requested_delivery_class=DeliveryClass.LOCAL,
        )
        payload = response.to_dict()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["data"]["status"], "ok")
        self.assertEqual(payload["data"]["products_found"], 1)
        pricing = payload["data"]["results"][0]["pricing"]
        self.assertEqual(pricing["total_price"], 520.0)
        self.assertEqual(payload["meta"]["delivery_requested"], "local")
        json.dumps(payload)

    def test_not_found_is_not_success(self) -> None:
        """Not-found outcomes carry success false and their status."""
        response = QuoteResponse(
            status=QuoteStatus.NO_PRODUCT_MATCH,
            suggestions=["Ceramic Mug"],
        )
        self.assertFalse(response.found)
        payload = response.to_dict()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["data"]["status"], "no_product_match")
        self.assertEqual(payload["data"]["suggestions"], ["Ceramic Mug"])
        self.assertIsNone(payload["meta"]["delivery_requested"])


if __name__ == "__main__":
    unittest.main()
