# price_agent/models/quote.py

"""Request and response models for price resolution."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.product import Product


def _money(amount: Decimal | None) -> float | None:
    """Render a Decimal amount for JSON, keeping ``None``."""
    return float(amount) if amount is not None else None


class MatchConfidence(str, Enum):
    """Which ProductMatcher tier produced a match."""

    EXACT = "exact"
    EXACT_INSENSITIVE = "exact_insensitive"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class MatchResult:
    """A catalog product matched by a free-text query."""

    product: Product
    confidence: MatchConfidence


@dataclass(frozen=True)
class MoqPoint:
    """Minimum order quantity of a variant and its unit price."""

    quantity: int
    unit_price: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
        }


@dataclass
class ResolvedQuote:
    """Price of one variant at a requested quantity.

    ``unit_price`` and ``tier_quantity`` are ``None`` when no quantity
    was requested; ``total_price`` is ``None`` whenever the requested
    quantity was not actually sold at ``unit_price`` (no quantity, or
    a quantity below the MOQ).
    """

    product_name: str
    print_option: str
    delivery_class: DeliveryClass
    requested_quantity: int | None
    unit_price: Decimal | None
    total_price: Decimal | None
    currency: str
    moq: MoqPoint | None
    all_tiers: list[PriceTier] = field(
        default_factory=lambda: list[PriceTier]()
    )
    tier_quantity: int | None = None
    below_moq: bool = False
    note: str | None = None
    days_min: int | None = None
    days_max: int | None = None

    def pricing_dict(self) -> dict[str, object]:
        """The price block of the transport payload."""
        return {
            "requested_quantity": self.requested_quantity,
            "tier_quantity": self.tier_quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
            "currency": self.currency,
            "below_moq": self.below_moq,
            "note": self.note,
        }


@dataclass
class PricedProduct:
    """A resolved quote joined with its catalog product."""

    product: Product
    quote: ResolvedQuote
    requested_delivery_class: DeliveryClass

    @property
    def delivery_fallback_used(self) -> bool:
        """True when pricing comes from a slower class than requested."""
        return self.quote.delivery_class is not self.requested_delivery_class

    def to_dict(self) -> dict[str, object]:
        quote = self.quote
        return {
            "product_name": self.product.name,
            "dimensions": self.product.dimensions or None,
            "category": self.product.category or None,
            "print_option": quote.print_option,
            "delivery_class": quote.delivery_class.value,
            "requested_delivery_class": self.requested_delivery_class.value,
            "delivery_fallback": self.delivery_fallback_used,
            "lead_time": {
                "type": quote.delivery_class.value,
                "days_min": quote.days_min,
                "days_max": quote.days_max,
            },
            "pricing": quote.pricing_dict(),
            "moq": quote.moq.to_dict() if quote.moq else None,
            "all_tiers": [t.to_dict() for t in quote.all_tiers],
        }


@dataclass(frozen=True)
class Alternative:
    """A sibling product in the same category, priced near the request."""

    product_name: str
    dimensions: str
    print_option: str
    tier_quantity: int
    unit_price: Decimal
    currency: str
    below_moq: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "product_name": self.product_name,
            "dimensions": self.dimensions or None,
            "print_option": self.print_option,
            "tier_quantity": self.tier_quantity,
            "unit_price": float(self.unit_price),
            "currency": self.currency,
            "below_moq": self.below_moq,
        }


def _coerce_quantity(raw: object) -> int | None:
    """Turn a parser-supplied quantity into a positive int or ``None``."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(float(str(raw).replace(",", "")))
    except (ValueError, OverflowError):
        return None
    return value if value > 0 else None


def _coerce_text(raw: object) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


@dataclass(frozen=True)
class ParsedQuery:
    """Structured output of the text-understanding service."""

    product: str | None = None
    quantity: int | None = None
    print_option: str | None = None
    lead_time: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedQuery":
        """Build from loosely typed JSON, dropping unusable values."""
        return cls(
            product=_coerce_text(data.get("product")),
            quantity=_coerce_quantity(data.get("quantity")),
            print_option=_coerce_text(data.get("print_option")),
            lead_time=_coerce_text(data.get("lead_time")),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "product": self.product,
            "quantity": self.quantity,
            "print_option": self.print_option,
            "lead_time": self.lead_time,
        }


@dataclass(frozen=True)
class StructuredQuery:
    """Direct, unambiguous lookup fields."""

    product_name: str | None
    print_option: str | None = None
    delivery_class: str | None = None
    quantity: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "product_name": self.product_name,
            "print_option": self.print_option,
            "delivery_class": self.delivery_class,
            "quantity": self.quantity,
        }


class QuoteStatus(str, Enum):
    """Outcome of a quote request."""

    OK = "ok"
    NO_PRODUCT_MATCH = "no_product_match"
    NO_PRICE_FOR_VARIANT = "no_price_for_variant"


@dataclass
class QuoteResponse:
    """Container for a completed quote request."""

    status: QuoteStatus
    results: list[PricedProduct] = field(
        default_factory=lambda: list[PricedProduct]()
    )
    alternatives: list[Alternative] = field(
        default_factory=lambda: list[Alternative]()
    )
    suggestions: list[str] = field(
        default_factory=lambda: list[str]()
    )
    matched_products: list[str] = field(
        default_factory=lambda: list[str]()
    )
    query_parsed: dict[str, object] | None = None
    requested_delivery_class: DeliveryClass | None = None
    message: str | None = None

    @property
    def found(self) -> bool:
        return self.status is QuoteStatus.OK

    def to_dict(self) -> dict[str, object]:
        """Transport payload; contains no timings, so it is reproducible."""
        return {
            "success": self.found,
            "data": {
                "status": self.status.value,
                "products_found": len(self.results),
                "results": [r.to_dict() for r in self.results],
                "alternatives": [a.to_dict() for a in self.alternatives],
                "suggestions": list(self.suggestions),
                "matched_products": list(self.matched_products),
            },
            "meta": {
                "query_parsed": self.query_parsed,
                "delivery_requested": (
                    self.requested_delivery_class.value
                    if self.requested_delivery_class
                    else None
                ),
                "message": self.message,
            },
        }
