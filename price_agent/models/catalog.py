# price_agent/models/catalog.py

"""Read-only catalog views: product listings, variant tiers and MOQs."""

from dataclasses import dataclass, field
from decimal import Decimal

from price_agent.models.price_tier import DeliveryClass, PriceTier
from price_agent.models.product import Product


@dataclass
class ProductSummary:
    """A product with its print options and cheapest starting point."""

    product: Product
    print_options: list[str]
    moq: int | None = None
    starting_price: Decimal | None = None

    def to_dict(self) -> dict[str, object]:
        data = self.product.to_dict()
        data["print_options"] = list(self.print_options)
        data["moq"] = self.moq
        data["starting_price"] = (
            float(self.starting_price)
            if self.starting_price is not None
            else None
        )
        return data


@dataclass
class ProductListing:
    """One page of the catalog."""

    products: list[ProductSummary]
    total: int
    limit: int
    offset: int

    def to_dict(self) -> dict[str, object]:
        return {
            "products": [p.to_dict() for p in self.products],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass
class VariantTiers:
    """The full ascending price curve of one variant."""

    product_name: str
    print_option: str
    delivery_class: DeliveryClass
    days_min: int | None
    days_max: int | None
    tiers: list[PriceTier] = field(
        default_factory=lambda: list[PriceTier]()
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "product_name": self.product_name,
            "print_option": self.print_option,
            "lead_time": {
                "type": self.delivery_class.value,
                "days_min": self.days_min,
                "days_max": self.days_max,
            },
            "tiers": [t.to_dict() for t in self.tiers],
        }


@dataclass(frozen=True)
class MoqVariant:
    """Minimum order point of one variant."""

    print_option: str
    delivery_class: DeliveryClass
    quantity: int
    unit_price: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "print_option": self.print_option,
            "delivery_class": self.delivery_class.value,
            "moq": self.quantity,
            "moq_price": float(self.unit_price),
        }


@dataclass
class MoqSummary:
    """MOQs across every variant of a product, with the cheapest one."""

    product_name: str
    variants: list[MoqVariant]
    lowest: MoqVariant

    def to_dict(self) -> dict[str, object]:
        return {
            "product_name": self.product_name,
            "variants": [v.to_dict() for v in self.variants],
            "lowest_moq": {
                "quantity": self.lowest.quantity,
                "print_option": self.lowest.print_option,
                "delivery_class": self.lowest.delivery_class.value,
                "unit_price": float(self.lowest.unit_price),
            },
        }
