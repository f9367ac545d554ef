# price_agent/models/price_tier.py

"""Price tier model: one quantity/price point of a product variant."""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

_CENT = Decimal("0.01")

_AIR_RE = re.compile(r"\bair\b")


class DeliveryClass(str, Enum):
    """Fulfilment category, declared in fallback priority order."""

    LOCAL = "local"
    OVERSEAS_AIR = "overseas_air"
    OVERSEAS_SEA = "overseas_sea"

    @property
    def days_min(self) -> int:
        """Lower bound of the working-day lead time."""
        return _LEAD_TIMES[self][0]

    @property
    def days_max(self) -> int:
        """Upper bound of the working-day lead time."""
        return _LEAD_TIMES[self][1]

    @classmethod
    def parse(cls, token: str) -> "DeliveryClass":
        """Map a delivery class token (``local``, ``overseas_air`` ...) to a member.

        Raises ``ValueError`` on unknown tokens.
        """
        cleaned = token.strip().lower().replace("-", "_").replace(" ", "_")
        return cls(cleaned)

    def cascade(self) -> list["DeliveryClass"]:
        """This class first, then every other class in priority order."""
        return [self] + [dc for dc in DeliveryClass if dc is not self]


_LEAD_TIMES: dict[DeliveryClass, tuple[int, int]] = {
    DeliveryClass.LOCAL: (5, 10),
    DeliveryClass.OVERSEAS_AIR: (10, 15),
    DeliveryClass.OVERSEAS_SEA: (20, 35),
}


def delivery_class_from_lead_time(lead_time: str | None) -> DeliveryClass:
    """Map a free-text delivery preference to a delivery class.

    Exact tokens win; otherwise "air" selects overseas air freight and
    "overseas"/"sea" select sea freight.  Anything else ("urgent",
    "standard", nothing at all) is local.
    """
    if not lead_time or not lead_time.strip():
        return DeliveryClass.LOCAL
    try:
        return DeliveryClass.parse(lead_time)
    except ValueError:
        pass

    lowered = lead_time.lower()
    if "overseas" in lowered or "sea" in lowered:
        if _AIR_RE.search(lowered):
            return DeliveryClass.OVERSEAS_AIR
        return DeliveryClass.OVERSEAS_SEA
    if _AIR_RE.search(lowered):
        return DeliveryClass.OVERSEAS_AIR
    return DeliveryClass.LOCAL


def round2(amount: Decimal) -> Decimal:
    """Round a currency amount to cents, half up."""
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceTier:
    """One (product, print option, delivery class, quantity) price point."""

    product_name: str
    print_option: str
    delivery_class: DeliveryClass
    quantity: int
    unit_price: Decimal
    currency: str = "SGD"
    is_moq: bool = False
    delivery_days_min: int | None = None
    delivery_days_max: int | None = None

    @property
    def variant_key(self) -> tuple[str, str, DeliveryClass]:
        """The (product, print option, delivery class) group this tier belongs to."""
        return (self.product_name, self.print_option, self.delivery_class)

    def to_dict(self) -> dict[str, object]:
        """Serialise the quantity/price point for JSON output."""
        return {
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "is_moq": self.is_moq,
        }
