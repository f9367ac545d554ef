# price_agent/models/product.py

"""Product data model for inter-module data flow."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Product:
    """A sellable item family; ``name`` is the canonical key."""

    name: str
    category: str = ""
    dimensions: str = ""
    material: str = ""
    color: str = ""

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dict for JSON output."""
        return {
            "name": self.name,
            "category": self.category or None,
            "dimensions": self.dimensions or None,
            "material": self.material or None,
            "color": self.color or None,
        }
