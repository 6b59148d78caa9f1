"""Cart line items."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from models.product import Product


@dataclass
class CartItem:
    product_id: str
    name: str
    price: Decimal
    quantity: int = 1
    size: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        self.price = Decimal(str(self.price))
        self.quantity = int(self.quantity)
        if self.quantity < 1:
            raise ValueError("quantity must be at least 1")

    @property
    def line_key(self) -> tuple[str, Optional[str]]:
        return (self.product_id, self.size)

    @classmethod
    def for_product(cls, product: Product, quantity: int = 1, size: Optional[str] = None) -> "CartItem":
        return cls(
            product_id=product.product_id,
            name=product.name,
            price=product.price,
            quantity=quantity,
            size=size,
            image_url=product.image_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["price"] = float(self.price)
        return payload


__all__ = ["CartItem"]
