"""Product data model and helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from models.taxonomy import normalise_labels, validate_category


def _ensure_list(value: Any) -> list:
    """Coerce a scalar or iterable into a list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _coerce_price(value: Any) -> Decimal:
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid price {value!r}") from exc
    if not price.is_finite():
        raise ValueError(f"Invalid price {value!r}")
    return price


def _coerce_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Invalid created_at {value!r}")


@dataclass(frozen=True)
class Product:
    """A catalog product. Instances never change once loaded."""

    product_id: str
    name: str
    description: str
    price: Decimal
    image_url: str
    category: str
    stock: int
    created_at: datetime
    tags: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    colors: Optional[Tuple[str, ...]] = None
    back_image_url: Optional[str] = None

    def __post_init__(self) -> None:
        price = _coerce_price(self.price)
        if price < 0:
            raise ValueError(f"Product {self.product_id} has a negative price")
        stock = int(self.stock)
        if stock < 0:
            raise ValueError(f"Product {self.product_id} has negative stock")
        object.__setattr__(self, "price", price)
        object.__setattr__(self, "stock", stock)
        object.__setattr__(self, "category", validate_category(self.category))
        object.__setattr__(self, "created_at", _coerce_timestamp(self.created_at))
        object.__setattr__(self, "tags", normalise_labels(self.tags))
        object.__setattr__(self, "sizes", normalise_labels(self.sizes))
        if self.colors is not None:
            object.__setattr__(self, "colors", normalise_labels(self.colors))

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to JSON-friendly primitives."""

        return {
            "id": self.product_id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price),
            "imageURL": self.image_url,
            "backImageURL": self.back_image_url,
            "category": self.category,
            "stock": self.stock,
            "tags": list(self.tags),
            "sizes": list(self.sizes),
            "colors": list(self.colors) if self.colors is not None else None,
            "createdAt": self.created_at.isoformat(),
        }


def from_raw_metadata(metadata: Dict[str, Any]) -> Product:
    """Factory to build a :class:`Product` from a loose catalog payload.

    Accepts both the storefront's camelCase keys (``imageURL``, ``createdAt``)
    and snake_case equivalents.
    """

    def pick(*keys: str) -> Any:
        for key in keys:
            if metadata.get(key) is not None:
                return metadata[key]
        return None

    product_id = pick("id", "product_id")
    required = {
        "id": product_id,
        "name": pick("name"),
        "price": pick("price"),
        "imageURL": pick("imageURL", "image_url"),
        "category": pick("category"),
    }
    missing = [key for key, value in required.items() if value in (None, "")]
    if missing:
        raise ValueError(f"Missing required fields for Product: {missing}")

    colors = pick("colors")
    return Product(
        product_id=str(product_id),
        name=str(required["name"]),
        description=str(pick("description") or ""),
        price=required["price"],
        image_url=str(required["imageURL"]),
        back_image_url=pick("backImageURL", "back_image_url"),
        category=str(required["category"]),
        stock=int(pick("stock") or 0),
        tags=tuple(_ensure_list(pick("tags"))),
        sizes=tuple(_ensure_list(pick("sizes"))),
        colors=tuple(_ensure_list(colors)) if colors is not None else None,
        created_at=pick("createdAt", "created_at") or datetime.now(timezone.utc),
    )


__all__ = ["Product", "from_raw_metadata"]
