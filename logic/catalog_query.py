"""Deterministic catalog filtering and sorting.

Every function here is pure: the input sequence is never mutated and identical
inputs always produce identical output. Malformed criteria never raise, they
simply stop constraining the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from models.product import Product
from models.taxonomy import (
    SORT_NEWEST,
    SORT_POPULAR,
    SORT_PRICE_HIGH,
    SORT_PRICE_LOW,
    STOCK_ANY,
    STOCK_IN,
    STOCK_OUT,
    normalize_category,
    normalize_label,
    normalize_sort_key,
    normalize_stock_status,
)

QUICK_ADD = "add"
QUICK_ADD_OUT_OF_STOCK = "out_of_stock"
QUICK_ADD_CHOOSE_OPTIONS = "choose_options"


@dataclass(frozen=True)
class FilterCriteria:
    """Structured catalog constraints; ``None`` means no constraint."""

    category: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    stock_status: str = STOCK_ANY
    sort_by: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", normalize_category(self.category))
        object.__setattr__(self, "size", normalize_label(self.size))
        object.__setattr__(self, "color", normalize_label(self.color))
        object.__setattr__(self, "stock_status", normalize_stock_status(self.stock_status))
        object.__setattr__(self, "sort_by", normalize_sort_key(self.sort_by))

    @classmethod
    def storefront_defaults(cls) -> "FilterCriteria":
        """Initial catalog state: newest first, nothing else constrained."""

        return cls(sort_by=SORT_NEWEST)

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "FilterCriteria":
        """Build criteria from loose request parameters.

        Both ``stockStatus``/``sortBy`` and ``stock_status``/``sort_by`` are
        accepted. Anything that is not a mapping yields empty criteria.
        """

        if not isinstance(params, Mapping):
            return cls()

        def pick(*keys: str) -> Any:
            for key in keys:
                value = params.get(key)
                if value not in (None, ""):
                    return value
            return None

        return cls(
            category=pick("category"),
            size=pick("size"),
            color=pick("color"),
            stock_status=pick("stockStatus", "stock_status") or STOCK_ANY,
            sort_by=pick("sortBy", "sort_by"),
        )


def filter_by_text(products: Sequence[Product], text: str | None) -> List[Product]:
    """Keep products whose name, description or a tag contains ``text``."""

    needle = text.strip().lower() if isinstance(text, str) else ""
    if not needle:
        return list(products)
    kept: List[Product] = []
    for product in products:
        if (
            needle in product.name.lower()
            or needle in product.description.lower()
            or any(needle in tag.lower() for tag in product.tags)
        ):
            kept.append(product)
    return kept


def filter_by_category(products: Sequence[Product], category: Optional[str]) -> List[Product]:
    if not category:
        return list(products)
    return [product for product in products if product.category == category]


def filter_by_size(products: Sequence[Product], size: Optional[str]) -> List[Product]:
    if not size:
        return list(products)
    wanted = size.lower()
    return [product for product in products if any(s.lower() == wanted for s in product.sizes)]


def filter_by_color(products: Sequence[Product], color: Optional[str]) -> List[Product]:
    if not color:
        return list(products)
    wanted = color.lower()
    return [product for product in products if any(c.lower() == wanted for c in product.colors or ())]


def filter_by_stock(products: Sequence[Product], stock_status: str) -> List[Product]:
    if stock_status == STOCK_IN:
        return [product for product in products if product.stock > 0]
    if stock_status == STOCK_OUT:
        return [product for product in products if product.stock == 0]
    return list(products)


# (key, descending) per sort option. ``sorted`` is stable in both directions.
_SORTS: Dict[str, tuple[Callable[[Product], Any], bool]] = {
    SORT_NEWEST: (lambda product: product.created_at, True),
    SORT_PRICE_LOW: (lambda product: product.price, False),
    SORT_PRICE_HIGH: (lambda product: product.price, True),
    SORT_POPULAR: (lambda product: product.stock, True),
}


def sort_products(products: Sequence[Product], sort_by: Optional[str]) -> List[Product]:
    """Apply one sort option; an unset option keeps the incoming order."""

    option = _SORTS.get(sort_by or "")
    if option is None:
        return list(products)
    key, descending = option
    return sorted(products, key=key, reverse=descending)


def query(
    products: Sequence[Product],
    text: str | None = "",
    criteria: FilterCriteria | None = None,
    variant_filters: bool = True,
) -> List[Product]:
    """Run the catalog pipeline: text, category, size/color, stock, then sort.

    ``variant_filters=False`` accepts size and color in the criteria without
    letting them narrow the result.
    """

    criteria = criteria if isinstance(criteria, FilterCriteria) else FilterCriteria()
    results = filter_by_text(products, text)
    results = filter_by_category(results, criteria.category)
    if variant_filters:
        results = filter_by_size(results, criteria.size)
        results = filter_by_color(results, criteria.color)
    results = filter_by_stock(results, criteria.stock_status)
    return sort_products(results, criteria.sort_by)


def latest_arrivals(products: Sequence[Product], limit: int = 4) -> List[Product]:
    """Newest products for the home page carousel."""

    return sort_products(products, SORT_NEWEST)[: max(limit, 0)]


def quick_add_decision(product: Product) -> str:
    """Decide whether a one-click add can go straight to the cart."""

    if product.stock == 0:
        return QUICK_ADD_OUT_OF_STOCK
    if product.sizes or product.colors:
        return QUICK_ADD_CHOOSE_OPTIONS
    return QUICK_ADD


__all__ = [
    "FilterCriteria",
    "QUICK_ADD",
    "QUICK_ADD_CHOOSE_OPTIONS",
    "QUICK_ADD_OUT_OF_STOCK",
    "filter_by_category",
    "filter_by_color",
    "filter_by_size",
    "filter_by_stock",
    "filter_by_text",
    "latest_arrivals",
    "query",
    "quick_add_decision",
    "sort_products",
]
