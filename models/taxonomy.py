"""Canonical storefront vocabularies.

This module centralises the labels accepted for product categories, sizes,
stock filters and sort keys. Helper functions keep normalisation consistent
between the catalog engine, the stores and the HTTP layer.
"""

import re
from typing import Iterable, List, Optional

from models.errors import ValidationFailure

CATEGORIES: List[str] = ["Tops", "Bottoms", "Outerwear", "Dresses", "Footwear"]
SIZES: List[str] = ["XS", "S", "M", "L", "XL", "XXL"]

STOCK_ANY = "any"
STOCK_IN = "inStock"
STOCK_OUT = "outOfStock"
STOCK_STATUSES: List[str] = [STOCK_ANY, STOCK_IN, STOCK_OUT]

SORT_NEWEST = "newest"
SORT_POPULAR = "popular"
SORT_PRICE_LOW = "priceLow"
SORT_PRICE_HIGH = "priceHigh"
SORT_KEYS: List[str] = [SORT_NEWEST, SORT_POPULAR, SORT_PRICE_LOW, SORT_PRICE_HIGH]

DEVICE_MOBILE = "mobile"
DEVICE_DESKTOP = "desktop"
DEVICE_CLASSES: List[str] = [DEVICE_MOBILE, DEVICE_DESKTOP]


def _normalize_key(value: str) -> str:
    """Normalise a free-form string into a lookup key."""

    return value.strip().lower().replace(" ", "").replace("_", "").replace("-", "")


def _lookup(value: object, allowed: Iterable[str]) -> Optional[str]:
    if value is None:
        return None
    key = _normalize_key(str(value))
    if not key:
        return None
    for candidate in allowed:
        if _normalize_key(candidate) == key:
            return candidate
    return None


def validate_category(value: str) -> str:
    """Validate and normalise a category value.

    Raises a :class:`ValueError` if the category is not part of the storefront
    taxonomy.
    """

    category = _lookup(value, CATEGORIES)
    if category is None:
        raise ValueError(f"Unsupported category '{value}'. Allowed: {CATEGORIES}")
    return category


def normalize_category(value: object) -> Optional[str]:
    """Return the canonical category or ``None`` when unknown or empty."""

    return _lookup(value, CATEGORIES)


def normalize_stock_status(value: object) -> str:
    return _lookup(value, STOCK_STATUSES) or STOCK_ANY


def normalize_sort_key(value: object) -> Optional[str]:
    return _lookup(value, SORT_KEYS)


def normalize_label(value: object) -> Optional[str]:
    """Trim a free-form size or color label, mapping blanks to ``None``."""

    if value is None:
        return None
    label = str(value).strip()
    return label or None


def normalise_labels(values: Iterable[object] | None) -> tuple[str, ...]:
    """Trim and deduplicate labels while keeping their first-seen order."""

    labels: list[str] = []
    seen = set()
    for value in values or ():
        label = normalize_label(value)
        if label and label.lower() not in seen:
            labels.append(label)
            seen.add(label.lower())
    return tuple(labels)




_CALLER_ID_PATTERN = re.compile(r"[A-Za-z0-9][\w.@-]{0,127}")


def validate_caller_id(value: object) -> str:
    """Return ``value`` if it is usable as a caller id.

    Caller ids name per-caller files on disk, so they must be a single path
    component: a leading letter or digit followed by letters, digits, ``_``,
    ``.``, ``@`` or ``-``. Anything else raises :class:`ValidationFailure`.
    """

    if not isinstance(value, str) or not _CALLER_ID_PATTERN.fullmatch(value):
        raise ValidationFailure(f"Invalid caller id {value!r}")
    return value


__all__ = [
    "CATEGORIES",
    "SIZES",
    "STOCK_ANY",
    "STOCK_IN",
    "STOCK_OUT",
    "STOCK_STATUSES",
    "SORT_NEWEST",
    "SORT_POPULAR",
    "SORT_PRICE_LOW",
    "SORT_PRICE_HIGH",
    "SORT_KEYS",
    "DEVICE_MOBILE",
    "DEVICE_DESKTOP",
    "DEVICE_CLASSES",
    "validate_category",
    "normalize_category",
    "normalize_stock_status",
    "normalize_sort_key",
    "normalize_label",
    "normalise_labels",
    "validate_caller_id",
]
