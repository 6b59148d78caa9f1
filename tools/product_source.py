"""Product sources: the bundled collection and a remote catalog API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from models.product import Product, from_raw_metadata
from models.errors import StorefrontError
from tools.observability import instrument_tool

logger = logging.getLogger(__name__)

_WIX_MEDIA = "https://static.wixstatic.com/media"

BUNDLED_COLLECTION: List[Dict[str, Any]] = [
    {
        "id": "1",
        "name": "Bold vibe Oversize Tshirt",
        "description": "Luxury cotton t-shirt with premium finish and exceptional comfort. "
        "Made from 100% organic cotton.",
        "price": "696.00",
        "imageURL": "Raritone Collection/Bold vibe Oversize Tshirt.jpg",
        "category": "Tops",
        "stock": 10,
        "tags": ["Cotton", "Premium", "Casual"],
        "sizes": ["XS", "S", "M", "L", "XL"],
        "createdAt": "2025-01-05T10:00:00+00:00",
    },
    {
        "id": "2",
        "name": "Raritone Hoodie",
        "description": "Raritone Hoodie from Theraritone. Crafted from premium materials, this hoodie "
        "ensures warmth and durability while offering a modern, minimalist design perfect for any wardrobe.",
        "price": "1043.13",
        "imageURL": "Raritone Collection/Hoddie1(F).jpg",
        "backImageURL": "Raritone Collection/Hoddie1(B).jpg",
        "category": "Outerwear",
        "stock": 5,
        "tags": ["Hoddie", "designer", "Cozy"],
        "sizes": ["28", "30", "32", "34", "36"],
        "createdAt": "2025-01-12T10:00:00+00:00",
    },
    {
        "id": "3",
        "name": "Kiss me again Oversize Tshirt",
        "description": "Its soft, premium fabric ensures lasting wear, while the chic, modern design "
        "adds a touch of effortless cool.",
        "price": "399.20",
        "imageURL": "Raritone Collection/Kiss me again.jpeg",
        "category": "Tops",
        "stock": 8,
        "tags": ["Tshirt", "luxury", "comfort"],
        "sizes": ["S", "M", "L", "XL"],
        "createdAt": "2025-01-19T10:00:00+00:00",
    },
    {
        "id": "4",
        "name": "Pop Art tshirt",
        "description": "This wearable masterpiece showcases bold, colorful graphics that pay homage to "
        "the iconic Pop Art movement, making it a statement piece in any wardrobe.",
        "price": "434.13",
        "imageURL": f"{_WIX_MEDIA}/3903b5_4fde7750734f4f188841c462d77d27bb~mv2.jpg",
        "category": "Tops",
        "stock": 0,
        "tags": ["Tshirt", "luxury", "comfort"],
        "sizes": ["XS", "S", "M", "L"],
        "createdAt": "2025-01-26T10:00:00+00:00",
    },
    {
        "id": "5",
        "name": "Raritone David Bowie Hooodie",
        "description": "Celebrate the legacy of a music legend with the Raritone David Bowie Hoodie. "
        "Crafted from premium materials, it showcases Bowie's iconic style with unparalleled comfort.",
        "price": "7999",
        "imageURL": f"{_WIX_MEDIA}/3903b5_9e76791087d8471da8745d15ce88f383~mv2.jpg",
        "backImageURL": f"{_WIX_MEDIA}/3903b5_d1930f8ee63542d0a3d165512779be61~mv2.jpg",
        "category": "Outerwear",
        "stock": 4,
        "tags": ["leather", "jacket", "premium"],
        "sizes": ["S", "M", "L", "XL"],
        "colors": ["Black", "Brown"],
        "createdAt": "2025-02-02T10:00:00+00:00",
    },
]


class ProductSourceError(StorefrontError):
    """Raised when the catalog cannot be loaded."""


class ProductSource:
    """Read-only access to the product listing."""

    def list_products(self) -> List[Product]:
        raise NotImplementedError

    def get_product(self, product_id: str) -> Optional[Product]:
        for product in self.list_products():
            if product.product_id == product_id:
                return product
        return None


def _coerce_products(raw_items: Sequence[Dict[str, Any]]) -> List[Product]:
    products: List[Product] = []
    for raw in raw_items or []:
        if not isinstance(raw, Mapping):
            logger.warning("Skipping non-object product entry", extra={"entry_type": type(raw).__name__})
            continue
        try:
            products.append(from_raw_metadata(dict(raw)))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed product", extra={"product": raw.get("id"), "error": str(exc)})
    return products


class StaticProductSource(ProductSource):
    """Serves a fixed collection, by default the bundled storefront catalog."""

    def __init__(self, raw_items: Sequence[Dict[str, Any]] | None = None) -> None:
        self._products = _coerce_products(BUNDLED_COLLECTION if raw_items is None else raw_items)

    def list_products(self) -> List[Product]:
        return list(self._products)


class HttpProductSource(ProductSource):
    """Fetches ``{base_url}/products`` from a remote catalog API."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: Optional[float] = 10.0) -> None:
        if not base_url:
            raise ValueError("HttpProductSource requires a base_url")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @instrument_tool("list_products")
    def list_products(self) -> List[Product]:
        url = f"{self.base_url}/products"
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ProductSourceError(f"Network error fetching products: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.warning("Non-success status when listing products", extra={"status_code": response.status_code})
            raise ProductSourceError(f"Failed to fetch products: HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProductSourceError("Product API returned invalid JSON") from exc
        if isinstance(payload, dict):
            payload = payload.get("products", [])
        if not isinstance(payload, list):
            raise ProductSourceError("Product API returned an unexpected payload")
        return _coerce_products(payload)


__all__ = [
    "BUNDLED_COLLECTION",
    "HttpProductSource",
    "ProductSource",
    "ProductSourceError",
    "StaticProductSource",
]
