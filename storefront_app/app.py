"""Storefront bootstrap: wires collaborators, the catalog engine and capture sessions."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from capture.session import CaptureSessionManager
from logic.catalog_query import FilterCriteria, latest_arrivals, query
from logic.shopping import CartService, WishlistService, new_guest_token
from logic.validation import CartItemRequest, validation_failure
from memory.scan_store import JSONScanStore, ScanStore, SQLiteScanStore
from memory.wishlist import JSONWishlistStore
from models.product import Product
from models.scan import ScanSummary, summarize_scans
from storefront_app.config import StorefrontConfig
from storefront_app.logging_config import configure_logging, correlation_context, get_logger, log_event
from tools.camera import DeviceProvider, build_device_provider
from tools.cart_store import SQLiteCartStore
from tools.notifier import ERROR, SUCCESS, LoggingNotifier, Notifier
from tools.product_source import HttpProductSource, ProductSource, StaticProductSource

LOGGER = get_logger(__name__)


class StorefrontApp:
    """Wires together the stores, services and capture sessions."""

    def __init__(
        self,
        config: StorefrontConfig | None = None,
        *,
        product_source: ProductSource | None = None,
        device_provider: DeviceProvider | None = None,
        scan_store: ScanStore | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config or StorefrontConfig.from_env()
        configure_logging()

        self.notifier = notifier or LoggingNotifier()
        self.product_source = product_source or self._build_product_source()
        self.device_provider = device_provider or build_device_provider(self.config.camera_backend)
        self.scan_store = scan_store or self._build_scan_store()
        self.cart_store = SQLiteCartStore(self.config.cart_db_path or "data/cart.db")
        self.cart = CartService(self.cart_store, self.notifier)
        wishlist_dir = self.config.wishlist_dir or "data/wishlists"
        self.wishlist = WishlistService(
            lambda caller_id: JSONWishlistStore(caller_id, base_dir=wishlist_dir), self.notifier
        )
        self.captures = CaptureSessionManager(
            device_provider=self.device_provider,
            scan_store=self.scan_store,
            notifier=self.notifier,
            countdown_seconds=self.config.countdown_seconds,
        )
        self.scan_api_connected = False

    def _build_product_source(self) -> ProductSource:
        if self.config.product_source.lower() == "http" and self.config.product_api_base_url:
            return HttpProductSource(self.config.product_api_base_url, api_key=self.config.product_api_key)
        return StaticProductSource()

    def _build_scan_store(self) -> ScanStore:
        if self.config.scan_store_backend.lower() == "sqlite":
            return SQLiteScanStore(self.config.scan_store_path or "data/scans.db")
        return JSONScanStore(self.config.scan_store_path or "data/scans")

    def search_products(self, text: str = "", params: Mapping[str, Any] | None = None) -> List[Product]:
        """Run the catalog query for free text plus loose filter parameters."""

        criteria = FilterCriteria.from_params(params)
        products = self.product_source.list_products()
        results = query(products, text, criteria, variant_filters=self.config.variant_filters)
        log_event(
            LOGGER,
            logging.DEBUG,
            "catalog_query",
            text_length=len(text or ""),
            category=criteria.category,
            stock_status=criteria.stock_status,
            sort_by=criteria.sort_by,
            result_count=len(results),
        )
        return results

    def latest_arrivals(self, limit: int = 4) -> List[Product]:
        return latest_arrivals(self.product_source.list_products(), limit=limit)

    def add_to_cart(
        self, caller_id: str | None, payload: Dict[str, Any], guest_token: str | None = None
    ) -> Dict[str, Any]:
        """Validate a cart payload and add the referenced product.

        Guests without a ``guest_token`` get a new one in the response so their
        next request lands in the same cart.
        """

        with correlation_context() as correlation_id:
            try:
                request = CartItemRequest.model_validate(payload)
            except ValidationError as exc:
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "cart_request_invalid",
                    details=str(exc),
                    correlation_id=correlation_id,
                )
                return validation_failure("Invalid cart payload", exc)

            product = self.product_source.get_product(request.product_id)
            if product is None:
                return {"status": "not_found", "message": f"Unknown product {request.product_id}"}
            if product.stock == 0:
                return {"status": "out_of_stock", "message": "This item is currently out of stock."}

            response: Dict[str, Any] = {"product_id": product.product_id}
            if not caller_id:
                guest_token = guest_token or new_guest_token()
                response["guest_token"] = guest_token
            added = self.cart.add_to_cart(
                caller_id, product, quantity=request.quantity, size=request.size, guest_token=guest_token
            )
            response["status"] = "ok" if added else "error"
            return response

    def scan_history(self, caller_id: str) -> tuple[list, ScanSummary]:
        records = self.scan_store.list_scan_records(caller_id)
        return records, summarize_scans(records)

    def connect_scan_api(self, endpoint: Optional[str], api_key: Optional[str]) -> bool:
        """Record the scan API endpoint and key; only their presence is checked."""

        if endpoint and api_key:
            self.config.scan_api_endpoint = endpoint
            self.config.scan_api_key = api_key
            self.scan_api_connected = True
            self.notifier.notify(SUCCESS, "API Connected", "Successfully connected to backend API.")
        else:
            self.scan_api_connected = False
            self.notifier.notify(ERROR, "Connection Failed", "Please provide both API endpoint and API key.")
        return self.scan_api_connected


__all__ = ["StorefrontApp"]
