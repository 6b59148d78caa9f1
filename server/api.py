"""FastAPI server exposing the catalog, cart, wishlist and capture sessions."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from capture.session import CaptureSession
from logic.validation import CaptureStartRequest, CartItemRequest, ScanApiConnectRequest, WishlistToggleRequest
from models.errors import (
    InvalidTransition,
    PersistenceFailure,
    ResourceUnavailable,
    SessionActiveError,
    StorefrontError,
    Unauthenticated,
    ValidationFailure,
)
from models.taxonomy import validate_caller_id
from storefront_app.app import StorefrontApp
from storefront_app.logging_config import configure_logging, get_logger, log_event
from tools.product_source import ProductSourceError

LOGGER = get_logger(__name__)

_STATUS_BY_ERROR = (
    (Unauthenticated, 401),
    (ValidationFailure, 400),
    (SessionActiveError, 409),
    (InvalidTransition, 409),
    (ResourceUnavailable, 503),
    (PersistenceFailure, 502),
    (ProductSourceError, 502),
)


def _status_for(exc: StorefrontError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def get_storefront(request: Request) -> StorefrontApp:
    storefront = request.app.state.storefront
    if storefront is None:
        storefront = StorefrontApp()
        request.app.state.storefront = storefront
    return storefront


def optional_caller(caller_id: Optional[str] = Header(None, alias="X-Caller-Id")) -> Optional[str]:
    if not caller_id:
        return None
    return validate_caller_id(caller_id)


def require_caller(caller_id: Optional[str] = Depends(optional_caller)) -> str:
    if not caller_id:
        raise Unauthenticated()
    return caller_id


def _log_capture_outcome(task: "asyncio.Task[CaptureSession]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log_event(LOGGER, logging.WARNING, "capture_task_failed", error=str(exc))


def create_app(storefront: StorefrontApp | None = None) -> FastAPI:
    """Build the FastAPI app; the storefront is created on first use when omitted."""

    app = FastAPI(title="Storefront", version="0.1.0")
    app.state.storefront = storefront
    capture_tasks: Dict[str, asyncio.Task] = {}

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(_: Request, exc: StorefrontError) -> JSONResponse:
        body = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, PersistenceFailure):
            body["retryable"] = exc.retryable
        return JSONResponse(status_code=_status_for(exc), content=body)

    @app.get("/healthz")
    async def healthcheck(storefront: StorefrontApp = Depends(get_storefront)) -> dict:
        return {
            "status": "ok",
            "service": "storefront",
            "environment": storefront.config.environment or "local",
        }

    @app.get("/products")
    async def list_products(
        q: str = "",
        category: Optional[str] = None,
        size: Optional[str] = None,
        color: Optional[str] = None,
        stock_status: Optional[str] = Query(None, alias="stockStatus"),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        storefront: StorefrontApp = Depends(get_storefront),
    ) -> dict:
        params = {
            "category": category,
            "size": size,
            "color": color,
            "stockStatus": stock_status,
            "sortBy": sort_by,
        }
        products = storefront.search_products(q, params)
        return {"count": len(products), "products": [product.to_dict() for product in products]}

    @app.get("/products/latest")
    async def latest_products(limit: int = 4, storefront: StorefrontApp = Depends(get_storefront)) -> dict:
        return {"products": [product.to_dict() for product in storefront.latest_arrivals(limit=limit)]}

    @app.post("/cart/items")
    async def add_cart_item(
        request: CartItemRequest,
        caller_id: Optional[str] = Depends(optional_caller),
        guest_token: Optional[str] = Header(None, alias="X-Guest-Token"),
        storefront: StorefrontApp = Depends(get_storefront),
    ) -> dict:
        response = storefront.add_to_cart(caller_id, request.model_dump(), guest_token=guest_token)
        if response.get("status") == "not_found":
            raise HTTPException(status_code=404, detail=response["message"])
        if response.get("status") != "ok":
            raise HTTPException(status_code=409, detail=response.get("message", "could not add to cart"))
        return response

    @app.get("/wishlist")
    async def get_wishlist(
        caller_id: str = Depends(require_caller), storefront: StorefrontApp = Depends(get_storefront)
    ) -> dict:
        return {"product_ids": storefront.wishlist.get(caller_id)}

    @app.post("/wishlist")
    async def toggle_wishlist(
        request: WishlistToggleRequest,
        caller_id: str = Depends(require_caller),
        storefront: StorefrontApp = Depends(get_storefront),
    ) -> dict:
        added = storefront.wishlist.toggle(caller_id, request.product_id)
        return {"added": added, "product_ids": storefront.wishlist.get(caller_id)}

    @app.post("/scans/session", status_code=202)
    async def start_capture(
        request: CaptureStartRequest,
        caller_id: Optional[str] = Depends(optional_caller),
        user_agent: Optional[str] = Header(None),
        storefront: StorefrontApp = Depends(get_storefront),
    ) -> dict:
        machine = storefront.captures.machine_for(caller_id)
        session = machine.request_device(caller_id, request.platform_signal or user_agent or "")
        task = asyncio.create_task(machine.drive())
        task.add_done_callback(_log_capture_outcome)
        capture_tasks[caller_id] = task
        return session.to_dict()

    @app.get("/scans/session")
    async def capture_status(
        caller_id: str = Depends(require_caller), storefront: StorefrontApp = Depends(get_storefront)
    ) -> dict:
        machine = storefront.captures.machine_for(caller_id)
        session = machine.session or machine.last_session
        return {
            "status": machine.status.value,
            "remaining_seconds": machine.remaining_seconds,
            "session": session.to_dict() if session else None,
        }

    @app.post("/scans/session/cancel")
    async def cancel_capture(
        caller_id: str = Depends(require_caller), storefront: StorefrontApp = Depends(get_storefront)
    ) -> dict:
        session = storefront.captures.machine_for(caller_id).cancel()
        return session.to_dict()

    @app.get("/scans")
    async def list_scans(
        caller_id: str = Depends(require_caller), storefront: StorefrontApp = Depends(get_storefront)
    ) -> dict:
        records, summary = storefront.scan_history(caller_id)
        return {
            "scans": [record.to_dict() for record in records],
            "summary": {
                "total_scans": summary.total_scans,
                "last_scan_time": summary.last_scan_time,
                "total_try_ons": summary.total_try_ons,
            },
        }

    @app.post("/scans/api")
    async def connect_scan_api(
        request: ScanApiConnectRequest, storefront: StorefrontApp = Depends(get_storefront)
    ) -> dict:
        connected = storefront.connect_scan_api(request.endpoint, request.api_key)
        if not connected:
            raise HTTPException(status_code=400, detail="Please provide both API endpoint and API key.")
        return {"connected": True}

    return app


configure_logging()
app = create_app()


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=8080, reload=False)
