"""Pydantic schemas for validating requests entering the storefront."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


class CartItemRequest(BaseModel):
    """Payload for adding a product to the cart."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1, le=99)
    size: Optional[str] = None

    @field_validator("size")
    @classmethod
    def _blank_size_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class WishlistToggleRequest(BaseModel):
    product_id: str = Field(min_length=1)


class CaptureStartRequest(BaseModel):
    """Starting a capture; the platform signal is usually the user agent."""

    platform_signal: str = ""


class ScanApiConnectRequest(BaseModel):
    endpoint: str = ""
    api_key: str = ""


class ValidationResult(BaseModel):
    """Wrapper returned to callers when validation fails."""

    status: str = "invalid"
    message: str
    details: List[Dict[str, Any]]


def validation_failure(message: str, exc: ValidationError) -> Dict[str, Any]:
    """Translate Pydantic errors into a consistent payload."""

    return ValidationResult(message=message, details=exc.errors(include_url=False)).model_dump()


__all__ = [
    "CaptureStartRequest",
    "CartItemRequest",
    "ScanApiConnectRequest",
    "ValidationResult",
    "WishlistToggleRequest",
    "validation_failure",
]
