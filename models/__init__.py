"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.cart import CartItem
from models.product import Product, from_raw_metadata
from models.scan import ScanRecord, ScanSummary, device_class_for, summarize_scans

__all__ = [
    "CartItem",
    "Product",
    "ScanRecord",
    "ScanSummary",
    "device_class_for",
    "from_raw_metadata",
    "summarize_scans",
]
