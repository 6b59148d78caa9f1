"""Scan, cart and wishlist storage tests."""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from memory.scan_store import JSONScanStore, SQLiteScanStore
from memory.wishlist import JSONWishlistStore
from models.cart import CartItem
from models.errors import ValidationFailure
from models.scan import ScanRecord, device_class_for, summarize_scans
from models.taxonomy import validate_caller_id
from tools.cart_store import LocalCart, SQLiteCartStore


@pytest.fixture(params=["json", "sqlite"])
def scan_store(request, tmp_path: Path):
    if request.param == "json":
        return JSONScanStore(tmp_path / "scans")
    return SQLiteScanStore(tmp_path / "scans.db")


def test_scan_store_lists_newest_first_per_caller(scan_store) -> None:
    scan_store.save_scan_record("user-1", ScanRecord("scan_1", 100.0, "desktop"))
    scan_store.save_scan_record("user-1", ScanRecord("scan_2", 200.0, "mobile", try_on_count=3))
    scan_store.save_scan_record("user-2", ScanRecord("scan_3", 300.0, "desktop"))

    records = scan_store.list_scan_records("user-1")
    assert [record.scan_id for record in records] == ["scan_2", "scan_1"]
    assert records[0].try_on_count == 3
    assert records[0].height is None
    assert scan_store.list_scan_records("nobody") == []


def test_scan_summary() -> None:
    records = [
        ScanRecord("scan_1", 100.0, "desktop", try_on_count=1),
        ScanRecord("scan_2", 250.0, "mobile", try_on_count=4),
    ]
    summary = summarize_scans(records)
    assert summary.total_scans == 2
    assert summary.last_scan_time == 250.0
    assert summary.total_try_ons == 5
    assert summarize_scans([]).last_scan_time is None


def test_scan_record_validation_and_device_class() -> None:
    assert device_class_for("Mozilla/5.0 (Linux; Android 14)") == "mobile"
    assert device_class_for("Mozilla/5.0 (iPad; CPU OS 17_0)") == "mobile"
    assert device_class_for("Mozilla/5.0 (Windows NT 10.0)") == "desktop"
    assert device_class_for(None) == "desktop"
    with pytest.raises(ValueError):
        ScanRecord("scan_x", 1.0, "tablet")
    with pytest.raises(ValueError):
        ScanRecord("scan_x", 1.0, "mobile", try_on_count=-1)


def test_sqlite_cart_merges_quantities(tmp_path: Path) -> None:
    store = SQLiteCartStore(tmp_path / "cart.db")
    store.add_item("user-1", CartItem("1", "Tee", Decimal("696.00"), quantity=1, size="M"))
    merged = store.add_item("user-1", CartItem("1", "Tee", Decimal("696.00"), quantity=2, size="M"))
    store.add_item("user-1", CartItem("1", "Tee", Decimal("696.00"), quantity=1, size="L"))

    assert merged.quantity == 3
    items = store.list_items("user-1")
    assert [(item.size, item.quantity) for item in items] == [("M", 3), ("L", 1)]
    assert items[0].price == Decimal("696.00")
    assert store.remove_item("user-1", "1", "L")
    assert not store.remove_item("user-1", "1", "L")
    store.clear("user-1")
    assert store.list_items("user-1") == []


def test_local_cart_merges_quantities() -> None:
    cart = LocalCart()
    cart.add_item("guest", CartItem("2", "Hoodie", Decimal("1043.13")))
    cart.add_item("guest", CartItem("2", "Hoodie", Decimal("1043.13"), quantity=2))
    assert [item.quantity for item in cart.list_items("guest")] == [3]
    with pytest.raises(ValueError):
        CartItem("2", "Hoodie", Decimal("1"), quantity=0)


def test_wishlist_toggle_persists_and_notifies_subscribers(tmp_path: Path) -> None:
    store = JSONWishlistStore("user-1", base_dir=tmp_path)
    seen = []
    token = store.subscribe(seen.append)

    assert store.toggle("5") is True
    assert store.toggle("3") is True
    assert store.toggle("5") is False
    assert JSONWishlistStore("user-1", base_dir=tmp_path).get() == ["3"]
    assert seen == [["5"], ["5", "3"], ["3"]]

    store.unsubscribe(token)
    store.toggle("1")
    assert len(seen) == 3


@pytest.mark.parametrize("caller_id", ["../escaped", "a/b", "", ".hidden", "..", "/abs"])
def test_json_stores_reject_caller_ids_that_are_not_a_file_name(tmp_path: Path, caller_id: str) -> None:
    base = tmp_path / "data"
    scans = JSONScanStore(base / "scans")

    with pytest.raises(ValidationFailure):
        scans.save_scan_record(caller_id, ScanRecord("scan_1", 1.0, "desktop"))
    with pytest.raises(ValidationFailure):
        scans.list_scan_records(caller_id)
    with pytest.raises(ValidationFailure):
        JSONWishlistStore(caller_id, base_dir=base / "wishlists")

    assert list(tmp_path.rglob("*.json")) == []


def test_json_stores_accept_ordinary_caller_ids(tmp_path: Path) -> None:
    store = JSONScanStore(tmp_path)
    store.save_scan_record("user.name@example.com", ScanRecord("scan_1", 1.0, "desktop"))
    assert (tmp_path / "user.name@example.com.json").exists()
    assert validate_caller_id("user_42") == "user_42"
