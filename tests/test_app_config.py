"""Configuration, logging and app wiring tests."""

import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from memory.scan_store import JSONScanStore, SQLiteScanStore
from storefront_app.app import StorefrontApp
from storefront_app.config import StorefrontConfig
from storefront_app.logging_config import JsonFormatter, correlation_context, redact_for_log
from tools.notifier import MemoryNotifier
from tools.product_source import HttpProductSource, StaticProductSource


def _config(tmp_path: Path, **overrides) -> StorefrontConfig:
    values = dict(
        scan_store_path=str(tmp_path / "scans"),
        cart_db_path=str(tmp_path / "cart.db"),
        wishlist_dir=str(tmp_path / "wishlists"),
    )
    values.update(overrides)
    return StorefrontConfig(**values)


def test_config_merges_yaml_and_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_file = tmp_path / "staging.yaml"
    config_file.write_text(
        "# staging\n"
        "product_source: http\n"
        "product_api_base_url: \"https://catalog.example.com\"\n"
        "countdown_seconds: 10\n"
        "variant_filters: false\n"
    )
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_file))
    monkeypatch.setenv("SCAN_STORE_BACKEND", "sqlite")
    monkeypatch.delenv("COUNTDOWN_SECONDS", raising=False)

    config = StorefrontConfig.from_env()

    assert config.product_source == "http"
    assert config.product_api_base_url == "https://catalog.example.com"
    assert config.countdown_seconds == 10
    assert config.variant_filters is False
    assert config.scan_store_backend == "sqlite"
    assert config.scan_api_endpoint == "https://api.raritone.ai/v1/scan"


def test_app_builds_backends_from_config(tmp_path: Path) -> None:
    app = StorefrontApp(_config(tmp_path), notifier=MemoryNotifier())
    assert isinstance(app.product_source, StaticProductSource)
    assert isinstance(app.scan_store, JSONScanStore)

    sqlite_app = StorefrontApp(
        _config(
            tmp_path,
            scan_store_backend="sqlite",
            scan_store_path=str(tmp_path / "scans.db"),
            product_source="http",
            product_api_base_url="https://catalog.example.com",
        )
    )
    assert isinstance(sqlite_app.scan_store, SQLiteScanStore)
    assert isinstance(sqlite_app.product_source, HttpProductSource)


def test_app_search_and_cart(tmp_path: Path) -> None:
    notifier = MemoryNotifier()
    app = StorefrontApp(_config(tmp_path), notifier=notifier)

    results = app.search_products("", {"category": "Tops", "stockStatus": "inStock", "sortBy": "priceLow"})
    assert [p.product_id for p in results] == ["3", "1"]

    assert app.add_to_cart("user-1", {"product_id": "1", "quantity": 2, "size": "M"})["status"] == "ok"
    assert app.add_to_cart("user-1", {"product_id": "4"})["status"] == "out_of_stock"
    assert app.add_to_cart("user-1", {"product_id": "nope"})["status"] == "not_found"
    invalid = app.add_to_cart("user-1", {"product_id": "1", "quantity": 0})
    assert invalid["status"] == "invalid"
    assert invalid["details"]


def test_variant_filter_toggle(tmp_path: Path) -> None:
    app = StorefrontApp(_config(tmp_path, variant_filters=False))
    assert len(app.search_products("", {"color": "Brown"})) == 5


def test_connect_scan_api_checks_presence_only(tmp_path: Path) -> None:
    notifier = MemoryNotifier()
    app = StorefrontApp(_config(tmp_path), notifier=notifier)

    assert app.connect_scan_api("https://api.example.com/scan", "") is False
    assert notifier.notices[-1].title == "Connection Failed"
    assert app.connect_scan_api("not even a url", "key") is True
    assert app.config.scan_api_endpoint == "not even a url"
    assert notifier.notices[-1].title == "API Connected"


def test_redaction_and_json_formatter() -> None:
    scrubbed = redact_for_log({"caller_id": "u-1", "note": "mail me at a@b.com", "link": "https://x.y", "n": 3})
    assert scrubbed == {"caller_id": "[redacted]", "note": "mail me at [redacted-email]", "link": "[redacted-url]", "n": 3}

    record = logging.LogRecord("test", logging.INFO, __file__, 1, "capture_started", None, None)
    record.event = "capture_started"
    record.api_key = "secret"
    with correlation_context("corr-1"):
        payload = json.loads(JsonFormatter().format(record))
    assert payload["event"] == "capture_started"
    assert payload["correlation_id"] == "corr-1"
    assert payload["api_key"] == "[redacted]"


def test_storefront_identifiers_are_redacted() -> None:
    scrubbed = redact_for_log(
        {"guest_token": "guest_abc", "platform_signal": "Mozilla/5.0 (iPhone)", "status": "ok", "nested": [{"caller_id": "u"}]}
    )
    assert scrubbed == {
        "guest_token": "[redacted]",
        "platform_signal": "[redacted]",
        "status": "ok",
        "nested": [{"caller_id": "[redacted]"}],
    }
