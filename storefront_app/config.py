"""Configuration helpers for the storefront app."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_SCAN_API_ENDPOINT = "https://api.raritone.ai/v1/scan"
DEFAULT_COUNTDOWN_SECONDS = 30


def _as_bool(value: object, default: bool) -> bool:
    if value is None or value == "":
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: object, default: int) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return default


@dataclass
class StorefrontConfig:
    """Configuration values for the storefront app.

    The HTTP endpoints and keys are opaque values passed through to the
    collaborators that need them; only their presence is ever checked.
    """

    product_source: str = "static"
    product_api_base_url: Optional[str] = None
    product_api_key: Optional[str] = None
    scan_api_endpoint: str = DEFAULT_SCAN_API_ENDPOINT
    scan_api_key: Optional[str] = None
    scan_store_backend: str = "json"
    scan_store_path: Optional[str] = None
    cart_db_path: Optional[str] = None
    wishlist_dir: Optional[str] = None
    camera_backend: str = "simulated"
    countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS
    variant_filters: bool = True
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "StorefrontConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that secrets can be
        injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("STOREFRONT_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        return cls(
            product_source=str(get_value("product_source", "static") or "static"),
            product_api_base_url=get_value("product_api_base_url"),
            product_api_key=get_value("product_api_key"),
            scan_api_endpoint=str(get_value("scan_api_endpoint", DEFAULT_SCAN_API_ENDPOINT) or ""),
            scan_api_key=get_value("scan_api_key"),
            scan_store_backend=str(get_value("scan_store_backend", "json") or "json"),
            scan_store_path=get_value("scan_store_path"),
            cart_db_path=get_value("cart_db_path"),
            wishlist_dir=get_value("wishlist_dir"),
            camera_backend=str(get_value("camera_backend", "simulated") or "simulated"),
            countdown_seconds=_as_int(get_value("countdown_seconds"), DEFAULT_COUNTDOWN_SECONDS),
            variant_filters=_as_bool(get_value("variant_filters"), True),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal flat ``key: value`` config file."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
