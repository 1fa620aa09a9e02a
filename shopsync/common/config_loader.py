"""
Configuration Loader

Loads YAML configuration files and builds the typed sync settings.
Environment variables (TIKTOK_SHOP_*) override values from the YAML file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import (
    DEFAULT_AUTH_BASE_URL,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_LEDGER_CAP,
    DEFAULT_OPEN_API_BASE_URL,
)

SETTINGS_FILE = "tiktok_shop.yaml"

# env var -> settings field
ENV_OVERRIDES = {
    "TIKTOK_SHOP_OPEN_API_BASE_URL": "open_api_base_url",
    "TIKTOK_SHOP_AUTH_BASE_URL": "auth_base_url",
    "TIKTOK_SHOP_REQUEST_TIMEOUT": "request_timeout",
    "TIKTOK_SHOP_CACHE_TTL": "cache_ttl_seconds",
    "TIKTOK_SHOP_LEDGER_CAP": "ledger_cap",
    "TIKTOK_SHOP_USE_FIXTURE": "use_fixture",
}


@dataclass
class SyncSettings:
    """Runtime settings for the TikTok Shop sync engine."""
    open_api_base_url: str = DEFAULT_OPEN_API_BASE_URL
    auth_base_url: str = DEFAULT_AUTH_BASE_URL
    request_timeout: int = 30
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    ledger_cap: int = DEFAULT_LEDGER_CAP
    default_page_size: int = 20
    default_max_pages: int = 10
    default_max_products: int = 1000
    use_fixture: bool = False


def _get_config_dir() -> Path:
    """Get the config directory path."""
    # Try relative to this file first
    module_dir = Path(__file__).parent.parent.parent
    config_dir = module_dir / 'config'

    if config_dir.exists():
        return config_dir

    # Try current working directory
    cwd_config = Path.cwd() / 'config'
    if cwd_config.exists():
        return cwd_config

    raise FileNotFoundError(
        f"Config directory not found. Tried: {config_dir}, {cwd_config}"
    )


def load_config(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of the config file (e.g., 'tiktok_shop.yaml')

    Returns:
        Parsed YAML content as dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = _get_config_dir() / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def build_settings(
    values: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> SyncSettings:
    """
    Build SyncSettings from a config mapping plus environment overrides.

    Unknown keys are ignored. Integer and boolean fields are coerced
    from their string form so env values work unchanged.

    Args:
        values: Parsed YAML content (the 'tiktok_shop' section)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        SyncSettings instance
    """
    if environ is None:
        environ = os.environ

    merged: Dict[str, Any] = {}
    known = SyncSettings.__dataclass_fields__
    for key, value in (values or {}).items():
        if key in known and value is not None:
            merged[key] = value

    for env_name, field_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            merged[field_name] = environ[env_name]

    for field_name in ("request_timeout", "cache_ttl_seconds", "ledger_cap",
                       "default_page_size", "default_max_pages", "default_max_products"):
        if field_name in merged:
            merged[field_name] = int(merged[field_name])
    if "use_fixture" in merged:
        merged["use_fixture"] = _parse_bool(merged["use_fixture"])
    for field_name in ("open_api_base_url", "auth_base_url"):
        if field_name in merged:
            merged[field_name] = str(merged[field_name]).rstrip("/")

    return SyncSettings(**merged)


def load_sync_settings(environ: Optional[Mapping[str, str]] = None) -> SyncSettings:
    """
    Load sync settings from config/tiktok_shop.yaml and the environment.

    Returns:
        SyncSettings with env overrides applied
    """
    config = load_config(SETTINGS_FILE)
    return build_settings(config.get('tiktok_shop', {}), environ)
