"""
Centralized configuration helpers for the bundle builder.
"""
from __future__ import annotations

import os
from typing import Any, List, Optional

DEFAULT_SHOP_ID: str = os.getenv("DEFAULT_SHOP_ID") or "demo-shop"

# Storefront the prepare and cart endpoints live on (empty = relative paths)
STOREFRONT_BASE_URL: str = (os.getenv("STOREFRONT_BASE_URL") or "").rstrip("/")

PREPARE_PATH_TEMPLATE: str = os.getenv("PREPARE_PATH_TEMPLATE") or "/apps/bundles/{bundle_id}"
CART_ADD_PATH: str = os.getenv("CART_ADD_PATH") or "/cart/add.js"
CART_REDIRECT_PATH: str = "/cart"
CHECKOUT_REDIRECT_PATH: str = "/checkout"

CART_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("CART_HTTP_TIMEOUT_SECONDS", "10"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def sanitize_shop_id(value: Optional[Any]) -> Optional[str]:
    """Normalize raw IDs (strip whitespace, lower-case domains)."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    text = str(value).strip()
    if not text:
        return None
    return text.lower()


def resolve_shop_id(*candidates: Optional[Any]) -> str:
    """
    Pick the first usable shop identifier from candidates, otherwise fall back to DEFAULT_SHOP_ID.
    """
    for candidate in candidates:
        normalized = sanitize_shop_id(candidate)
        if normalized:
            return normalized
    return DEFAULT_SHOP_ID


def cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5000")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["http://localhost:3000"]
