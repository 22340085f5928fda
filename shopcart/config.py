"""
Cart configuration.

Everything is read from the environment once at import time. Backend
credentials are only checked when a client is first requested (see db.py).
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return Decimal(default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


# Backend credentials (Upstash uses REST_URL and REST_TOKEN)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")

# Redis TTLs (seconds)
CART_SESSION_TTL = _env_int("CART_SESSION_TTL", 604800)  # 7 days
CART_MERGE_JOURNAL_TTL = _env_int("CART_MERGE_JOURNAL_TTL", 86400)  # 24 hours


class CartLimits:
    """Per-cart limits."""

    MAX_ITEMS = _env_int("CART_MAX_ITEMS", 50)
    MAX_QUANTITY_PER_ITEM = _env_int("CART_MAX_QUANTITY_PER_ITEM", 99)
    MIN_QUANTITY = 1


@dataclass(frozen=True)
class PricingPolicy:
    """Flat tax and shipping policy applied by the calculator."""

    tax_rate: Decimal = Decimal("0.08")
    free_shipping_threshold: Decimal = Decimal("50")
    flat_shipping_cost: Decimal = Decimal("5.99")
    currency: str = "USD"

    @classmethod
    def from_env(cls) -> "PricingPolicy":
        return cls(
            tax_rate=_env_decimal("CART_TAX_RATE", "0.08"),
            free_shipping_threshold=_env_decimal("CART_FREE_SHIPPING_THRESHOLD", "50"),
            flat_shipping_cost=_env_decimal("CART_FLAT_SHIPPING_COST", "5.99"),
            currency=os.environ.get("CART_CURRENCY", "USD").upper(),
        )


DEFAULT_PRICING = PricingPolicy.from_env()
