"""Pytest configuration and fixtures"""
import itertools
import os
from decimal import Decimal
from typing import Optional

import pytest

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from shopcart.cart.merge import MergeEngine
from shopcart.cart.service import CartService
from shopcart.cart.storage import DurableCartStore, VolatileCartStore
from shopcart.config import PricingPolicy
from shopcart.services.models import CatalogProduct, CatalogVariant


class FakeRedis:
    """In-memory stand-in for the async Upstash client (get / set ex= / delete)."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def get(self, key):
        self._maybe_fail()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._maybe_fail()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._maybe_fail()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


class InMemoryCartItemRepository:
    """Mirrors CartItemRepository over a dict of rows."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self._ids = itertools.count(1)
        self.calls: list[str] = []
        # Fail the Nth create_item / update_item call (1-based)
        self.fail_create_on: Optional[int] = None
        self.fail_update_on: Optional[int] = None
        self._creates = 0
        self._updates = 0

    async def list_items_for_account(self, account_id):
        self.calls.append("list")
        rows = [dict(row) for row in self.rows.values() if row["account_id"] == account_id]
        return sorted(rows, key=lambda row: row["_seq"])

    async def create_item(self, account_id, fields):
        self.calls.append("create")
        self._creates += 1
        if self.fail_create_on == self._creates:
            raise ConnectionError("insert failed")
        seq = next(self._ids)
        row = {**fields, "id": f"row-{seq}", "account_id": account_id, "_seq": seq}
        self.rows[row["id"]] = row
        return dict(row)

    async def update_item(self, item_id, fields):
        self.calls.append("update")
        self._updates += 1
        if self.fail_update_on == self._updates:
            raise ConnectionError("update failed")
        if item_id not in self.rows:
            return None
        self.rows[item_id].update(fields)
        return dict(self.rows[item_id])

    async def delete_item(self, item_id):
        self.calls.append("delete")
        self.rows.pop(item_id, None)

    async def delete_all_for_account(self, account_id):
        self.calls.append("delete_all")
        for item_id in [i for i, row in self.rows.items() if row["account_id"] == account_id]:
            del self.rows[item_id]

    def quantities(self, account_id) -> dict[str, int]:
        return {
            row["product_id"]: row["quantity"]
            for row in self.rows.values()
            if row["account_id"] == account_id
        }


class FakeCatalog:
    """Catalog client over dicts; counts lookups."""

    def __init__(self):
        self.products: dict[str, CatalogProduct] = {}
        self.variants: dict[str, CatalogVariant] = {}
        self.product_lookups = 0
        self.fail_with: Optional[Exception] = None

    def add_product(self, product_id, price="25.00", stock=100, active=True, discount=None, name=None):
        product = CatalogProduct(
            id=product_id,
            name=name or f"Product {product_id}",
            slug=product_id,
            price=price,
            stock_quantity=stock,
            is_active=active,
            discount_percentage=discount,
        )
        self.products[product_id] = product
        return product

    def add_variant(self, variant_id, product_id, price=None, stock=10, active=True, color=None, size=None):
        variant = CatalogVariant(
            id=variant_id,
            product_id=product_id,
            price=price,
            stock_quantity=stock,
            is_active=active,
            color=color,
            size=size,
        )
        self.variants[variant_id] = variant
        return variant

    async def get_product(self, product_id):
        self.product_lookups += 1
        if self.fail_with is not None:
            raise self.fail_with
        return self.products.get(product_id)

    async def get_variant(self, variant_id, product_id):
        if self.fail_with is not None:
            raise self.fail_with
        variant = self.variants.get(variant_id)
        if variant is None or variant.product_id != product_id:
            return None
        return variant


@pytest.fixture
def policy():
    """Default pricing: 8% tax, free shipping from 50.00, else 5.99"""
    return PricingPolicy(
        tax_rate=Decimal("0.08"),
        free_shipping_threshold=Decimal("50"),
        flat_shipping_cost=Decimal("5.99"),
        currency="USD",
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def item_repo():
    return InMemoryCartItemRepository()


@pytest.fixture
def catalog():
    catalog = FakeCatalog()
    catalog.add_product("prod-a", price="25.00", stock=100)
    catalog.add_product("prod-b", price="10.00", stock=100)
    return catalog


@pytest.fixture
def volatile_store(fake_redis, policy):
    return VolatileCartStore(redis=fake_redis, ttl=604800, policy=policy, max_quantity=99)


@pytest.fixture
def durable_store(item_repo, policy):
    return DurableCartStore(repo=item_repo, policy=policy, max_quantity=99)


@pytest.fixture
def merge_engine(volatile_store, durable_store):
    return MergeEngine(volatile_store, durable_store, max_quantity=99, max_items=50)


@pytest.fixture
def cart_service(catalog, volatile_store, durable_store, merge_engine, policy):
    return CartService(
        catalog=catalog,
        volatile=volatile_store,
        durable=durable_store,
        merge_engine=merge_engine,
        policy=policy,
        max_items=50,
        max_quantity=99,
    )


@pytest.fixture
def make_item():
    """Factory for line items without going through the catalog."""
    from shopcart.cart.models import LineItem, ProductSnapshot

    counter = itertools.count(1)

    def _make(
        product_id="prod-a",
        quantity=1,
        unit_price="25.00",
        variant_id=None,
        color=None,
        size=None,
        discount=None,
        product_price=None,
        item_id=None,
    ):
        return LineItem(
            id=item_id or f"item-{next(counter)}",
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            selected_color=color,
            selected_size=size,
            unit_price=Decimal(unit_price),
            product=ProductSnapshot(
                id=product_id,
                name=f"Product {product_id}",
                price=Decimal(product_price or unit_price),
                stock_quantity=100,
                discount_percentage=discount,
            ),
        )

    return _make
