"""Cart stores.

Two backends behind one contract:
- VolatileCartStore: whole cart as JSON in Upstash Redis, TTL on every save.
  Source of truth for anonymous (session) carts.
- DurableCartStore: one Supabase cart_items row per line item, no TTL.
  Source of truth for account carts.

Loading an absent cart returns an empty, unpersisted Cart. Every load folds
duplicate configurations together and recomputes the summary, so a stored
summary never outlives the items it was computed from.
"""
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Protocol

from shopcart.config import DEFAULT_PRICING, CartLimits, PricingPolicy
from shopcart.db import TTL, RedisKeys, get_redis, get_supabase
from shopcart.errors import CartError, CartStorageError, StoreTimeoutError
from shopcart.logging import get_logger, sanitize_id_for_logging
from shopcart.services.money import to_decimal
from shopcart.services.repositories import CartItemRepository

from .calculator import recompute
from .matcher import consolidate
from .models import Cart, LineItem

logger = get_logger(__name__)


class CartStore(Protocol):
    async def load(self, identifier: str) -> Cart: ...

    async def save(self, identifier: str, cart: Cart, ttl: Optional[int] = None) -> Cart: ...

    async def delete(self, identifier: str) -> None: ...


@asynccontextmanager
async def store_errors(operation: str, identifier: str) -> AsyncIterator[None]:
    """Translate backend failures into CartStorageError / StoreTimeoutError."""
    try:
        yield
    except CartError:
        raise
    except TimeoutError as e:
        logger.error("Cart store %s timed out for %s", operation, sanitize_id_for_logging(identifier))
        raise StoreTimeoutError() from e
    except Exception as e:
        logger.error(
            "Cart store %s failed for %s: %s",
            operation,
            sanitize_id_for_logging(identifier),
            type(e).__name__,
            exc_info=True,
        )
        raise CartStorageError() from e


class _BaseStore:
    def __init__(self, policy: PricingPolicy, max_quantity: int) -> None:
        self.policy = policy
        self.max_quantity = max_quantity

    def hydrate(self, cart: Cart, items: Iterable[LineItem]) -> Cart:
        return recompute(cart, consolidate(items, self.max_quantity), self.policy)

    def empty_cart(self, identifier: str, account_id: Optional[str] = None) -> Cart:
        return self.hydrate(Cart(identifier=identifier, account_id=account_id), [])


class VolatileCartStore(_BaseStore):
    """Session carts in Redis."""

    def __init__(
        self,
        redis=None,
        ttl: int = TTL.GUEST_CART,
        policy: PricingPolicy = DEFAULT_PRICING,
        max_quantity: int = CartLimits.MAX_QUANTITY_PER_ITEM,
    ) -> None:
        super().__init__(policy, max_quantity)
        self._redis = redis  # Lazy initialization
        self.ttl = ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise CartStorageError(f"Redis not available: {e}") from e
        return self._redis

    async def load(self, identifier: str) -> Cart:
        key = RedisKeys.cart_key(identifier)
        async with store_errors("load", identifier):
            data = await self.redis.get(key)

        if not data:
            return self.empty_cart(identifier)

        try:
            payload = json.loads(data) if isinstance(data, (str, bytes)) else data
            cart = Cart.from_dict(payload)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            # Corrupted data - drop it and start over
            logger.warning(
                "Corrupted cart data for %s: %s", sanitize_id_for_logging(identifier), type(e).__name__
            )
            async with store_errors("delete", identifier):
                await self.redis.delete(key)
            return self.empty_cart(identifier)

        return self.hydrate(cart, cart.items)

    async def save(self, identifier: str, cart: Cart, ttl: Optional[int] = None) -> Cart:
        cart = recompute(cart, cart.items, self.policy)
        async with store_errors("save", identifier):
            await self.redis.set(
                RedisKeys.cart_key(identifier),
                json.dumps(cart.to_dict()),
                ex=ttl or self.ttl,
            )
        return cart

    async def delete(self, identifier: str) -> None:
        async with store_errors("delete", identifier):
            await self.redis.delete(RedisKeys.cart_key(identifier))


class DurableCartStore(_BaseStore):
    """Account carts as cart_items rows in Supabase."""

    def __init__(
        self,
        repo: CartItemRepository | None = None,
        policy: PricingPolicy = DEFAULT_PRICING,
        max_quantity: int = CartLimits.MAX_QUANTITY_PER_ITEM,
    ) -> None:
        super().__init__(policy, max_quantity)
        self._repo = repo  # Lazy initialization

    async def get_repo(self) -> CartItemRepository:
        if self._repo is None:
            async with store_errors("connect", "supabase"):
                self._repo = CartItemRepository(await get_supabase())
        return self._repo

    async def _load_rows(self, identifier: str) -> tuple[Cart, int]:
        repo = await self.get_repo()
        async with store_errors("load", identifier):
            rows = await repo.list_items_for_account(identifier)
            items = [LineItem.from_dict(row) for row in rows]
        return self.hydrate(Cart(identifier=identifier, account_id=identifier), items), len(rows)

    async def load(self, identifier: str) -> Cart:
        cart, _ = await self._load_rows(identifier)
        return cart

    async def load_compacted(self, identifier: str) -> Cart:
        """Load, and when duplicate rows were folded together, write the folded cart back."""
        cart, row_count = await self._load_rows(identifier)
        if row_count == len(cart.items):
            return cart
        logger.info(
            "Compacting %d duplicate cart rows for %s",
            row_count - len(cart.items),
            sanitize_id_for_logging(identifier),
        )
        return await self.save(identifier, cart)

    async def save(self, identifier: str, cart: Cart, ttl: Optional[int] = None) -> Cart:
        """Sync stored rows to the cart's items, then reload.

        Known ids are updated when quantity or price changed, unknown ids are
        inserted, stored ids no longer in the cart are deleted. `ttl` is
        accepted for contract parity and ignored.
        """
        repo = await self.get_repo()
        async with store_errors("save", identifier):
            rows = await repo.list_items_for_account(identifier)
            stored = {str(row["id"]): row for row in rows}
            kept: set[str] = set()

            for item in cart.items:
                row = stored.get(item.id)
                if row is None:
                    await repo.create_item(identifier, item.to_dict())
                    continue
                kept.add(item.id)
                if int(row["quantity"]) != item.quantity or to_decimal(row["unit_price"]) != item.unit_price:
                    await repo.update_item(item.id, {
                        "quantity": item.quantity,
                        "unit_price": str(item.unit_price),
                        "total_price": str(item.total_price),
                    })

            for item_id in stored.keys() - kept:
                await repo.delete_item(item_id)

        return await self.load(identifier)

    async def delete(self, identifier: str) -> None:
        repo = await self.get_repo()
        async with store_errors("delete", identifier):
            await repo.delete_all_for_account(identifier)
