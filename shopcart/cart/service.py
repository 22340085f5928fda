"""Cart service - one contract over session and account carts.

Anonymous identities are served from the volatile (Redis) store, account
identities from the durable (Supabase) store. Every mutation runs as a
read-modify-write under a per-identifier lock and persists a freshly
recomputed snapshot.
"""
import asyncio
from typing import Optional, Union

from pydantic import ValidationError

from shopcart.config import DEFAULT_PRICING, CartLimits, PricingPolicy
from shopcart.errors import (
    ERROR_AUTH_REQUIRED_CHECKOUT,
    ERROR_CART_EMPTY,
    ERROR_INVALID_QUANTITY,
    ERROR_VALIDATION_FAILED,
    AuthenticationRequiredError,
    CartError,
    CartLimitExceededError,
    CatalogUnavailableError,
    InvalidInputError,
    ItemNotFoundError,
    ProductInactiveError,
    ProductNotFoundError,
    QuantityLimitExceededError,
    StockInsufficientError,
    VariantInactiveError,
    VariantNotFoundError,
)
from shopcart.logging import get_logger, sanitize_id_for_logging
from shopcart.services.catalog import CatalogClient, SupabaseCatalog
from shopcart.services.models import CatalogProduct, CatalogVariant

from .calculator import CartCalculation, calculate_breakdown, recompute
from .locks import KeyedLock
from .matcher import find_matching
from .merge import MergeEngine
from .models import AddItemRequest, Cart, CartIdentity, CheckoutValidation, LineItem
from .storage import CartStore, DurableCartStore, VolatileCartStore

logger = get_logger(__name__)


class CartService:
    """
    Cart orchestrator.

    Usage:
        service = get_cart_service()
        identity = CartIdentity.anonymous(session_id)
        cart = await service.add_item(identity, AddItemRequest(product_id="p1", quantity=2))
        cart = await service.merge_anonymous_into_account(session_id, CartIdentity.account(account_id))
    """

    def __init__(
        self,
        catalog: CatalogClient | None = None,
        volatile: VolatileCartStore | None = None,
        durable: DurableCartStore | None = None,
        merge_engine: MergeEngine | None = None,
        locks: KeyedLock | None = None,
        policy: PricingPolicy = DEFAULT_PRICING,
        max_items: int = CartLimits.MAX_ITEMS,
        max_quantity: int = CartLimits.MAX_QUANTITY_PER_ITEM,
    ) -> None:
        self.catalog = catalog or SupabaseCatalog()
        self.volatile = volatile or VolatileCartStore(policy=policy, max_quantity=max_quantity)
        self.durable = durable or DurableCartStore(policy=policy, max_quantity=max_quantity)
        self.merge_engine = merge_engine or MergeEngine(
            self.volatile, self.durable, max_quantity=max_quantity, max_items=max_items
        )
        self.locks = locks or KeyedLock()
        self.policy = policy
        self.max_items = max_items
        self.max_quantity = max_quantity

    # ==================== DISPATCH ====================

    def _store_for(self, identity: CartIdentity) -> CartStore:
        return self.durable if identity.is_authenticated else self.volatile

    @staticmethod
    def _lock_key(identity: CartIdentity) -> str:
        if identity.is_authenticated:
            return f"account:{identity.account_id}"
        return f"session:{identity.session_id}"

    def _check_quantity(self, quantity) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise InvalidInputError(ERROR_INVALID_QUANTITY)
        if quantity < CartLimits.MIN_QUANTITY or quantity > self.max_quantity:
            raise InvalidInputError(ERROR_INVALID_QUANTITY)

    @staticmethod
    def _coerce_request(request: Union[AddItemRequest, dict]) -> AddItemRequest:
        if isinstance(request, AddItemRequest):
            return request
        try:
            return AddItemRequest.model_validate(request)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid add-to-cart request: {e.error_count()} errors") from e

    # ==================== CATALOG ====================

    async def _fetch(
        self, product_id: str, variant_id: Optional[str]
    ) -> tuple[Optional[CatalogProduct], Optional[CatalogVariant]]:
        """Read product and variant concurrently from the current catalog."""
        async def no_variant() -> None:
            return None

        try:
            return await asyncio.gather(
                self.catalog.get_product(product_id),
                self.catalog.get_variant(variant_id, product_id) if variant_id is not None else no_variant(),
            )
        except CartError:
            raise
        except Exception as e:
            logger.error("Catalog lookup failed for product %s: %s", product_id, type(e).__name__)
            raise CatalogUnavailableError() from e

    async def _resolve(
        self, product_id: str, variant_id: Optional[str]
    ) -> tuple[CatalogProduct, Optional[CatalogVariant]]:
        """Fetch and require an active product (and variant, when given)."""
        product, variant = await self._fetch(product_id, variant_id)

        if product is None:
            raise ProductNotFoundError()
        if not product.is_active:
            raise ProductInactiveError()
        if variant_id is not None:
            if variant is None:
                raise VariantNotFoundError()
            if not variant.is_active:
                raise VariantInactiveError()

        return product, variant

    @staticmethod
    def _available_stock(product: CatalogProduct, variant: Optional[CatalogVariant]) -> int:
        return variant.stock_quantity if variant is not None else product.stock_quantity

    # ==================== READS ====================

    async def get_cart(self, identity: CartIdentity) -> Cart:
        """Current cart; an empty one (not persisted) when none exists yet."""
        return await self._store_for(identity).load(identity.identifier)

    async def get_item_count(self, identity: CartIdentity) -> int:
        """Number of distinct line items. Returns 0 instead of raising."""
        try:
            cart = await self.get_cart(identity)
            return cart.summary.item_count
        except Exception as e:
            logger.error(
                "Failed to get cart item count for %s: %s",
                sanitize_id_for_logging(identity.identifier),
                type(e).__name__,
            )
            return 0

    async def calculate(self, identity: CartIdentity) -> CartCalculation:
        """Detailed tax / shipping / discount breakdown of the current cart."""
        cart = await self.get_cart(identity)
        return calculate_breakdown(cart.items, self.policy)

    # ==================== MUTATIONS ====================

    async def add_item(self, identity: CartIdentity, request: Union[AddItemRequest, dict]) -> Cart:
        """
        Add an item, or add to the quantity of a matching one.

        Raises:
            InvalidInputError: quantity outside [1, max quantity]
            ProductNotFoundError / VariantNotFoundError
            ProductInactiveError / VariantInactiveError
            StockInsufficientError: requested quantity exceeds stock
            CartLimitExceededError: cart already holds max distinct items
            QuantityLimitExceededError: merged quantity would exceed the cap
        """
        request = self._coerce_request(request)
        self._check_quantity(request.quantity)

        product, variant = await self._resolve(request.product_id, request.variant_id)
        available = self._available_stock(product, variant)
        if available < request.quantity:
            raise StockInsufficientError(available=available)

        store = self._store_for(identity)
        async with self.locks.hold(self._lock_key(identity)):
            cart = await store.load(identity.identifier)
            existing = find_matching(cart.items, request)

            if existing is not None:
                new_quantity = existing.quantity + request.quantity
                if new_quantity > self.max_quantity:
                    raise QuantityLimitExceededError()
                if available < new_quantity:
                    raise StockInsufficientError(available=available)
                items = [
                    item.with_quantity(new_quantity) if item.id == existing.id else item
                    for item in cart.items
                ]
            else:
                if len(cart.items) >= self.max_items:
                    raise CartLimitExceededError()
                new_item = LineItem.create(
                    product,
                    variant,
                    request.quantity,
                    selected_color=request.selected_color,
                    selected_size=request.selected_size,
                )
                items = [*cart.items, new_item]

            return await store.save(identity.identifier, recompute(cart, items, self.policy))

    async def update_item(self, identity: CartIdentity, item_id: str, quantity: int) -> Cart:
        """Set an item's quantity after re-checking stock in the live catalog."""
        self._check_quantity(quantity)

        store = self._store_for(identity)
        async with self.locks.hold(self._lock_key(identity)):
            cart = await store.load(identity.identifier)
            target = cart.find_item(item_id)
            if target is None:
                raise ItemNotFoundError()

            product, variant = await self._resolve(target.product_id, target.variant_id)
            available = self._available_stock(product, variant)
            if available < quantity:
                raise StockInsufficientError(available=available)

            items = [item.with_quantity(quantity) if item.id == item_id else item for item in cart.items]
            return await store.save(identity.identifier, recompute(cart, items, self.policy))

    async def remove_item(self, identity: CartIdentity, item_id: str) -> Cart:
        store = self._store_for(identity)
        async with self.locks.hold(self._lock_key(identity)):
            cart = await store.load(identity.identifier)
            if cart.find_item(item_id) is None:
                raise ItemNotFoundError()

            items = [item for item in cart.items if item.id != item_id]
            return await store.save(identity.identifier, recompute(cart, items, self.policy))

    async def clear(self, identity: CartIdentity) -> None:
        """Remove every item. Clearing an empty or absent cart succeeds."""
        async with self.locks.hold(self._lock_key(identity)):
            await self._store_for(identity).delete(identity.identifier)
        logger.info("Cart cleared for %s", sanitize_id_for_logging(identity.identifier))

    # ==================== CHECKOUT ====================

    async def validate_for_checkout(self, identity: CartIdentity) -> CheckoutValidation:
        """
        Check the cart against the live catalog before checkout.

        Never raises for business rules. Out-of-stock and deactivated items
        are errors; partially available stock is a warning. If validity
        cannot be determined the result is invalid.
        """
        try:
            cart = await self.get_cart(identity)
        except Exception as e:
            logger.error("Cart validation failed: %s", type(e).__name__, exc_info=True)
            return CheckoutValidation(is_valid=False, errors=[ERROR_VALIDATION_FAILED])

        errors: list[str] = []
        warnings: list[str] = []

        if cart.is_empty:
            errors.append(ERROR_CART_EMPTY)

        if not identity.is_authenticated:
            errors.append(ERROR_AUTH_REQUIRED_CHECKOUT)
            return CheckoutValidation(is_valid=False, errors=errors, requires_authentication=True)

        if cart.is_empty:
            return CheckoutValidation(is_valid=False, errors=errors)

        try:
            results = await asyncio.gather(*(self._validate_item(item) for item in cart.items))
        except Exception as e:
            logger.error("Cart validation failed: %s", type(e).__name__, exc_info=True)
            return CheckoutValidation(is_valid=False, errors=[ERROR_VALIDATION_FAILED])

        for item_errors, item_warnings in results:
            errors.extend(item_errors)
            warnings.extend(item_warnings)

        return CheckoutValidation(is_valid=not errors, errors=errors, warnings=warnings)

    async def _validate_item(self, item: LineItem) -> tuple[list[str], list[str]]:
        product, variant = await self._fetch(item.product_id, item.variant_id)
        name = item.product.name

        if product is None or not product.is_active:
            return [f'Product "{name}" is no longer available'], []

        if item.variant_id is not None and (variant is None or not variant.is_active):
            return [f'Variant for "{name}" is no longer available'], []

        available = self._available_stock(product, variant)
        if available >= item.quantity:
            return [], []
        if available <= 0:
            return [f'"{name}" is out of stock'], []
        return [], [f'Only {available} units of "{name}" available, but {item.quantity} requested']

    # ==================== MERGE ====================

    async def merge_anonymous_into_account(self, session_id: str, identity: CartIdentity) -> Cart:
        """Fold the session cart into the account cart and return the account cart."""
        if not identity.is_authenticated:
            raise AuthenticationRequiredError()

        anonymous = CartIdentity.anonymous(session_id)
        async with self.locks.hold(self._lock_key(anonymous), self._lock_key(identity)):
            source = await self.volatile.load(session_id)
            if source.is_empty:
                await self.volatile.delete(session_id)
                return await self.durable.load(identity.account_id)
            return await self.merge_engine.merge(source, identity.account_id)


# Singleton instance
_cart_service: Optional[CartService] = None


def get_cart_service() -> CartService:
    """Get CartService singleton."""
    global _cart_service
    if _cart_service is None:
        _cart_service = CartService()
    return _cart_service
