"""Cart models with Decimal-based pricing.

Carts are immutable snapshots: every change produces a new Cart value
(see Cart.with_items) that is then persisted.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from shopcart.errors import ERROR_INVALID_IDENTITY, InvalidInputError
from shopcart.services.models import CatalogProduct, CatalogVariant
from shopcart.services.money import multiply, to_decimal, to_optional_decimal


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _decimal_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class ProductSnapshot:
    """Product display fields copied onto a line item when it is added."""
    id: str
    name: str
    slug: str = ""
    featured_image: Optional[str] = None
    is_active: bool = True
    stock_quantity: int = 0
    price: Decimal = Decimal("0")
    discount_percentage: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price))
        object.__setattr__(self, "discount_percentage", to_optional_decimal(self.discount_percentage))

    @classmethod
    def from_catalog(cls, product: CatalogProduct) -> "ProductSnapshot":
        return cls(
            id=product.id,
            name=product.name,
            slug=product.slug,
            featured_image=product.featured_image,
            is_active=product.is_active,
            stock_quantity=product.stock_quantity,
            price=product.price,
            discount_percentage=product.discount_percentage,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "featured_image": self.featured_image,
            "is_active": self.is_active,
            "stock_quantity": self.stock_quantity,
            "price": str(self.price),
            "discount_percentage": _decimal_str(self.discount_percentage),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            slug=data.get("slug") or "",
            featured_image=data.get("featured_image"),
            is_active=bool(data.get("is_active", True)),
            stock_quantity=int(data.get("stock_quantity") or 0),
            price=to_decimal(data.get("price")),
            discount_percentage=to_optional_decimal(data.get("discount_percentage")),
        )


@dataclass(frozen=True)
class VariantSnapshot:
    """Variant display fields copied onto a line item when it is added."""
    id: str
    color: Optional[str] = None
    size: Optional[str] = None
    price: Optional[Decimal] = None
    stock_quantity: int = 0
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, "price", to_optional_decimal(self.price))

    @classmethod
    def from_catalog(cls, variant: CatalogVariant) -> "VariantSnapshot":
        return cls(
            id=variant.id,
            color=variant.color,
            size=variant.size,
            price=variant.price,
            stock_quantity=variant.stock_quantity,
            is_active=variant.is_active,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "color": self.color,
            "size": self.size,
            "price": _decimal_str(self.price),
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VariantSnapshot":
        return cls(
            id=str(data["id"]),
            color=data.get("color"),
            size=data.get("size"),
            price=to_optional_decimal(data.get("price")),
            stock_quantity=int(data.get("stock_quantity") or 0),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass(frozen=True)
class LineItem:
    """One purchasable configuration in a cart.

    `variant_id is None` means the item has no variant. total_price is
    derived from unit_price and quantity and cannot be set directly.
    """
    id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    product: ProductSnapshot
    variant_id: Optional[str] = None
    selected_color: Optional[str] = None
    selected_size: Optional[str] = None
    variant: Optional[VariantSnapshot] = None
    created_at: str = ""
    updated_at: str = ""
    total_price: Decimal = field(init=False)

    def __post_init__(self):
        now = _now()
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "total_price", multiply(self.unit_price, self.quantity))
        if not self.created_at:
            object.__setattr__(self, "created_at", now)
        if not self.updated_at:
            object.__setattr__(self, "updated_at", now)

    @classmethod
    def create(
        cls,
        product: CatalogProduct,
        variant: Optional[CatalogVariant],
        quantity: int,
        selected_color: Optional[str] = None,
        selected_size: Optional[str] = None,
    ) -> "LineItem":
        """Build a new item, snapshotting the current catalog price.

        The variant price wins over the product price when the variant has one.
        """
        unit_price = variant.price if variant is not None and variant.price is not None else product.price
        return cls(
            id=uuid.uuid4().hex,
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            quantity=quantity,
            selected_color=selected_color,
            selected_size=selected_size,
            unit_price=unit_price,
            product=ProductSnapshot.from_catalog(product),
            variant=VariantSnapshot.from_catalog(variant) if variant is not None else None,
        )

    def with_quantity(self, quantity: int) -> "LineItem":
        """Copy with a new quantity; total_price follows."""
        return replace(self, quantity=quantity, updated_at=_now())

    def to_dict(self) -> dict:
        """Convert to dictionary (Redis payload and cart_items row)."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "selected_color": self.selected_color,
            "selected_size": self.selected_size,
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
            "product": self.product.to_dict(),
            "variant": self.variant.to_dict() if self.variant is not None else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        """Create from dictionary. A stored total_price is ignored and recomputed."""
        variant = data.get("variant")
        return cls(
            id=str(data["id"]),
            product_id=str(data["product_id"]),
            variant_id=data.get("variant_id"),
            quantity=int(data["quantity"]),
            selected_color=data.get("selected_color"),
            selected_size=data.get("selected_size"),
            unit_price=to_decimal(data["unit_price"]),
            product=ProductSnapshot.from_dict(data["product"]),
            variant=VariantSnapshot.from_dict(variant) if variant else None,
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )


@dataclass(frozen=True)
class CartSummary:
    """Derived rollup of a cart's items. Built only by the calculator."""
    item_count: int
    total_quantity: int
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    currency: str = "USD"

    @classmethod
    def empty(cls, currency: str = "USD") -> "CartSummary":
        zero = Decimal("0.00")
        return cls(
            item_count=0,
            total_quantity=0,
            subtotal=zero,
            discount_amount=zero,
            tax_amount=zero,
            shipping_cost=zero,
            total_amount=zero,
            currency=currency,
        )

    def to_dict(self) -> dict:
        return {
            "item_count": self.item_count,
            "total_quantity": self.total_quantity,
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "tax_amount": str(self.tax_amount),
            "shipping_cost": str(self.shipping_cost),
            "total_amount": str(self.total_amount),
            "currency": self.currency,
        }


@dataclass(frozen=True)
class Cart:
    """Shopping cart snapshot for one identifier."""
    identifier: str
    items: tuple[LineItem, ...] = ()
    summary: CartSummary = field(default_factory=CartSummary.empty)
    account_id: Optional[str] = None
    last_modified: str = ""

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        if not self.last_modified:
            object.__setattr__(self, "last_modified", _now())

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: str) -> Optional[LineItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def with_items(self, items: Iterable[LineItem], summary: CartSummary) -> "Cart":
        """New snapshot with the given items and their freshly computed summary."""
        return replace(self, items=tuple(items), summary=summary, last_modified=_now())

    def to_dict(self) -> dict:
        """Convert to dictionary for Redis storage."""
        return {
            "identifier": self.identifier,
            "account_id": self.account_id,
            "items": [item.to_dict() for item in self.items],
            "summary": self.summary.to_dict(),
            "last_modified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """Create from dictionary.

        The stored summary is not trusted; callers recompute it on load.
        """
        items = [LineItem.from_dict(item) for item in data.get("items", [])]
        return cls(
            identifier=data["identifier"],
            account_id=data.get("account_id"),
            items=tuple(items),
            last_modified=data.get("last_modified", ""),
        )


@dataclass(frozen=True)
class CartIdentity:
    """Who a cart belongs to.

    An authenticated identity is backed by the durable store and keyed by
    account_id; an anonymous one is backed by the volatile store and keyed
    by session_id.
    """
    session_id: Optional[str] = None
    account_id: Optional[str] = None

    def __post_init__(self):
        if not self.session_id and not self.account_id:
            raise InvalidInputError(ERROR_INVALID_IDENTITY)

    @classmethod
    def anonymous(cls, session_id: str) -> "CartIdentity":
        return cls(session_id=session_id)

    @classmethod
    def account(cls, account_id: str, session_id: Optional[str] = None) -> "CartIdentity":
        return cls(session_id=session_id, account_id=account_id)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.account_id)

    @property
    def identifier(self) -> str:
        return self.account_id if self.account_id else self.session_id


class AddItemRequest(BaseModel):
    """Item to add. Quantity bounds are enforced by the cart service."""
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = 1
    selected_color: Optional[str] = None
    selected_size: Optional[str] = None


@dataclass
class CheckoutValidation:
    """Checkout readiness. Business-rule problems are reported here, never raised."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    requires_authentication: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "requires_authentication": self.requires_authentication,
        }
