"""Cart package: models, calculator, stores, merge engine and service facade."""
from .models import AddItemRequest, Cart, CartIdentity, CartSummary, CheckoutValidation, LineItem
from .service import CartService, get_cart_service

__all__ = [
    "AddItemRequest",
    "Cart",
    "CartIdentity",
    "CartSummary",
    "CheckoutValidation",
    "LineItem",
    "CartService",
    "get_cart_service",
]
