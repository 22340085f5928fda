"""
Repository Pattern for Database Operations

- ProductRepository: product and variant lookups (catalog reads)
- CartItemRepository: durable account cart line items
"""
from .product_repo import ProductRepository
from .cart_item_repo import CartItemRepository

__all__ = [
    "ProductRepository",
    "CartItemRepository",
]
