"""
Cart errors.

Message constants are shared between raised exceptions and checkout
validation results so the same wording reaches callers either way.
"""

# Cart errors
ERROR_ITEM_NOT_FOUND = "Item not found in cart"
ERROR_CART_LIMIT_EXCEEDED = "Cart item limit exceeded"
ERROR_QUANTITY_LIMIT_EXCEEDED = "Quantity limit exceeded for this item"
ERROR_INVALID_QUANTITY = "Invalid quantity specified"
ERROR_CART_EMPTY = "Cart is empty"

# Catalog errors
ERROR_PRODUCT_NOT_FOUND = "Product not found"
ERROR_VARIANT_NOT_FOUND = "Product variant not found"
ERROR_PRODUCT_INACTIVE = "Product is no longer available"
ERROR_VARIANT_INACTIVE = "Product variant is no longer available"
ERROR_INSUFFICIENT_STOCK = "Insufficient stock available"

# Identity errors
ERROR_AUTH_REQUIRED_CHECKOUT = "Authentication required for checkout"
ERROR_AUTH_REQUIRED_MERGE = "Authentication required to merge carts"
ERROR_INVALID_IDENTITY = "Cart identity requires a session or account id"

# Infrastructure errors
ERROR_VALIDATION_FAILED = "Cart validation failed"
ERROR_STORE_UNAVAILABLE = "Cart storage unavailable"
ERROR_STORE_TIMEOUT = "Cart storage timed out"
ERROR_MERGE_FAILED = "Cart merge failed"
ERROR_CATALOG_UNAVAILABLE = "Catalog unavailable"


class CartError(Exception):
    """Base error for all cart failures."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class NotFoundError(CartError):
    """Item, product or variant is absent."""

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND") -> None:
        super().__init__(message, code=code)


class ItemNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_ITEM_NOT_FOUND) -> None:
        super().__init__(message, code="ITEM_NOT_FOUND")


class ProductNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_PRODUCT_NOT_FOUND) -> None:
        super().__init__(message, code="PRODUCT_NOT_FOUND")


class VariantNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_VARIANT_NOT_FOUND) -> None:
        super().__init__(message, code="VARIANT_NOT_FOUND")


class InvalidInputError(CartError):
    """Non-positive or out-of-range quantity, malformed request."""

    def __init__(self, message: str = ERROR_INVALID_QUANTITY) -> None:
        super().__init__(message, code="INVALID_INPUT")


class CartLimitExceededError(CartError):
    def __init__(self, message: str = ERROR_CART_LIMIT_EXCEEDED) -> None:
        super().__init__(message, code="CART_LIMIT_EXCEEDED")


class QuantityLimitExceededError(CartError):
    def __init__(self, message: str = ERROR_QUANTITY_LIMIT_EXCEEDED) -> None:
        super().__init__(message, code="QUANTITY_LIMIT_EXCEEDED")


class StockInsufficientError(CartError):
    """Requested quantity exceeds available stock."""

    def __init__(self, message: str = ERROR_INSUFFICIENT_STOCK, available: int | None = None) -> None:
        super().__init__(message, code="STOCK_INSUFFICIENT")
        self.available = available


class ProductInactiveError(CartError):
    def __init__(self, message: str = ERROR_PRODUCT_INACTIVE) -> None:
        super().__init__(message, code="PRODUCT_INACTIVE")


class VariantInactiveError(CartError):
    def __init__(self, message: str = ERROR_VARIANT_INACTIVE) -> None:
        super().__init__(message, code="VARIANT_INACTIVE")


class AuthenticationRequiredError(CartError):
    def __init__(self, message: str = ERROR_AUTH_REQUIRED_MERGE) -> None:
        super().__init__(message, code="AUTHENTICATION_REQUIRED")


class ValidationFailedError(CartError):
    """Checkout validation could not determine validity."""

    def __init__(self, message: str = ERROR_VALIDATION_FAILED) -> None:
        super().__init__(message, code="VALIDATION_FAILED")


class CartStorageError(CartError):
    """Volatile or durable store I/O failure."""

    def __init__(self, message: str = ERROR_STORE_UNAVAILABLE, code: str = "STORE_UNAVAILABLE") -> None:
        super().__init__(message, code=code)


class StoreTimeoutError(CartStorageError):
    """Store call timed out. Never means "cart empty"."""

    def __init__(self, message: str = ERROR_STORE_TIMEOUT) -> None:
        super().__init__(message, code="STORE_TIMEOUT")


class MergeFailedError(CartError):
    """Merge aborted; applied writes were compensated unless `compensated` is False."""

    def __init__(self, message: str = ERROR_MERGE_FAILED, compensated: bool = True) -> None:
        super().__init__(message, code="MERGE_FAILED")
        self.compensated = compensated


class CatalogUnavailableError(CartError):
    """Catalog lookup failed for reasons other than "not found"."""

    def __init__(self, message: str = ERROR_CATALOG_UNAVAILABLE) -> None:
        super().__init__(message, code="CATALOG_UNAVAILABLE")
