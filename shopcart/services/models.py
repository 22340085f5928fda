"""Catalog Models - Pydantic models for catalog rows read by the cart."""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from shopcart.services.money import to_decimal as _to_decimal


class CatalogProduct(BaseModel):
    """Product as seen by the cart: existence, activity, price, stock."""

    model_config = ConfigDict(extra="ignore")  # Ignore unknown columns

    id: str
    name: str
    slug: str = ""
    featured_image: Optional[str] = None
    is_active: bool = True
    stock_quantity: int = 0
    price: Decimal
    discount_percentage: Optional[Decimal] = None

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("discount_percentage", mode="before")
    @classmethod
    def convert_discount_to_decimal(cls, v):
        return _to_decimal(v) if v is not None else None

    @property
    def has_discount(self) -> bool:
        return self.discount_percentage is not None and self.discount_percentage > 0


class CatalogVariant(BaseModel):
    """Product variant. `price` is None when the variant inherits the product price."""

    model_config = ConfigDict(extra="ignore")

    id: str
    product_id: str
    color: Optional[str] = None
    size: Optional[str] = None
    price: Optional[Decimal] = None
    stock_quantity: int = 0
    is_active: bool = True

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v) if v is not None else None
