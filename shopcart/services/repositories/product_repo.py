"""Product Repository - read-only catalog lookups for the cart."""
from typing import Optional

from .base import BaseRepository
from shopcart.services.models import CatalogProduct, CatalogVariant

PRODUCT_COLUMNS = "id,name,slug,featured_image,is_active,stock_quantity,price,discount_percentage"
VARIANT_COLUMNS = "id,product_id,color,size,price,stock_quantity,is_active"


class ProductRepository(BaseRepository):
    """Product and variant database reads."""

    async def get_by_id(self, product_id: str) -> Optional[CatalogProduct]:
        """Get product by ID."""
        result = (
            await self.client.table("products")
            .select(PRODUCT_COLUMNS)
            .eq("id", product_id)
            .limit(1)
            .execute()
        )

        if not result.data:
            return None
        return CatalogProduct(**result.data[0])

    async def get_variant(self, variant_id: str, product_id: str) -> Optional[CatalogVariant]:
        """Get variant by ID, only if it belongs to the given product."""
        result = (
            await self.client.table("product_variants")
            .select(VARIANT_COLUMNS)
            .eq("id", variant_id)
            .eq("product_id", product_id)
            .limit(1)
            .execute()
        )

        if not result.data:
            return None
        return CatalogVariant(**result.data[0])
