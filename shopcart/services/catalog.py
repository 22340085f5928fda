"""Catalog Client.

The cart only reads from the catalog: existence, activity, price and stock.
`None` from a lookup means "not found"; a lookup never invents defaults.
"""

from typing import Optional, Protocol

from shopcart.db import get_supabase
from shopcart.services.models import CatalogProduct, CatalogVariant
from shopcart.services.repositories import ProductRepository


class CatalogClient(Protocol):
    """Read-only catalog contract used by the cart service."""

    async def get_product(self, product_id: str) -> Optional[CatalogProduct]: ...

    async def get_variant(self, variant_id: str, product_id: str) -> Optional[CatalogVariant]: ...


class SupabaseCatalog:
    """Catalog client backed by the products / product_variants tables."""

    def __init__(self, repo: ProductRepository | None = None) -> None:
        self._repo = repo  # Lazy initialization

    async def _get_repo(self) -> ProductRepository:
        if self._repo is None:
            self._repo = ProductRepository(await get_supabase())
        return self._repo

    async def get_product(self, product_id: str) -> Optional[CatalogProduct]:
        repo = await self._get_repo()
        return await repo.get_by_id(product_id)

    async def get_variant(self, variant_id: str, product_id: str) -> Optional[CatalogVariant]:
        repo = await self._get_repo()
        return await repo.get_variant(variant_id, product_id)
