"""Cart Item Repository - durable line items for account carts.

Rows carry denormalized `product` / `variant` snapshots (jsonb) taken when
the item was added, so an account cart can be rebuilt without catalog joins.
"""
from datetime import UTC, datetime
from typing import Any, Optional

from .base import BaseRepository

TABLE = "cart_items"


class CartItemRepository(BaseRepository):
    """cart_items table operations."""

    async def list_items_for_account(self, account_id: str) -> list[dict[str, Any]]:
        """All rows for an account, oldest first."""
        result = (
            await self.client.table(TABLE)
            .select("*")
            .eq("account_id", account_id)
            .order("created_at")
            .execute()
        )
        return list(result.data or [])

    async def create_item(self, account_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it with its database id."""
        data = {**fields, "account_id": account_id}
        data.pop("id", None)
        result = await self.client.table(TABLE).insert(data).execute()
        if not result.data:
            raise RuntimeError("cart_items insert returned no row")
        return result.data[0]

    async def update_item(self, item_id: str, fields: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Update a row; returns None when the row no longer exists."""
        data = {**fields, "updated_at": datetime.now(UTC).isoformat()}
        result = await self.client.table(TABLE).update(data).eq("id", item_id).execute()
        return result.data[0] if result.data else None

    async def delete_item(self, item_id: str) -> None:
        await self.client.table(TABLE).delete().eq("id", item_id).execute()

    async def delete_all_for_account(self, account_id: str) -> None:
        await self.client.table(TABLE).delete().eq("account_id", account_id).execute()
