"""Merge Engine - folds a session cart into an account cart on login.

For every source item:
- a matching target item gets quantity = min(target + source, cap), priced
  at the target's unit price;
- otherwise the source item is appended to the target as-is.

All writes are planned before the first one is made; a merge that would
leave the account cart with more than the item limit is refused up front.
The session cart is deleted only after every write succeeded. A journal in
Redis remembers how much of each source item was already applied, so
retrying a merge that stopped half way applies only what is still missing.
When a write fails, the writes made by this run are undone in reverse order
before the error is raised.
"""
import json
from dataclasses import dataclass
from typing import Optional, Sequence

from shopcart.config import CartLimits
from shopcart.db import TTL, RedisKeys
from shopcart.errors import CartLimitExceededError, MergeFailedError
from shopcart.logging import get_logger, sanitize_id_for_logging

from .matcher import find_matching, matching_key
from .models import Cart, LineItem
from .storage import DurableCartStore, VolatileCartStore, store_errors

logger = get_logger(__name__)


def journal_entry(item: LineItem) -> str:
    return json.dumps(list(matching_key(item)))


class MergeJournal:
    """Applied quantity per source configuration for one session, kept in Redis."""

    def __init__(self, volatile: VolatileCartStore, ttl: int = TTL.MERGE_JOURNAL) -> None:
        self.volatile = volatile
        self.ttl = ttl

    async def load(self, session_id: str) -> dict[str, int]:
        async with store_errors("journal load", session_id):
            data = await self.volatile.redis.get(RedisKeys.merge_journal_key(session_id))
        if not data:
            return {}
        try:
            entries = json.loads(data) if isinstance(data, (str, bytes)) else data
            return {str(entry): int(quantity) for entry, quantity in entries.items()}
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
            logger.warning("Corrupted merge journal for %s", sanitize_id_for_logging(session_id))
            return {}

    async def save(self, session_id: str, entries: dict[str, int]) -> None:
        if not entries:
            await self.clear(session_id)
            return
        async with store_errors("journal save", session_id):
            await self.volatile.redis.set(
                RedisKeys.merge_journal_key(session_id),
                json.dumps(dict(sorted(entries.items()))),
                ex=self.ttl,
            )

    async def clear(self, session_id: str) -> None:
        async with store_errors("journal clear", session_id):
            await self.volatile.redis.delete(RedisKeys.merge_journal_key(session_id))


@dataclass(frozen=True)
class MergeStep:
    """One planned write: update `existing` to `merged`, or append `merged`.

    `quantity` is how much of the source item this step consumes.
    """
    entry: str
    merged: LineItem
    quantity: int
    existing: Optional[LineItem] = None


def plan_merge(
    source: Sequence[LineItem],
    target: Sequence[LineItem],
    journaled: dict[str, int],
    max_quantity: int,
    max_items: int = CartLimits.MAX_ITEMS,
) -> list[MergeStep]:
    """Writes needed to fold `source` into `target`.

    Only the part of each source quantity not yet in the journal is applied.

    Raises:
        CartLimitExceededError: the appended items would push the target
            past `max_items`.
    """
    steps = []
    appended = 0
    for item in source:
        entry = journal_entry(item)
        pending = item.quantity - journaled.get(entry, 0)
        if pending <= 0:
            continue
        existing = find_matching(target, item)
        if existing is not None:
            merged = existing.with_quantity(min(existing.quantity + pending, max_quantity))
            steps.append(MergeStep(entry=entry, merged=merged, quantity=pending, existing=existing))
        else:
            merged = item if pending == item.quantity else item.with_quantity(pending)
            steps.append(MergeStep(entry=entry, merged=merged, quantity=pending))
            appended += 1

    if len(target) + appended > max_items:
        raise CartLimitExceededError()
    return steps


@dataclass(frozen=True)
class AppliedWrite:
    """One write made during a merge run, with what is needed to undo it."""
    entry: str
    quantity: int
    previous: Optional[LineItem] = None  # target item before an update
    created_id: Optional[str] = None  # row inserted for an appended item


class MergeEngine:
    def __init__(
        self,
        volatile: VolatileCartStore,
        durable: DurableCartStore,
        journal: MergeJournal | None = None,
        max_quantity: int = CartLimits.MAX_QUANTITY_PER_ITEM,
        max_items: int = CartLimits.MAX_ITEMS,
    ) -> None:
        self.volatile = volatile
        self.durable = durable
        self.journal = journal or MergeJournal(volatile)
        self.max_quantity = max_quantity
        self.max_items = max_items

    async def merge(self, source: Cart, target_identifier: str) -> Cart:
        """Merge `source` into the account cart and delete the source.

        Returns the reloaded target cart.

        Raises:
            CartLimitExceededError: the merged cart would hold too many
                items; nothing was written.
            MergeFailedError: a write failed; `compensated` tells whether the
                writes of this run were rolled back.
        """
        session_id = source.identifier
        journaled = await self.journal.load(session_id)
        target = await self.durable.load_compacted(target_identifier)
        repo = await self.durable.get_repo()

        try:
            steps = plan_merge(source.items, target.items, journaled, self.max_quantity, self.max_items)
        except CartLimitExceededError:
            logger.warning(
                "Merge of %s into %s refused: item limit %d exceeded",
                sanitize_id_for_logging(session_id),
                sanitize_id_for_logging(target_identifier),
                self.max_items,
            )
            raise

        applied: list[AppliedWrite] = []
        try:
            for step in steps:
                if step.existing is not None:
                    await repo.update_item(step.existing.id, {
                        "quantity": step.merged.quantity,
                        "unit_price": str(step.merged.unit_price),
                        "total_price": str(step.merged.total_price),
                    })
                    applied.append(AppliedWrite(entry=step.entry, quantity=step.quantity, previous=step.existing))
                else:
                    row = await repo.create_item(target_identifier, step.merged.to_dict())
                    applied.append(AppliedWrite(entry=step.entry, quantity=step.quantity, created_id=str(row["id"])))

                journaled[step.entry] = journaled.get(step.entry, 0) + step.quantity
                await self.journal.save(session_id, journaled)
        except Exception as e:
            logger.error(
                "Merge of %s into %s failed after %d writes: %s",
                sanitize_id_for_logging(session_id),
                sanitize_id_for_logging(target_identifier),
                len(applied),
                type(e).__name__,
                exc_info=True,
            )
            compensated = await self._compensate(repo, applied, journaled)
            try:
                await self.journal.save(session_id, journaled)
            except Exception:
                logger.error("Could not persist merge journal for %s", sanitize_id_for_logging(session_id))
            raise MergeFailedError(compensated=compensated) from e

        await self.volatile.delete(session_id)
        await self.journal.clear(session_id)

        logger.info(
            "Merged %d items from %s into %s",
            len(applied),
            sanitize_id_for_logging(session_id),
            sanitize_id_for_logging(target_identifier),
        )
        return await self.durable.load(target_identifier)

    async def _compensate(self, repo, applied: list[AppliedWrite], journaled: dict[str, int]) -> bool:
        """Undo this run's writes newest first. Returns True when all were undone."""
        ok = True
        for write in reversed(applied):
            try:
                if write.created_id is not None:
                    await repo.delete_item(write.created_id)
                else:
                    await repo.update_item(write.previous.id, {
                        "quantity": write.previous.quantity,
                        "unit_price": str(write.previous.unit_price),
                        "total_price": str(write.previous.total_price),
                    })
            except Exception:
                ok = False
                logger.error("Failed to undo merge write for %s", write.entry, exc_info=True)
                continue

            remaining = journaled.get(write.entry, 0) - write.quantity
            if remaining > 0:
                journaled[write.entry] = remaining
            else:
                journaled.pop(write.entry, None)
        return ok
