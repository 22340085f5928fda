"""Line item matching.

Two items are "the same" purchasable configuration iff product, variant,
color and size are all equal. None is compared as a value, never as a
wildcard: an item without a variant does not match one with a variant.
"""
from typing import Iterable, Optional, Protocol

from .models import LineItem


class Matchable(Protocol):
    product_id: str
    variant_id: Optional[str]
    selected_color: Optional[str]
    selected_size: Optional[str]


MatchKey = tuple[str, Optional[str], Optional[str], Optional[str]]


def matching_key(item: Matchable) -> MatchKey:
    return (item.product_id, item.variant_id, item.selected_color, item.selected_size)


def matches(a: Matchable, b: Matchable) -> bool:
    return matching_key(a) == matching_key(b)


def find_matching(items: Iterable[LineItem], candidate: Matchable) -> Optional[LineItem]:
    """First item matching the candidate, if any."""
    key = matching_key(candidate)
    return next((item for item in items if matching_key(item) == key), None)


def consolidate(items: Iterable[LineItem], max_quantity: int) -> list[LineItem]:
    """Fold duplicate configurations into their first occurrence.

    Quantities are summed and capped at max_quantity; the surviving item
    keeps its own id, unit price and position.
    """
    merged: dict[MatchKey, LineItem] = {}
    for item in items:
        key = matching_key(item)
        existing = merged.get(key)
        if existing is None:
            merged[key] = item
        else:
            merged[key] = existing.with_quantity(min(existing.quantity + item.quantity, max_quantity))
    return list(merged.values())
