"""Weighted random selection of items, biased toward urgent categories."""

from __future__ import annotations

import random
from bisect import bisect_right
from collections.abc import Mapping, Sequence
from datetime import date
from itertools import accumulate

from .expiry import classify
from .models import CATEGORY_ORDER, Item


def partition(items: Sequence[Item], today: date | None = None) -> dict[str, list[Item]]:
    """Group items by expiry category, keeping their original order."""
    groups: dict[str, list[Item]] = {c.value: [] for c in CATEGORY_ORDER}
    for item in items:
        groups[classify(item.expiry_date, today).value].append(item)
    return groups


def _weight(weights: Mapping[str, int], category: str) -> int:
    return max(0, int(weights.get(category, 0) or 0))


def select(
    items: Sequence[Item],
    weights: Mapping[str, int],
    rng: random.Random | None = None,
    today: date | None = None,
) -> Item:
    """Draw one item.

    Each category contributes ``weight * population`` slots to the pool, so
    an item's chance is ``weight[its category] / sum(weight[c] * |c|)``.
    The pool is never materialized: one draw locates the category through a
    cumulative table and the offset inside that block picks the item.

    Falls back to ``items[0]`` when the pool is empty. ``items`` must not be
    empty.
    """
    if not items:
        raise ValueError("select() requires at least one item")
    rng = rng or random

    groups = partition(items, today)
    categories = [c.value for c in CATEGORY_ORDER]
    sizes = [_weight(weights, c) * len(groups[c]) for c in categories]
    cumulative = list(accumulate(sizes))
    total = cumulative[-1]

    if total == 0:
        return items[0]

    r = rng.randrange(total)
    index = bisect_right(cumulative, r)
    start = cumulative[index - 1] if index else 0
    members = groups[categories[index]]
    return members[(r - start) % len(members)]


def sample_items(
    items: Sequence[Item],
    weights: Mapping[str, int],
    count: int,
    rng: random.Random | None = None,
    today: date | None = None,
) -> list[Item]:
    """``min(count, len(items))`` independent draws, with replacement."""
    n = min(count, len(items))
    return [select(items, weights, rng, today) for _ in range(n)]
