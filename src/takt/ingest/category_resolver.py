# src/takt/ingest/category_resolver.py

from __future__ import annotations

from collections.abc import Sequence

from ..core.models import Category


def resolve_category(hint: str | None, known: Sequence[Category]) -> int | None:
    """
    Map a free-text hint to a category id by case-insensitive exact name.

    No fuzzy matching and no creation: an unknown hint leaves the item
    uncategorized. The first match in `known` order wins.
    """
    if not hint or not isinstance(hint, str):
        return None
    wanted = hint.strip().casefold()
    if not wanted:
        return None
    for cat in known:
        if cat.name.strip().casefold() == wanted:
            return cat.id
    return None
