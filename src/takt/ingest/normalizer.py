# src/takt/ingest/normalizer.py

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from ..core.errors import CandidateRejected
from ..core.models import Candidate, Category, ItemKind, ItemOrigin, NewItem
from .category_resolver import resolve_category

logger = logging.getLogger(__name__)


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        logger.warning("Dropping unparseable due_date %r", raw)
        return None


def _parse_datetime(raw: str | None, tz: ZoneInfo) -> datetime | None:
    """ISO datetime -> aware UTC. Naive values are wall-clock time in `tz`."""
    if not raw:
        return None
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Dropping unparseable datetime %r", raw)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(UTC)


def normalize_candidate(
    candidate: Candidate,
    categories: Sequence[Category],
    *,
    tz: ZoneInfo,
    raw_text: str | None = None,
) -> NewItem:
    """
    Turn one decoded candidate into a persistable item.

    Only `kind` and `title` can reject a candidate. Missing or unreadable
    dates and unknown category hints degrade the item instead.
    """
    kind = ItemKind.parse(candidate.kind)
    if kind is None:
        raise CandidateRejected(f"unknown type {candidate.kind!r}" if candidate.kind else "missing type")

    title = (candidate.title or "").strip()
    if not title:
        raise CandidateRejected("missing title")

    item = NewItem(
        kind=kind,
        title=title,
        description=(candidate.description or "").strip() or None,
        category_id=resolve_category(candidate.category_hint, categories),
        origin=ItemOrigin.MESSAGE,
        raw_text=raw_text,
    )

    if kind == ItemKind.TASK:
        item.due_date = _parse_date(candidate.due_date)
    else:
        item.start_time = _parse_datetime(candidate.start_time, tz)
        item.end_time = _parse_datetime(candidate.end_time, tz)

    if candidate.category_hint and item.category_id is None:
        logger.debug("Category hint %r did not match; item stays uncategorized", candidate.category_hint)

    return item
