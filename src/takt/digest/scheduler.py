# src/takt/digest/scheduler.py

"""
Digest dispatch.

Two entry points:
- send_daily_digests(): fan out one digest per subscriber right now,
- run_digest_scheduler(): a small polling loop that sends each subscriber's
  digest once per local day, after their configured local time.

Delivery goes through the injected OutboundMessenger; how the text reaches a
phone is the connector's business, not the scheduler's.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime

from ..core.models import SubscriberPreference
from ..core.ports import ItemRepo, OutboundMessenger, PreferenceRepo
from ..time_utils import load_zone, local_today
from .summary import render_digest, summarize

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DigestDelivery:
    """Per-subscriber result of one digest run."""

    subscriber_id: int
    address: str
    day: date
    ok: bool
    error: str | None = None


def is_digest_due(pref: SubscriberPreference, now: datetime) -> bool:
    if not pref.digest_enabled or not pref.address:
        return False
    local = now.astimezone(load_zone(pref.timezone))
    if pref.last_digest_on == local.date():
        return False
    return local.time() >= pref.digest_time


async def _deliver_one(
    pref: SubscriberPreference,
    items: ItemRepo,
    messenger: OutboundMessenger,
    as_of: datetime,
    sem: asyncio.Semaphore,
) -> DigestDelivery:
    day = local_today(as_of, load_zone(pref.timezone))
    async with sem:
        try:
            summary = await asyncio.to_thread(summarize, pref, as_of, items)
            text = render_digest(summary)
            sent = await messenger.send_text(text=text, to_address=pref.address)
        except Exception as e:
            logger.exception("Digest failed subscriber_id=%s", pref.id)
            return DigestDelivery(pref.id, pref.address, day, ok=False, error=str(e) or type(e).__name__)

    if not sent:
        logger.warning("Digest not delivered subscriber_id=%s", pref.id)
        return DigestDelivery(pref.id, pref.address, day, ok=False, error="send failed")

    logger.info("Digest sent subscriber_id=%s day=%s", pref.id, day)
    return DigestDelivery(pref.id, pref.address, day, ok=True)


async def send_daily_digests(
    subscribers: Sequence[SubscriberPreference],
    items: ItemRepo,
    messenger: OutboundMessenger,
    *,
    as_of: datetime | None = None,
    concurrency: int = 4,
) -> list[DigestDelivery]:
    """
    Build and send one digest per subscriber.

    Sends run concurrently (bounded by `concurrency`). One subscriber's failure,
    whether a False from the messenger or an exception, is reported in its own
    DigestDelivery and never stops the others. Results keep subscriber order.
    """
    if not subscribers:
        return []

    as_of = as_of or datetime.now(UTC)
    sem = asyncio.Semaphore(max(1, int(concurrency)))
    results = await asyncio.gather(
        *(_deliver_one(pref, items, messenger, as_of, sem) for pref in subscribers)
    )

    ok = sum(1 for r in results if r.ok)
    logger.info("Digest run finished: %d/%d delivered", ok, len(results))
    return list(results)


async def run_digest_tick(
    preferences: PreferenceRepo,
    items: ItemRepo,
    messenger: OutboundMessenger,
    *,
    now: datetime,
    concurrency: int = 4,
) -> list[DigestDelivery]:
    """One scheduler pass: send every due digest and mark the successful ones."""
    subscribers = preferences.list_digest_subscribers()
    due = [p for p in subscribers if is_digest_due(p, now)]
    if not due:
        return []

    deliveries = await send_daily_digests(due, items, messenger, as_of=now, concurrency=concurrency)
    for d in deliveries:
        if not d.ok:
            continue
        try:
            preferences.mark_digest_sent(d.subscriber_id, d.day)
        except Exception:
            logger.exception("mark_digest_sent failed subscriber_id=%s", d.subscriber_id)
    return deliveries


async def run_digest_scheduler(
        preferences: PreferenceRepo,
        items: ItemRepo,
        messenger: OutboundMessenger,
        *,
        interval_seconds: float = 60.0,
        concurrency: int = 4,
        clock: Callable[[], datetime] | None = None,
) -> None:
    """
    Simple polling scheduler.

    Every interval_seconds:
    - list subscribers with the digest enabled,
    - keep those whose local time has passed digest_time and who have not
      received today's digest yet,
    - send, then record the local day for each successful delivery.

    Failed deliveries are retried on the next pass. To stop the scheduler,
    cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))
    clock = clock or (lambda: datetime.now(UTC))

    while True:
        try:
            await run_digest_tick(preferences, items, messenger, now=clock(), concurrency=concurrency)
        except Exception:
            logger.exception("digest pass failed")

        await asyncio.sleep(sleep_s)
