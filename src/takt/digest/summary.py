# src/takt/digest/summary.py

"""
Daily summary for one subscriber.

"Today" is always the subscriber's local calendar day, never the server's:
the digest for a subscriber in Asia/Tokyo at 23:30 UTC is already about
the next date. Due dates are calendar dates and compare directly against
that local day; events compare by instant against the local day's UTC
bounds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from zoneinfo import ZoneInfo

from ..core.models import Item, SubscriberPreference
from ..core.ports import ItemRepo
from ..time_utils import load_zone, local_day_bounds, local_today

OVERDUE_DISPLAY_LIMIT = 3
EVENTS_DISPLAY_LIMIT = 4
DUE_TODAY_DISPLAY_LIMIT = 4

GREETING = "Good morning!"
ALL_CLEAR_LINE = "You're all clear today! No tasks due or overdue."
CLOSING_HINT = 'Reply with "what\'s due today" anytime for updates.'


@dataclass(slots=True, frozen=True)
class DigestEntry:
    title: str
    # due date for tasks, aware UTC start for events
    timestamp: date | datetime | None = None


@dataclass(slots=True)
class DigestSection:
    entries: list[DigestEntry] = field(default_factory=list)
    overflow: int = 0

    @property
    def total(self) -> int:
        return len(self.entries) + self.overflow

    @classmethod
    def capped(cls, entries: list[DigestEntry], limit: int) -> DigestSection:
        limit = max(0, int(limit))
        return cls(entries=entries[:limit], overflow=max(0, len(entries) - limit))


@dataclass(slots=True)
class Summary:
    day: date
    timezone: str
    overdue: DigestSection
    due_today: DigestSection
    events_today: DigestSection

    @property
    def is_empty(self) -> bool:
        return not (self.overdue.total or self.due_today.total or self.events_today.total)


def summarize(
    subscriber: SubscriberPreference,
    as_of: datetime,
    items: ItemRepo,
    *,
    overdue_limit: int = OVERDUE_DISPLAY_LIMIT,
    events_limit: int = EVENTS_DISPLAY_LIMIT,
    due_today_limit: int = DUE_TODAY_DISPLAY_LIMIT,
) -> Summary:
    tz = load_zone(subscriber.timezone)
    today = local_today(as_of, tz)
    start, end = local_day_bounds(today, tz)

    overdue = [DigestEntry(t.title, t.due_date) for t in items.list_open_tasks_due_before(today)]
    due_today = [DigestEntry(t.title, t.due_date) for t in items.list_open_tasks_due_on(today)]
    events = [DigestEntry(e.title, e.start_time) for e in items.list_events_between(start, end)]

    return Summary(
        day=today,
        timezone=tz.key,
        overdue=DigestSection.capped(overdue, overdue_limit),
        due_today=DigestSection.capped(due_today, due_today_limit),
        events_today=DigestSection.capped(events, events_limit),
    )


def format_clock(ts: datetime | None, tz: ZoneInfo) -> str:
    """Aware instant -> local 'h:MM AM'."""
    if ts is None:
        return ""
    local = ts.astimezone(tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def _section_lines(header: str, section: DigestSection, fmt=None) -> list[str]:
    lines = [header]
    for entry in section.entries:
        lines.append(f"  • {fmt(entry)}: {entry.title}" if fmt else f"  • {entry.title}")
    if section.overflow:
        lines.append(f"  ...and {section.overflow} more")
    lines.append("")
    return lines


def render_digest(summary: Summary, tz: ZoneInfo | None = None) -> str:
    tz = tz or load_zone(summary.timezone)
    lines = [GREETING, ""]

    if summary.overdue.total:
        lines += _section_lines(f"⚠️ {summary.overdue.total} OVERDUE:", summary.overdue)

    if summary.events_today.total:
        lines += _section_lines(
            "📅 TODAY'S SCHEDULE:",
            summary.events_today,
            lambda e: format_clock(e.timestamp, tz),
        )

    if summary.due_today.total:
        n = summary.due_today.total
        lines += _section_lines(f"✅ {n} TASK{'S' if n > 1 else ''} DUE TODAY:", summary.due_today)

    if summary.is_empty:
        lines += [ALL_CLEAR_LINE, ""]

    lines.append(CLOSING_HINT)
    return "\n".join(lines)


def preview_for(items: ItemRepo, timezone: str, as_of: datetime) -> str:
    """Render today's digest for an ad-hoc timezone (console preview)."""
    pref = SubscriberPreference(
        id=0,
        address="",
        timezone=timezone,
        digest_enabled=True,
        digest_time=datetime.min.time(),
    )
    summary = summarize(pref, as_of, items)
    return render_digest(summary)
