# src/takt/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime, time as dtime

from ..core.errors import DependencyError, PersistenceFailure
from ..core.models import ItemKind
from ..core.state import AppState
from ..digest.scheduler import send_daily_digests
from ..digest.summary import preview_for
from ..time_utils import is_known_zone, load_zone

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], str | None, CommandEmitter | None], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /dep, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        sender: str | None = None,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, args, sender, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _int_arg(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def _sender_timezone(state: AppState, sender: str | None) -> str:
    pref = state.preferences.get_by_address(sender or "")
    if pref is not None:
        return pref.timezone
    return state.settings.default_timezone


def cmd_help(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    s = state.settings
    model = "offline" if getattr(s, "llm_offline", False) else getattr(s, "llm_model", "?")
    sms = "ON" if state.messenger is not None else "OFF"
    return (
        "Status:\n"
        f"  Database: {state.db.path}\n"
        f"  Model: {model}\n"
        f"  Items: {state.items.count_items()}\n"
        f"  Audit entries: {state.audit.count_entries()}\n"
        f"  Timezone: {_sender_timezone(state, sender)}\n"
        f"  Outbound SMS: {sms}"
    )


def cmd_today(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    """
    /today          -> preview today's digest in your timezone
    /today <zone>   -> preview it for another IANA timezone
    """
    tz_name = args[0] if args else _sender_timezone(state, sender)
    return preview_for(state.items, tz_name, datetime.now(UTC))


def cmd_items(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    kind = ItemKind.parse(args[0]) if args else None
    if args and kind is None:
        return "Usage: /items [task|event]"

    rows = state.items.list_items(kind=kind, limit=20)
    if not rows:
        return "No items yet."

    tz = load_zone(_sender_timezone(state, sender))
    lines = ["Items:"]
    for it in rows:
        mark = "x" if it.completed else " "
        if it.kind == ItemKind.TASK:
            when = f" due {it.due_date.isoformat()}" if it.due_date else ""
        else:
            when = f" at {it.start_time.astimezone(tz):%Y-%m-%d %H:%M}" if it.start_time else ""
        lines.append(f"  [{mark}] #{it.id} {it.kind.value}: {it.title}{when}")
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    """
    /done <id>        -> mark a task completed
    /done <id> undo   -> reopen it
    """
    item_id = _int_arg(args[0]) if args else None
    if item_id is None:
        return "Usage: /done <id> [undo]"

    completed = not (len(args) > 1 and args[1].lower() == "undo")
    if not state.items.set_completed(item_id, completed):
        return f"No item with id {item_id}."
    return f"Item {item_id} {'completed' if completed else 'reopened'}."


def cmd_log(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    limit = _int_arg(args[0]) if args else 10
    entries = state.audit.recent(limit=max(1, limit or 10))
    if not entries:
        return "No messages processed yet."

    lines = ["Recent messages:"]
    for e in entries:
        ts = datetime.fromtimestamp(e.processed_at).astimezone().strftime("%Y-%m-%d %H:%M:%S")
        status = f"error: {e.error}" if e.error else "ok"
        lines.append(f"  [{ts}] {e.sender}: {e.body[:60]!r} -> {e.items_created} item(s), {status}")
    return "\n".join(lines)


def cmd_dep(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    """
    /dep add <pred> <succ>  -> <succ> waits on <pred> (cycles are refused)
    /dep rm <edge_id>       -> remove an edge
    /dep ls <item_id>       -> edges touching an item
    """
    usage = (
        "Dependencies:\n"
        "  /dep add <pred> <succ> - make <succ> wait on <pred>\n"
        "  /dep rm <edge_id>      - remove an edge\n"
        "  /dep ls <item_id>      - edges touching an item\n"
    )
    if not args:
        return usage

    sub = args[0].lower()
    nums = [_int_arg(a) for a in args[1:]]

    if sub == "add" and len(nums) == 2 and None not in nums:
        pred, succ = nums
        try:
            dep = state.dependencies.add_edge(pred, succ, reject_cycles=True)
        except DependencyError as e:
            return f"Cannot add dependency: {e}."
        return f"Dependency #{dep.id}: {pred} -> {succ}."

    if sub in ("rm", "del") and len(nums) == 1 and nums[0] is not None:
        if state.dependencies.remove_edge(nums[0]):
            return f"Dependency #{nums[0]} removed."
        return f"No dependency with id {nums[0]}."

    if sub == "ls" and len(nums) == 1 and nums[0] is not None:
        edges = state.dependencies.edges_for(nums[0])
        if not edges.as_predecessor and not edges.as_successor:
            return f"Item {nums[0]} has no dependencies."
        lines = [f"Item {nums[0]}:"]
        lines += [f"  waits on {d.predecessor_id} (#{d.id})" for d in edges.as_successor]
        lines += [f"  blocks {d.successor_id} (#{d.id})" for d in edges.as_predecessor]
        return "\n".join(lines)

    return usage


def cmd_cat(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    if args and args[0].lower() == "add":
        name = " ".join(args[1:]).strip()
        if not name:
            return "Usage: /cat add <name>"
        try:
            cat = state.categories.add_category(name)
        except PersistenceFailure:
            return f"Category {name!r} already exists."
        return f"Category #{cat.id} {cat.name!r} added."

    if args and args[0].lower() == "set":
        item_id = _int_arg(args[1]) if len(args) > 1 else None
        if item_id is None or len(args) < 3:
            return "Usage: /cat set <item_id> <category_id|none>"
        cat_id = None if args[2].lower() == "none" else _int_arg(args[2])
        if cat_id is None and args[2].lower() != "none":
            return "Usage: /cat set <item_id> <category_id|none>"
        if cat_id is not None and cat_id not in {c.id for c in state.categories.list_categories()}:
            return f"No category with id {cat_id}."
        if not state.items.set_category(item_id, cat_id):
            return f"No item with id {item_id}."
        return f"Item {item_id} {'uncategorized' if cat_id is None else f'moved to category {cat_id}'}."

    cats = state.categories.list_categories()
    if not cats:
        return "No categories."
    return "Categories:\n" + "\n".join(f"  #{c.id} {c.name}" for c in cats)


def cmd_tz(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    if not args:
        return f"Your timezone is {_sender_timezone(state, sender)}. Use /tz <IANA zone> to change it."
    if not sender:
        return "No sender in this context."

    tz_name = args[0]
    if not is_known_zone(tz_name):
        return f"Unknown timezone {tz_name!r}. Use an IANA name like America/New_York."

    existing = state.preferences.get_by_address(sender)
    state.preferences.upsert(
        sender,
        timezone=tz_name,
        digest_enabled=existing.digest_enabled if existing else False,
        digest_time=existing.digest_time if existing else state.settings.digest_default_time,
    )
    return f"Timezone set to {tz_name}."


def cmd_digest(state: AppState, args: list[str], sender: str | None, emit: CommandEmitter | None = None) -> str:
    """
    /digest on <address> [HH:MM] [zone] -> subscribe an address
    /digest off <address>               -> unsubscribe
    /digest send                        -> send to every subscriber now
    """
    usage = (
        "Daily digest:\n"
        "  /digest on <address> [HH:MM] [zone] - subscribe\n"
        "  /digest off <address>               - unsubscribe\n"
        "  /digest send                        - send to all subscribers now\n"
    )
    if not args:
        return usage

    sub = args[0].lower()

    if sub in ("on", "off") and len(args) >= 2:
        address = args[1]
        existing = state.preferences.get_by_address(address)
        digest_time = existing.digest_time if existing else state.settings.digest_default_time
        tz_name = existing.timezone if existing else state.settings.default_timezone
        if sub == "on" and len(args) >= 3:
            try:
                digest_time = dtime.fromisoformat(args[2])
            except ValueError:
                return f"Invalid time {args[2]!r}; use HH:MM."
        if sub == "on" and len(args) >= 4:
            tz_name = args[3]
            if not is_known_zone(tz_name):
                return f"Unknown timezone {tz_name!r}."
        state.preferences.upsert(address, timezone=tz_name, digest_enabled=(sub == "on"), digest_time=digest_time)
        if sub == "off":
            return f"Digest disabled for {address}."
        return f"Digest enabled for {address} at {digest_time:%H:%M} ({tz_name})."

    if sub == "send":
        if state.messenger is None:
            return "Outbound SMS is not configured."
        subscribers = state.preferences.list_digest_subscribers()
        if not subscribers:
            return "No digest subscribers."
        if emit:
            with contextlib.suppress(Exception):
                emit(f"[DIGEST] Sending to {len(subscribers)} subscriber(s)...")
        results = asyncio.run(
            send_daily_digests(
                subscribers,
                state.items,
                state.messenger,
                concurrency=state.settings.digest_concurrency,
            )
        )
        ok = sum(1 for r in results if r.ok)
        logger.info("Manual digest run: %d/%d delivered", ok, len(results))
        lines = [f"Digest sent to {ok}/{len(results)} subscriber(s)."]
        lines += [f"  {r.address}: {r.error}" for r in results if not r.ok]
        return "\n".join(lines)

    return usage


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show database, model and counters.")
registry.register("today", cmd_today, help_text="Preview today's digest: /today [zone].")
registry.register("items", cmd_items, help_text="List recent items: /items [task|event].")
registry.register("done", cmd_done, help_text="Complete a task: /done <id> [undo].")
registry.register("log", cmd_log, help_text="Show recent processed messages: /log [n].")
registry.register("dep", cmd_dep, help_text="Dependencies: /dep add | /dep rm | /dep ls.")
registry.register("cat", cmd_cat, help_text="Categories: /cat | /cat add <name> | /cat set <item> <cat>.")
registry.register("tz", cmd_tz, help_text="Show or set your timezone: /tz [zone].")
registry.register("digest", cmd_digest, help_text="Daily digest: /digest on | off | send.")
