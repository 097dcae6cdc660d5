# src/takt/core/ports.py

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps transports/storage/LLM providers swappable and makes testing easier.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Awaitable, Protocol

from .models import AuditEntry, Category, Item, NewItem, SubscriberPreference


class Completer(Protocol):
    """Opaque text -> text capability (OpenAI/OpenRouter-compatible or offline)."""

    def ensure_ready(self) -> None: ...
    def complete(self, system_prompt: str, user_prompt: str) -> str: ...


class OutboundMessenger(Protocol):
    """
    Transport-side port: how services (digest scheduler) send text outward.

    Returns False when the transport refused or failed the send.
    """

    def send_text(self, *, text: str, to_address: str) -> Awaitable[bool]: ...


class ItemRepo(Protocol):
    # Ingestion
    def add_item(self, item: NewItem) -> Item: ...

    # Digest queries
    def list_open_tasks_due_before(self, day: date) -> list[Item]: ...
    def list_open_tasks_due_on(self, day: date) -> list[Item]: ...
    def list_events_between(self, start: datetime, end: datetime) -> list[Item]: ...


class CategoryRepo(Protocol):
    def list_categories(self) -> list[Category]: ...


class AuditRepo(Protocol):
    def claim(self, delivery_id: str) -> bool: ...
    def find_by_delivery_id(self, delivery_id: str) -> AuditEntry | None: ...
    def record(
            self,
            *,
            sender: str,
            body: str,
            delivery_id: str | None = None,
            parsed_result: Any | None = None,
            items_created: int = 0,
            error: str | None = None,
            reply: str | None = None,
    ) -> int: ...


class PreferenceRepo(Protocol):
    def get_by_address(self, address: str) -> SubscriberPreference | None: ...
    def list_digest_subscribers(self) -> list[SubscriberPreference]: ...
    def mark_digest_sent(self, pref_id: int, day: date) -> None: ...
