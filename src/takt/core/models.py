# src/takt/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any


class ItemKind(StrEnum):
    TASK = "task"
    EVENT = "event"

    @classmethod
    def parse(cls, raw: Any) -> ItemKind | None:
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


class ItemOrigin(StrEnum):
    """Where an item came from."""

    MANUAL = "manual"
    MESSAGE = "message"
    FEED = "feed"

    @classmethod
    def from_db(cls, raw: str | None) -> ItemOrigin:
        if not raw:
            return cls.MANUAL
        try:
            return cls(raw)
        except ValueError:
            return cls.MANUAL


@dataclass(slots=True)
class Category:
    id: int
    name: str
    color: str = "#6B7280"
    sort_order: int = 0


@dataclass(slots=True)
class NewItem:
    """A validated item that has not been written yet."""

    kind: ItemKind
    title: str
    description: str | None = None
    category_id: int | None = None
    due_date: date | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    origin: ItemOrigin = ItemOrigin.MANUAL
    external_id: str | None = None
    raw_text: str | None = None


@dataclass(slots=True)
class Item:
    id: int
    kind: ItemKind
    title: str
    description: str | None
    category_id: int | None

    # tasks
    due_date: date | None
    # events (aware, UTC)
    start_time: datetime | None
    end_time: datetime | None

    completed: bool
    completed_at: datetime | None

    origin: ItemOrigin
    external_id: str | None
    raw_text: str | None

    created_at: float
    updated_at: float


@dataclass(slots=True)
class Dependency:
    id: int
    predecessor_id: int
    successor_id: int
    created_at: float


@dataclass(slots=True)
class EdgeSet:
    """Edges touching one item, split by the item's role."""

    as_predecessor: list[Dependency] = field(default_factory=list)
    as_successor: list[Dependency] = field(default_factory=list)


@dataclass(slots=True)
class AuditEntry:
    id: int
    delivery_id: str | None
    sender: str
    body: str
    parsed_result: Any | None
    items_created: int
    error: str | None
    reply: str | None
    processed_at: float


@dataclass(slots=True)
class SubscriberPreference:
    id: int
    address: str
    timezone: str
    digest_enabled: bool
    digest_time: time
    last_digest_on: date | None = None


@dataclass(slots=True, frozen=True)
class Candidate:
    """
    Unvalidated task/event structure decoded from the extraction response.

    All fields are kept as the raw strings the capability returned; the
    normalizer decides what is usable.
    """

    kind: str | None = None
    title: str | None = None
    description: str | None = None
    due_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    category_hint: str | None = None


@dataclass(slots=True, frozen=True)
class InboundMessage:
    sender: str
    body: str
    delivery_id: str | None = None
