# src/takt/storage/item_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import UTC, date, datetime

from ..core.errors import PersistenceFailure
from ..core.models import Item, ItemKind, ItemOrigin, NewItem
from .db import Database

logger = logging.getLogger(__name__)


def _ts(dt: datetime | None) -> float | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        raise ValueError("naive datetimes are not stored; attach a timezone first")
    return dt.timestamp()


def _dt(raw: float | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromtimestamp(float(raw), tz=UTC)


def _date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        logger.warning("Unreadable due_date in items table: %r", raw)
        return None


class ItemStore:
    """
    SQLite item store (tasks and events share one table, split by `kind`).

    Every insert is its own transaction: a failed insert never affects rows
    written earlier by the same caller.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        return Item(
            id=int(row["id"]),
            kind=ItemKind(row["kind"]),
            title=str(row["title"] or ""),
            description=row["description"],
            category_id=int(row["category_id"]) if row["category_id"] is not None else None,
            due_date=_date(row["due_date"]),
            start_time=_dt(row["start_time"]),
            end_time=_dt(row["end_time"]),
            completed=bool(row["completed"]),
            completed_at=_dt(row["completed_at"]),
            origin=ItemOrigin.from_db(row["origin"]),
            external_id=row["external_id"],
            raw_text=row["raw_text"],
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    # ---- writes ----

    def add_item(self, item: NewItem) -> Item:
        if not item.title or not item.title.strip():
            raise ValueError("title is required")

        # Keep the kind-specific columns exclusive.
        if item.kind == ItemKind.TASK:
            due = item.due_date.isoformat() if item.due_date else None
            start = end = None
        else:
            due = None
            start, end = _ts(item.start_time), _ts(item.end_time)

        now = time.time()
        conn = self._db.connect()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO items(
                    kind, title, description, category_id,
                    start_time, end_time, due_date,
                    completed, completed_at,
                    origin, external_id, raw_text,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?, ?, ?, ?)
                """,
                (
                    item.kind.value,
                    item.title.strip(),
                    item.description,
                    item.category_id,
                    start,
                    end,
                    due,
                    item.origin.value,
                    item.external_id,
                    item.raw_text,
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceFailure("SQLite did not return lastrowid for items insert")
            cur.execute("SELECT * FROM items WHERE id = ?", (int(rowid),))
            created = self._row_to_item(cur.fetchone())
            logger.debug("Item added id=%s kind=%s origin=%s", created.id, created.kind.value, created.origin.value)
            return created
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    def set_completed(self, item_id: int, completed: bool) -> bool:
        """Toggle completion; `completed_at` is set iff completed."""
        now = time.time()
        conn = self._db.connect()
        try:
            cur = conn.execute(
                "UPDATE items SET completed = ?, completed_at = ?, updated_at = ? WHERE id = ?",
                (1 if completed else 0, now if completed else None, now, int(item_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def set_category(self, item_id: int, category_id: int | None) -> bool:
        conn = self._db.connect()
        try:
            cur = conn.execute(
                "UPDATE items SET category_id = ?, updated_at = ? WHERE id = ?",
                (category_id, time.time(), int(item_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_item(self, item_id: int) -> bool:
        """Delete an item; its dependency edges go with it (ON DELETE CASCADE)."""
        conn = self._db.connect()
        try:
            cur = conn.execute("DELETE FROM items WHERE id = ?", (int(item_id),))
            conn.commit()
            deleted = cur.rowcount == 1
            if deleted:
                logger.info("Item deleted id=%s", item_id)
            return deleted
        finally:
            conn.close()

    # ---- reads ----

    def get_item(self, item_id: int) -> Item | None:
        conn = self._db.connect()
        try:
            row = conn.execute("SELECT * FROM items WHERE id = ?", (int(item_id),)).fetchone()
            return self._row_to_item(row) if row else None
        finally:
            conn.close()

    def count_items(self) -> int:
        conn = self._db.connect()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM items").fetchone()
            return int(n)
        finally:
            conn.close()

    def list_items(self, *, kind: ItemKind | None = None, limit: int = 100) -> list[Item]:
        conn = self._db.connect()
        try:
            if kind is None:
                rows = conn.execute(
                    "SELECT * FROM items ORDER BY created_at DESC, id DESC LIMIT ?",
                    (int(limit),),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM items WHERE kind = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                    (kind.value, int(limit)),
                ).fetchall()
            return [self._row_to_item(r) for r in rows]
        finally:
            conn.close()

    def list_open_tasks_due_before(self, day: date) -> list[Item]:
        """Incomplete tasks due strictly before `day`, oldest due date first."""
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM items
                WHERE kind = 'task'
                  AND completed = 0
                  AND due_date IS NOT NULL
                  AND due_date < ?
                ORDER BY due_date ASC, id ASC
                """,
                (day.isoformat(),),
            ).fetchall()
            return [self._row_to_item(r) for r in rows]
        finally:
            conn.close()

    def list_open_tasks_due_on(self, day: date) -> list[Item]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM items
                WHERE kind = 'task'
                  AND completed = 0
                  AND due_date = ?
                ORDER BY title ASC, id ASC
                """,
                (day.isoformat(),),
            ).fetchall()
            return [self._row_to_item(r) for r in rows]
        finally:
            conn.close()

    def list_events_between(self, start: datetime, end: datetime) -> list[Item]:
        """Events starting in [start, end), earliest first."""
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM items
                WHERE kind = 'event'
                  AND start_time IS NOT NULL
                  AND start_time >= ?
                  AND start_time < ?
                ORDER BY start_time ASC, id ASC
                """,
                (_ts(start), _ts(end)),
            ).fetchall()
            return [self._row_to_item(r) for r in rows]
        finally:
            conn.close()
