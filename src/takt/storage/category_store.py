# src/takt/storage/category_store.py

from __future__ import annotations

import logging
import sqlite3
import time

from ..core.errors import PersistenceFailure
from ..core.models import Category
from .db import Database

logger = logging.getLogger(__name__)


class CategoryStore:
    """Plain persistence for the category taxonomy."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=int(row["id"]),
            name=str(row["name"]),
            color=str(row["color"] or "#6B7280"),
            sort_order=int(row["sort_order"] or 0),
        )

    def list_categories(self) -> list[Category]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM categories ORDER BY sort_order ASC, name ASC"
            ).fetchall()
            return [self._row_to_category(r) for r in rows]
        finally:
            conn.close()

    def add_category(self, name: str, *, color: str = "#6B7280", sort_order: int | None = None) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValueError("name is required")

        now = time.time()
        conn = self._db.connect()
        try:
            cur = conn.cursor()
            if sort_order is None:
                (max_order,) = cur.execute("SELECT COALESCE(MAX(sort_order), -1) FROM categories").fetchone()
                sort_order = int(max_order) + 1
            cur.execute(
                """
                INSERT INTO categories(name, color, sort_order, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (name, color, int(sort_order), now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceFailure("SQLite did not return lastrowid for categories insert")
            logger.info("Category added id=%s name=%s", rowid, name)
            return Category(id=int(rowid), name=name, color=color, sort_order=int(sort_order))
        except sqlite3.IntegrityError as e:
            raise PersistenceFailure(f"category {name!r} already exists") from e
        finally:
            conn.close()
