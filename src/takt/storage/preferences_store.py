# src/takt/storage/preferences_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import date, time as dtime

from ..config import DEFAULT_TIMEZONE
from ..core.errors import PersistenceFailure
from ..core.models import SubscriberPreference
from .db import Database

logger = logging.getLogger(__name__)


def _parse_time(raw: str | None) -> dtime:
    try:
        return dtime.fromisoformat(str(raw or "08:00"))
    except ValueError:
        return dtime(8, 0)


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


class PreferenceStore:
    """Per-subscriber digest settings, keyed by contact address."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_pref(row: sqlite3.Row) -> SubscriberPreference:
        return SubscriberPreference(
            id=int(row["id"]),
            address=str(row["address"]),
            timezone=str(row["timezone"] or DEFAULT_TIMEZONE),
            digest_enabled=bool(row["digest_enabled"]),
            digest_time=_parse_time(row["digest_time"]),
            last_digest_on=_parse_date(row["last_digest_on"]),
        )

    def upsert(
        self,
        address: str,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        digest_enabled: bool = False,
        digest_time: dtime = dtime(8, 0),
    ) -> SubscriberPreference:
        address = (address or "").strip()
        if not address:
            raise ValueError("address is required")

        now = time.time()
        conn = self._db.connect()
        try:
            conn.execute(
                """
                INSERT INTO subscriber_preferences(
                    address, timezone, digest_enabled, digest_time, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(address) DO UPDATE SET
                    timezone = excluded.timezone,
                    digest_enabled = excluded.digest_enabled,
                    digest_time = excluded.digest_time,
                    updated_at = excluded.updated_at
                """,
                (address, timezone, 1 if digest_enabled else 0, digest_time.strftime("%H:%M"), now, now),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM subscriber_preferences WHERE address = ?", (address,)
            ).fetchone()
            return self._row_to_pref(row)
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    def get_by_address(self, address: str) -> SubscriberPreference | None:
        if not address:
            return None
        conn = self._db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM subscriber_preferences WHERE address = ?", (address.strip(),)
            ).fetchone()
            return self._row_to_pref(row) if row else None
        finally:
            conn.close()

    def list_digest_subscribers(self) -> list[SubscriberPreference]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM subscriber_preferences
                WHERE digest_enabled = 1
                  AND address != ''
                ORDER BY id ASC
                """
            ).fetchall()
            return [self._row_to_pref(r) for r in rows]
        finally:
            conn.close()

    def mark_digest_sent(self, pref_id: int, day: date) -> None:
        conn = self._db.connect()
        try:
            conn.execute(
                "UPDATE subscriber_preferences SET last_digest_on = ?, updated_at = ? WHERE id = ?",
                (day.isoformat(), time.time(), int(pref_id)),
            )
            conn.commit()
        finally:
            conn.close()
