# src/takt/storage/audit_log.py

from __future__ import annotations

import json
import logging
import sqlite3
import time
from typing import Any

from ..core.errors import PersistenceFailure
from ..core.models import AuditEntry
from .db import Database

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Append-only record of inbound messages.

    Idempotency:
    - claim(delivery_id) inserts into delivery_claims; the primary key is the
      only duplicate signal (two workers may race on the same redelivery).
    - audit_log.delivery_id carries a partial UNIQUE index as a second guard.

    Entries are never updated or deleted.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _payload_to_str(payload: Any | None) -> str | None:
        if payload is None:
            return None
        try:
            return json.dumps(payload, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            logger.exception("Failed to JSON-encode parsed_result; storing repr.")
            return json.dumps(repr(payload))

    @staticmethod
    def _str_to_payload(s: str | None) -> Any | None:
        if not s:
            return None
        try:
            return json.loads(s)
        except ValueError:
            return None

    def _row_to_entry(self, row: sqlite3.Row) -> AuditEntry:
        return AuditEntry(
            id=int(row["id"]),
            delivery_id=row["delivery_id"],
            sender=str(row["sender"] or ""),
            body=str(row["body"] or ""),
            parsed_result=self._str_to_payload(row["parsed_result"]),
            items_created=int(row["items_created"] or 0),
            error=row["error"],
            reply=row["reply"],
            processed_at=float(row["processed_at"] or 0.0),
        )

    def claim(self, delivery_id: str) -> bool:
        """
        Claim a transport delivery id.

        Returns True for the first caller, False when the id was already claimed.
        """
        conn = self._db.connect()
        try:
            conn.execute(
                "INSERT INTO delivery_claims(delivery_id, claimed_at) VALUES (?, ?)",
                (delivery_id, time.time()),
            )
            conn.commit()
            return True
        except sqlite3.IntegrityError:
            logger.info("Delivery %s already claimed", delivery_id)
            return False
        finally:
            conn.close()

    def find_by_delivery_id(self, delivery_id: str) -> AuditEntry | None:
        conn = self._db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM audit_log WHERE delivery_id = ?",
                (delivery_id,),
            ).fetchone()
            return self._row_to_entry(row) if row else None
        finally:
            conn.close()

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
    ) -> int:
        conn = self._db.connect()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO audit_log(
                    delivery_id, sender, body, parsed_result,
                    items_created, error, reply, processed_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    delivery_id,
                    sender,
                    body,
                    self._payload_to_str(parsed_result),
                    int(items_created),
                    error,
                    reply,
                    time.time(),
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceFailure("SQLite did not return lastrowid for audit_log insert")
            logger.debug(
                "Audit entry id=%s delivery=%s items_created=%s error=%s",
                rowid,
                delivery_id,
                items_created,
                bool(error),
            )
            return int(rowid)
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    def count_entries(self) -> int:
        conn = self._db.connect()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM audit_log").fetchone()
            return int(n)
        finally:
            conn.close()

    def recent(self, limit: int = 10) -> list[AuditEntry]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                "SELECT * FROM audit_log ORDER BY processed_at DESC, id DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
            return [self._row_to_entry(r) for r in rows]
        finally:
            conn.close()
