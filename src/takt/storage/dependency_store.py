# src/takt/storage/dependency_store.py

from __future__ import annotations

import logging
import sqlite3
import time

from ..core.errors import DependencyCycle, DuplicateEdge, PersistenceFailure, SelfReference, UnknownItem
from ..core.models import Dependency, EdgeSet
from ..planning.graph import would_create_cycle
from .db import Database

logger = logging.getLogger(__name__)


class DependencyStore:
    """
    Predecessor -> successor edges between items.

    Structural rules enforced here:
    - no self-loops (SelfReference)
    - one edge per ordered pair (DuplicateEdge, backed by a UNIQUE constraint)
    - both endpoints exist (UnknownItem, backed by foreign keys)
    Edges are removed together with either endpoint (ON DELETE CASCADE).

    Longer cycles are allowed unless the caller passes reject_cycles=True.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _row_to_dep(row: sqlite3.Row) -> Dependency:
        return Dependency(
            id=int(row["id"]),
            predecessor_id=int(row["predecessor_id"]),
            successor_id=int(row["successor_id"]),
            created_at=float(row["created_at"] or 0.0),
        )

    def add_edge(self, predecessor_id: int, successor_id: int, *, reject_cycles: bool = False) -> Dependency:
        pred, succ = int(predecessor_id), int(successor_id)
        if pred == succ:
            raise SelfReference(pred)

        if reject_cycles and would_create_cycle(self.list_edges(), pred, succ):
            raise DependencyCycle(pred, succ)

        now = time.time()
        conn = self._db.connect()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO dependencies(predecessor_id, successor_id, created_at) VALUES (?, ?, ?)",
                (pred, succ, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceFailure("SQLite did not return lastrowid for dependencies insert")
            logger.info("Dependency added id=%s %s -> %s", rowid, pred, succ)
            return Dependency(id=int(rowid), predecessor_id=pred, successor_id=succ, created_at=now)
        except sqlite3.IntegrityError as e:
            msg = str(e).upper()
            if "UNIQUE" in msg:
                raise DuplicateEdge(pred, succ) from e
            if "FOREIGN KEY" in msg:
                raise UnknownItem(pred, succ) from e
            if "CHECK" in msg:
                raise SelfReference(pred) from e
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    def remove_edge(self, edge_id: int) -> bool:
        conn = self._db.connect()
        try:
            cur = conn.execute("DELETE FROM dependencies WHERE id = ?", (int(edge_id),))
            conn.commit()
            removed = cur.rowcount == 1
            if removed:
                logger.info("Dependency removed id=%s", edge_id)
            return removed
        finally:
            conn.close()

    def edges_for(self, item_id: int) -> EdgeSet:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM dependencies
                WHERE predecessor_id = ? OR successor_id = ?
                ORDER BY id ASC
                """,
                (int(item_id), int(item_id)),
            ).fetchall()
        finally:
            conn.close()

        out = EdgeSet()
        for r in rows:
            dep = self._row_to_dep(r)
            if dep.predecessor_id == item_id:
                out.as_predecessor.append(dep)
            if dep.successor_id == item_id:
                out.as_successor.append(dep)
        return out

    def list_edges(self) -> list[Dependency]:
        conn = self._db.connect()
        try:
            rows = conn.execute("SELECT * FROM dependencies ORDER BY id ASC").fetchall()
            return [self._row_to_dep(r) for r in rows]
        finally:
            conn.close()
