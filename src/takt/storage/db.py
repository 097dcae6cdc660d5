# src/takt/storage/db.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        color TEXT NOT NULL DEFAULT '#6B7280',
        sort_order INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        kind TEXT NOT NULL CHECK (kind IN ('task', 'event')),
        title TEXT NOT NULL,
        description TEXT,
        category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
        start_time REAL,
        end_time REAL,
        due_date TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        completed_at REAL,
        origin TEXT NOT NULL DEFAULT 'manual',
        external_id TEXT,
        raw_text TEXT,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dependencies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        predecessor_id INTEGER NOT NULL REFERENCES items(id) ON DELETE CASCADE,
        successor_id INTEGER NOT NULL REFERENCES items(id) ON DELETE CASCADE,
        created_at REAL NOT NULL,
        CONSTRAINT unique_dependency UNIQUE (predecessor_id, successor_id),
        CONSTRAINT no_self_dependency CHECK (predecessor_id != successor_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        delivery_id TEXT,
        sender TEXT NOT NULL,
        body TEXT NOT NULL,
        parsed_result TEXT,
        items_created INTEGER NOT NULL DEFAULT 0,
        error TEXT,
        processed_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS delivery_claims (
        delivery_id TEXT PRIMARY KEY,
        claimed_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS subscriber_preferences (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        address TEXT NOT NULL UNIQUE,
        timezone TEXT NOT NULL DEFAULT 'America/New_York',
        digest_enabled INTEGER NOT NULL DEFAULT 0,
        digest_time TEXT NOT NULL DEFAULT '08:00',
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
)

_INDEXES = (
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_items_external_id ON items(external_id) "
    "WHERE external_id IS NOT NULL",
    "CREATE INDEX IF NOT EXISTS idx_items_kind_due ON items(kind, completed, due_date)",
    "CREATE INDEX IF NOT EXISTS idx_items_kind_start ON items(kind, start_time)",
    "CREATE INDEX IF NOT EXISTS idx_dependencies_successor ON dependencies(successor_id)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_audit_log_delivery_id ON audit_log(delivery_id) "
    "WHERE delivery_id IS NOT NULL",
    "CREATE INDEX IF NOT EXISTS idx_preferences_digest ON subscriber_preferences(digest_enabled)",
)

# Columns added after the first release: (table, column, declaration).
_LATE_COLUMNS = (
    ("audit_log", "reply", "TEXT"),
    ("subscriber_preferences", "last_digest_on", "TEXT"),
)


class Database:
    """
    SQLite database shared by the stores.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - every store call opens its own connection via connect()
    """

    def __init__(self, db_path: str | Path = "takt.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("Database ready db=%s", self._db_path)

    @property
    def path(self) -> Path:
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        # Cascading edge deletes depend on this; it must not be skipped.
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self.connect()
        try:
            cur = conn.cursor()
            for ddl in _TABLES:
                cur.execute(ddl)

            for table, name, decl in _LATE_COLUMNS:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    continue
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("Database migration: added column %s.%s", table, name)

            for ddl in _INDEXES:
                cur.execute(ddl)

            conn.commit()
        finally:
            conn.close()
